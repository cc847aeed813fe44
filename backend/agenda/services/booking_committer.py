# backend/agenda/services/booking_committer.py
"""
Booking Committer

Turns a slot the client picked into an appointment row. The slot list a
client saw may be stale, so the candidate set is recomputed inside the
provider-date critical section and the insert is committed before the lock
is released. On PostgreSQL the ``appointments_no_overlap_per_provider``
exclusion constraint backs this up across processes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.booking_lock import provider_date_lock
from ..core.config import settings
from ..core.exceptions import (
    BusinessRuleException,
    NotFoundException,
    SlotUnavailableError,
    ValidationException,
)
from ..core.timezone_utils import get_marketplace_today
from ..models.appointment import Appointment, AppointmentStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.appointment_repository import OverlapConstraintViolation
from ..repositories.factory import RepositoryFactory
from ..utils.time_ranges import (
    MINUTES_PER_DAY,
    TimeRange,
    format_hhmm,
    minutes_to_time,
)
from .base import BaseService
from .completion_code import issue_completion_code
from .notification_service import NotificationService
from .slot_generator import (
    AvailabilitySnapshot,
    SlotGenerator,
    find_slot,
    generate_candidate_slots,
)

logger = logging.getLogger(__name__)


@dataclass
class BookingResult:
    appointment: Appointment
    blocked_adjacent_slots: List[TimeRange] = field(default_factory=list)
    completion_code: Optional[str] = None


def blocked_adjacent_slots(snapshot: AvailabilitySnapshot, booked: TimeRange) -> List[TimeRange]:
    """
    Slots that were bookable before ``booked`` was taken and no longer are.

    The booked slot itself is not reported.
    """
    before = generate_candidate_slots(snapshot)
    after = set(generate_candidate_slots(snapshot.with_occupied(booked)))
    return [slot for slot in before if slot not in after and slot != booked]


class BookingCommitter(BaseService):
    """Atomic check-then-insert for appointments."""

    def __init__(
        self,
        db: Session,
        slot_generator: Optional[SlotGenerator] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        super().__init__(db)
        self.slot_generator = slot_generator or SlotGenerator(db)
        self.notification_service = notification_service or NotificationService()
        self.appointment_repository = RepositoryFactory.create_appointment_repository(db)

    def _conflict_details(self, provider_id: str, day: date, start_minute: int) -> Dict[str, Any]:
        return {
            "provider_id": provider_id,
            "date": day.isoformat(),
            "start_time": format_hhmm(start_minute) if start_minute < MINUTES_PER_DAY else "",
        }

    def _validate_booking_date(self, day: date) -> None:
        if day < get_marketplace_today():
            raise ValidationException(
                "Cannot book a date in the past", details={"date": day.isoformat()}
            )

    def _locate_slot(
        self,
        provider_id: str,
        service_id: str,
        day: date,
        start_minute: int,
        exclude_appointment_id: Optional[str] = None,
    ) -> tuple[AvailabilitySnapshot, TimeRange]:
        """Recompute the candidate set from current data and find the requested slot."""
        # Drop anything cached in the identity map before the authoritative read
        self.db.expire_all()
        snapshot = self.slot_generator.load_snapshot(
            provider_id, service_id, day, exclude_appointment_id=exclude_appointment_id
        )
        slot = find_slot(generate_candidate_slots(snapshot), start_minute)
        if slot is None:
            prometheus_metrics.record_booking_commit("slot_unavailable")
            raise SlotUnavailableError(
                details=self._conflict_details(provider_id, day, start_minute)
            )
        return snapshot, slot

    @BaseService.measure_operation("commit")
    def commit(
        self,
        provider_id: str,
        service_id: str,
        client_id: str,
        day: date,
        start_minute: int,
        initial_status: Optional[AppointmentStatus] = None,
    ) -> BookingResult:
        """
        Book ``[start, start + duration)`` for a client.

        Raises:
            ValidationException: past date or inactive service
            NotFoundException: unknown service
            SlotUnavailableError: slot taken, outside availability, or lock timeout
        """
        self.log_operation(
            "commit",
            provider_id=provider_id,
            service_id=service_id,
            client_id=client_id,
            date=day.isoformat(),
            start_minute=start_minute,
        )
        self._validate_booking_date(day)

        service = self.slot_generator.get_service(service_id)
        if not service.is_active:
            raise ValidationException(
                "Service is not available for booking", details={"service_id": service_id}
            )

        status = initial_status or AppointmentStatus(settings.default_appointment_status)
        if status not in (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED):
            raise ValidationException(f"Appointments cannot be created as {status.value}")

        with provider_date_lock(provider_id, day) as acquired:
            if not acquired:
                prometheus_metrics.record_booking_commit("lock_timeout")
                raise SlotUnavailableError(
                    details=self._conflict_details(provider_id, day, start_minute)
                )

            snapshot, slot = self._locate_slot(provider_id, service_id, day, start_minute)
            code, code_hash = issue_completion_code()
            try:
                with self.transaction():
                    appointment = self.appointment_repository.create_appointment(
                        provider_id=provider_id,
                        service_id=service_id,
                        client_id=client_id,
                        appointment_date=day,
                        start_time=minutes_to_time(slot.start),
                        end_time=minutes_to_time(slot.end),
                        duration_minutes=snapshot.duration,
                        status=status.value,
                        completion_code_hash=code_hash,
                    )
                    if status == AppointmentStatus.CONFIRMED:
                        appointment.mark_confirmed()
            except OverlapConstraintViolation as exc:
                prometheus_metrics.record_booking_commit("slot_unavailable")
                raise SlotUnavailableError(
                    details=self._conflict_details(provider_id, day, start_minute)
                ) from exc

        prometheus_metrics.record_booking_commit("created")
        blocked = blocked_adjacent_slots(snapshot, slot)
        self.logger.info(
            f"Appointment {appointment.id} booked for provider {provider_id} on "
            f"{day.isoformat()} {slot} ({len(blocked)} adjacent slots blocked)"
        )

        payload = self._event_payload(appointment)
        self.notification_service.notify(provider_id, "appointment.created", payload)
        self.notification_service.notify(client_id, "appointment.created", payload)

        return BookingResult(
            appointment=appointment,
            blocked_adjacent_slots=blocked,
            completion_code=code,
        )

    @BaseService.measure_operation("reschedule")
    def reschedule(self, appointment_id: str, day: date, start_minute: int) -> BookingResult:
        """
        Move a pending or confirmed appointment to another date/start.

        The appointment's own interval is ignored when checking the target,
        so shifting within the same free window works.
        """
        appointment = self.appointment_repository.get_by_id(appointment_id)
        if appointment is None:
            raise NotFoundException(f"Appointment {appointment_id} not found")
        if not appointment.is_active:
            raise BusinessRuleException(
                f"Cannot reschedule a {appointment.status} appointment",
                code="APPOINTMENT_NOT_ACTIVE",
            )
        self._validate_booking_date(day)

        self.log_operation(
            "reschedule",
            appointment_id=appointment_id,
            date=day.isoformat(),
            start_minute=start_minute,
        )

        provider_id = appointment.provider_id
        with provider_date_lock(provider_id, day) as acquired:
            if not acquired:
                prometheus_metrics.record_booking_commit("lock_timeout")
                raise SlotUnavailableError(
                    details=self._conflict_details(provider_id, day, start_minute)
                )

            snapshot, slot = self._locate_slot(
                provider_id,
                appointment.service_id,
                day,
                start_minute,
                exclude_appointment_id=appointment.id,
            )
            # Status may have changed while waiting on the lock
            appointment = self.appointment_repository.get_by_id(appointment_id)
            if appointment is None or not appointment.is_active:
                raise SlotUnavailableError(
                    "Appointment is no longer active",
                    details=self._conflict_details(provider_id, day, start_minute),
                )
            try:
                with self.transaction():
                    appointment.appointment_date = day
                    appointment.start_time = minutes_to_time(slot.start)
                    appointment.end_time = minutes_to_time(slot.end)
                    appointment.duration_minutes = snapshot.duration
                    self.appointment_repository.flush_update(appointment)
            except OverlapConstraintViolation as exc:
                prometheus_metrics.record_booking_commit("slot_unavailable")
                raise SlotUnavailableError(
                    details=self._conflict_details(provider_id, day, start_minute)
                ) from exc

        prometheus_metrics.record_booking_commit("rescheduled")
        blocked = blocked_adjacent_slots(snapshot, slot)

        payload = self._event_payload(appointment)
        self.notification_service.notify(appointment.provider_id, "appointment.rescheduled", payload)
        self.notification_service.notify(appointment.client_id, "appointment.rescheduled", payload)

        return BookingResult(appointment=appointment, blocked_adjacent_slots=blocked)

    @staticmethod
    def _event_payload(appointment: Appointment) -> Dict[str, Any]:
        return {
            "appointmentId": appointment.id,
            "providerId": appointment.provider_id,
            "serviceId": appointment.service_id,
            "clientId": appointment.client_id,
            "date": appointment.appointment_date.isoformat(),
            "startTime": appointment.start_time.strftime("%H:%M"),
            "endTime": appointment.end_time.strftime("%H:%M"),
            "status": appointment.status,
        }
