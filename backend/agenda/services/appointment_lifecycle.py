# backend/agenda/services/appointment_lifecycle.py
"""
Appointment status state machine.

    pending   -> confirmed | canceled
    confirmed -> completed | canceled | no_show

completed, canceled and no_show are terminal. Leaving pending/confirmed
frees the slot at once because slot generation only subtracts non-terminal
appointments.
"""

from datetime import datetime, timezone
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.exceptions import (
    CompletionValidationError,
    InvalidTransitionError,
    NotFoundException,
    ValidationException,
)
from ..models.appointment import Appointment, AppointmentStatus, status_change_values
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .completion_code import CompletionCodeValidator, CompletionValidator
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

REASON_REQUIRED = frozenset({AppointmentStatus.CANCELED, AppointmentStatus.NO_SHOW})


class AppointmentLifecycle(BaseService):
    def __init__(
        self,
        db: Session,
        completion_validator: Optional[CompletionValidator] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        super().__init__(db)
        self.appointment_repository = RepositoryFactory.create_appointment_repository(db)
        self.completion_validator = completion_validator or CompletionCodeValidator()
        self.notification_service = notification_service or NotificationService()

    def get_appointment(self, appointment_id: str) -> Appointment:
        appointment = self.appointment_repository.get_by_id(appointment_id)
        if appointment is None:
            raise NotFoundException(f"Appointment {appointment_id} not found")
        return appointment

    @BaseService.measure_operation("transition")
    def transition(
        self,
        appointment_id: str,
        target: AppointmentStatus,
        actor_id: str,
        reason: Optional[str] = None,
        completion_code: Optional[str] = None,
    ) -> Appointment:
        """
        Apply one status change.

        Raises:
            NotFoundException: unknown appointment
            InvalidTransitionError: target not reachable from the current status
            ValidationException: cancel/no-show without a reason
            CompletionValidationError: completion gate rejected the code
        """
        appointment = self.get_appointment(appointment_id)
        current = appointment.status_enum
        if not current.can_transition_to(target):
            raise InvalidTransitionError(current.value, target.value)

        clean_reason = (reason or "").strip()
        if target in REASON_REQUIRED and not clean_reason:
            raise ValidationException(
                f"A reason is required to mark an appointment as {target.value}",
                details={"field": "reason"},
            )

        if target == AppointmentStatus.COMPLETED:
            self._check_completion(appointment, completion_code)

        values = status_change_values(
            target,
            by_user_id=actor_id,
            reason=clean_reason or None,
            when=datetime.now(timezone.utc),
        )
        # Only applied if nobody changed the status since it was read
        with self.transaction():
            applied = self.appointment_repository.update_status_if_current(
                appointment.id, current, values
            )
        self.db.refresh(appointment)
        if not applied:
            self.logger.warning(
                f"Appointment {appointment.id} changed to {appointment.status} concurrently; "
                f"{current.value} -> {target.value} not applied"
            )
            raise InvalidTransitionError(appointment.status, target.value)

        self.log_operation(
            "transition",
            appointment_id=appointment.id,
            from_status=current.value,
            to_status=target.value,
            actor_id=actor_id,
        )

        recipient = (
            appointment.client_id
            if actor_id == appointment.provider_id
            else appointment.provider_id
        )
        self.notification_service.notify(
            recipient,
            f"appointment.{target.value}",
            {
                "appointmentId": appointment.id,
                "previousStatus": current.value,
                "status": target.value,
                "reason": clean_reason or None,
            },
        )
        return appointment

    def _check_completion(self, appointment: Appointment, code: Optional[str]) -> None:
        accepted = self.completion_validator.validate(appointment, code)
        if accepted:
            return
        # The failed attempt counter must survive the rejection
        with self.transaction():
            self.appointment_repository.flush()
        raise CompletionValidationError(
            "Completion code rejected",
            attempts_left=self.completion_validator.attempts_left(appointment),
        )
