# backend/agenda/repositories/appointment_repository.py
"""
Appointment Repository

Queries used by slot generation and the booking critical section. Only
non-terminal appointments occupy a provider's calendar, so the occupancy
query filters on status.
"""

from datetime import date
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.appointment import NON_TERMINAL_STATUSES, Appointment, AppointmentStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

NO_OVERLAP_CONSTRAINT = "appointments_no_overlap_per_provider"


class OverlapConstraintViolation(RepositoryException):
    """The database rejected an insert/update that would double-book a provider."""


def is_overlap_violation(exc: BaseException) -> bool:
    """True when ``exc`` comes from the provider no-overlap exclusion constraint."""
    orig = getattr(exc, "orig", None)
    diag = getattr(orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None)
    if constraint_name == NO_OVERLAP_CONSTRAINT:
        return True
    message = str(orig or exc).lower()
    return NO_OVERLAP_CONSTRAINT in message or "exclusion constraint" in message


class AppointmentRepository(BaseRepository[Appointment]):
    """Repository for appointment rows."""

    def __init__(self, db: Session):
        super().__init__(db, Appointment)

    def get_active_for_provider_date(
        self,
        provider_id: str,
        appointment_date: date,
        exclude_appointment_id: Optional[str] = None,
    ) -> List[Appointment]:
        """Pending and confirmed appointments of a provider on one date."""
        query = self._build_query().filter(
            Appointment.provider_id == provider_id,
            Appointment.appointment_date == appointment_date,
            Appointment.status.in_([s.value for s in NON_TERMINAL_STATUSES]),
        )
        if exclude_appointment_id:
            query = query.filter(Appointment.id != exclude_appointment_id)
        return self._execute_query(query.order_by(Appointment.start_time))

    def update_status_if_current(
        self,
        appointment_id: str,
        expected: AppointmentStatus,
        values: Dict[str, Any],
    ) -> bool:
        """
        Write ``values`` only while the row still has status ``expected``.

        Returns False when another writer changed the status first. The
        in-session instance is not synchronized; refresh it afterwards.
        """
        try:
            updated = (
                self._build_query()
                .filter(
                    Appointment.id == appointment_id,
                    Appointment.status == expected.value,
                )
                .update(values, synchronize_session=False)
            )
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            if is_overlap_violation(exc):
                raise OverlapConstraintViolation(str(exc)) from exc
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            self.logger.error(f"Error updating appointment {appointment_id}: {str(exc)}")
            raise RepositoryException(f"Failed to update appointment: {str(exc)}") from exc
        return updated == 1

    def create_appointment(self, **values: Any) -> Appointment:
        """
        Insert an appointment and flush.

        Raises:
            OverlapConstraintViolation: the exclusion constraint fired
            RepositoryException: any other database failure
        """
        appointment = Appointment(**values)
        try:
            self.db.add(appointment)
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            if is_overlap_violation(exc):
                self.logger.warning(
                    "Appointment insert rejected by %s for provider %s",
                    NO_OVERLAP_CONSTRAINT,
                    values.get("provider_id"),
                )
                raise OverlapConstraintViolation(str(exc)) from exc
            self.logger.error("Integrity error creating appointment: %s", exc, exc_info=True)
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            self.logger.error(f"Error creating appointment: {str(exc)}")
            raise RepositoryException(f"Failed to create appointment: {str(exc)}") from exc
        return appointment

    def flush_update(self, appointment: Appointment) -> Appointment:
        """Flush pending changes to an existing appointment (reschedule path)."""
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            if is_overlap_violation(exc):
                raise OverlapConstraintViolation(str(exc)) from exc
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        return appointment
