# backend/agenda/models/appointment.py
"""
Appointment model.

An appointment binds exactly one provider, one service and one client to a
``[start_time, end_time)`` interval on a date. Rows are never deleted; the
status column carries the lifecycle.

On PostgreSQL the migration adds the ``appointments_no_overlap_per_provider``
exclusion constraint over ``(provider_id, appointment_span)`` restricted to
non-terminal statuses.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
)
from sqlalchemy.sql import func
import ulid

from ..database import Base


class AppointmentStatus(str, Enum):
    """Appointment lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELED = "canceled"
    NO_SHOW = "no_show"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    def can_transition_to(self, target: "AppointmentStatus") -> bool:
        return target in ALLOWED_TRANSITIONS[self]


NON_TERMINAL_STATUSES: FrozenSet[AppointmentStatus] = frozenset(
    {AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED}
)
TERMINAL_STATUSES: FrozenSet[AppointmentStatus] = frozenset(
    {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED, AppointmentStatus.NO_SHOW}
)

ALLOWED_TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELED}),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED, AppointmentStatus.NO_SHOW}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}


class Appointment(Base):
    """Booked interval of one provider's time for one client and service."""

    __tablename__ = "appointments"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    provider_id = Column(String(64), nullable=False)
    service_id = Column(String(26), ForeignKey("services.id"), nullable=False)
    client_id = Column(String(64), nullable=False)

    appointment_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=AppointmentStatus.PENDING.value, index=True)

    # Cancellation / no-show tracking
    cancellation_reason = Column(Text, nullable=True)
    cancellation_date = Column(DateTime(timezone=True), nullable=True)
    cancellation_by = Column(String(64), nullable=True)

    # Completion gate
    completion_code_hash = Column(String(64), nullable=True)
    completion_attempts = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'canceled', 'no_show')",
            name="ck_appointments_status",
        ),
        CheckConstraint("duration_minutes > 0", name="ck_appointments_duration_positive"),
        CheckConstraint("start_time < end_time", name="ck_appointments_time_order"),
        Index("ix_appointments_provider_date", "provider_id", "appointment_date"),
        Index("ix_appointments_client", "client_id"),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = AppointmentStatus.PENDING.value
        if self.completion_attempts is None:
            self.completion_attempts = 0

    def __repr__(self) -> str:
        return (
            f"<Appointment {self.id}: provider={self.provider_id}, client={self.client_id}, "
            f"date={self.appointment_date}, time={self.start_time}-{self.end_time}, "
            f"status={self.status}>"
        )

    @property
    def status_enum(self) -> AppointmentStatus:
        return AppointmentStatus(self.status)

    @property
    def is_active(self) -> bool:
        """True while the appointment occupies the provider's calendar."""
        return self.status_enum in NON_TERMINAL_STATUSES

    def mark_confirmed(self) -> None:
        for name, value in status_change_values(AppointmentStatus.CONFIRMED).items():
            setattr(self, name, value)


def status_change_values(
    target: AppointmentStatus,
    by_user_id: Optional[str] = None,
    reason: Optional[str] = None,
    when: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Column values written when an appointment moves to ``target``."""
    moment = when or datetime.now(timezone.utc)
    values: Dict[str, Any] = {"status": target.value}
    if target == AppointmentStatus.CONFIRMED:
        values["confirmed_at"] = moment
    elif target == AppointmentStatus.COMPLETED:
        values["completed_at"] = moment
    elif target in (AppointmentStatus.CANCELED, AppointmentStatus.NO_SHOW):
        values["cancellation_reason"] = reason
        values["cancellation_date"] = moment
        values["cancellation_by"] = by_user_id
    return values
