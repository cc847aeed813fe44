# backend/agenda/models/schedule.py
"""
Provider-owned scheduling data.

Classes:
    ProviderDaySchedule: one weekday of a provider's recurring weekly schedule
    ServiceScheduleConfig: per-service restriction rules and ranking preferences
    ExecutionTimeOverride: per-service customized execution time
    BlockedTimeSlot: a time range blocked on one specific date

Time ranges are stored as JSON lists of ``{"start": "HH:MM", "end": "HH:MM"}``.
"""

from datetime import datetime, timezone
import logging

import sqlalchemy as sa
from sqlalchemy import (
    JSON,
    Boolean,
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
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class ProviderDaySchedule(Base):
    """Working and break blocks for one weekday (0=Sunday..6=Saturday)."""

    __tablename__ = "provider_day_schedules"

    provider_id = Column(String(64), primary_key=True)
    day_of_week = Column(Integer, primary_key=True)
    is_working = Column(Boolean, nullable=False, default=False)
    work_blocks = Column(JSON, nullable=False, default=list)
    break_blocks = Column(JSON, nullable=False, default=list)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        onupdate=_now_utc,
        server_default=sa.func.now(),
    )

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_day_schedules_weekday"),
    )

    def __repr__(self) -> str:
        return f"<ProviderDaySchedule {self.provider_id} day={self.day_of_week} working={self.is_working}>"


class ServiceScheduleConfig(Base):
    """Restriction rules for one service offered by one provider."""

    __tablename__ = "service_schedule_configs"

    provider_id = Column(String(64), primary_key=True)
    service_id = Column(String(26), ForeignKey("services.id"), primary_key=True)
    restrict_to_time_ranges = Column(Boolean, nullable=False, default=False)
    time_ranges = Column(JSON, nullable=False, default=list)
    days_of_week = Column(JSON, nullable=False, default=lambda: list(range(7)))
    use_intelligent_scheduling = Column(Boolean, nullable=False, default=True)
    prioritize_even_spacing = Column(Boolean, nullable=False, default=True)
    prioritize_consecutive_slots = Column(Boolean, nullable=False, default=False)
    time_of_day_preference = Column(String(20), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        onupdate=_now_utc,
        server_default=sa.func.now(),
    )

    __table_args__ = (
        CheckConstraint(
            "time_of_day_preference IS NULL OR "
            "time_of_day_preference IN ('morning', 'afternoon', 'evening')",
            name="ck_service_configs_time_of_day",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ServiceScheduleConfig {self.provider_id}/{self.service_id} "
            f"restricted={self.restrict_to_time_ranges}>"
        )


class ExecutionTimeOverride(Base):
    """Provider-customized execution time; inactive rows mean 'use the default'."""

    __tablename__ = "execution_time_overrides"

    provider_id = Column(String(64), primary_key=True)
    service_id = Column(String(26), ForeignKey("services.id"), primary_key=True)
    execution_time_minutes = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        onupdate=_now_utc,
        server_default=sa.func.now(),
    )

    __table_args__ = (
        CheckConstraint("execution_time_minutes > 0", name="ck_execution_time_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<ExecutionTimeOverride {self.provider_id}/{self.service_id} "
            f"{self.execution_time_minutes}min active={self.is_active}>"
        )


class BlockedTimeSlot(Base):
    """A provider-defined hole in one specific day's availability."""

    __tablename__ = "blocked_time_slots"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    provider_id = Column(String(64), nullable=False)
    blocked_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=sa.func.now())

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_blocked_time_order"),
        Index("ix_blocked_time_provider_date", "provider_id", "blocked_date"),
    )

    def __repr__(self) -> str:
        return f"<BlockedTimeSlot {self.blocked_date} {self.start_time}-{self.end_time}>"
