"""
Database models for the booking engine.

- Service catalog snapshot
- Provider scheduling data (weekly schedule, service rules, overrides, blocks)
- Appointments
"""

from .appointment import (
    ALLOWED_TRANSITIONS,
    NON_TERMINAL_STATUSES,
    TERMINAL_STATUSES,
    Appointment,
    AppointmentStatus,
)
from .schedule import (
    BlockedTimeSlot,
    ExecutionTimeOverride,
    ProviderDaySchedule,
    ServiceScheduleConfig,
)
from .service import Service

__all__ = [
    "ALLOWED_TRANSITIONS",
    "NON_TERMINAL_STATUSES",
    "TERMINAL_STATUSES",
    "Appointment",
    "AppointmentStatus",
    "BlockedTimeSlot",
    "ExecutionTimeOverride",
    "ProviderDaySchedule",
    "Service",
    "ServiceScheduleConfig",
]
