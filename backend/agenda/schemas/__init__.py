"""Pydantic request/response models."""

from .appointment import (
    AppointmentCreate,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatusUpdate,
    BookingCreateResponse,
    SlotCheckResponse,
    SlotResponse,
)
from .blocked_time import BlockedTimeCreate, BlockedTimeResponse
from .common import TimeRangeSchema
from .schedule import (
    DayScheduleSchema,
    DefaultScheduleResponse,
    ExecutionTimeResponse,
    ExecutionTimeUpdate,
    ServiceScheduleConfigSchema,
    ServiceScheduleConfigUpdate,
    WeeklyScheduleResponse,
    WeeklyScheduleUpdate,
)

__all__ = [
    "AppointmentCreate",
    "AppointmentReschedule",
    "AppointmentResponse",
    "AppointmentStatusUpdate",
    "BlockedTimeCreate",
    "BlockedTimeResponse",
    "BookingCreateResponse",
    "DayScheduleSchema",
    "DefaultScheduleResponse",
    "ExecutionTimeResponse",
    "ExecutionTimeUpdate",
    "ServiceScheduleConfigSchema",
    "ServiceScheduleConfigUpdate",
    "SlotCheckResponse",
    "SlotResponse",
    "TimeRangeSchema",
    "WeeklyScheduleResponse",
    "WeeklyScheduleUpdate",
]
