"""Service layer: business logic on top of the repositories."""

from .appointment_lifecycle import AppointmentLifecycle
from .base import BaseService
from .booking_committer import BookingCommitter, BookingResult
from .completion_code import CompletionCodeValidator
from .duration_resolver import DurationResolver, normalize_duration
from .notification_service import NotificationService
from .schedule_service import ScheduleService
from .slot_generator import SlotGenerator

__all__ = [
    "AppointmentLifecycle",
    "BaseService",
    "BookingCommitter",
    "BookingResult",
    "CompletionCodeValidator",
    "DurationResolver",
    "NotificationService",
    "ScheduleService",
    "SlotGenerator",
    "normalize_duration",
]
