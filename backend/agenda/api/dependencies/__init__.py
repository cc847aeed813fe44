# backend/agenda/api/dependencies/__init__.py
"""
Central export point for all dependencies.
"""

from .auth import CurrentUser, UserRole, get_current_user
from .database import get_db
from .services import (
    get_appointment_lifecycle,
    get_booking_committer,
    get_notification_service,
    get_schedule_service,
    get_slot_generator,
)

__all__ = [
    # Auth
    "CurrentUser",
    "UserRole",
    "get_current_user",
    # Database
    "get_db",
    # Services
    "get_appointment_lifecycle",
    "get_booking_committer",
    "get_notification_service",
    "get_schedule_service",
    "get_slot_generator",
]
