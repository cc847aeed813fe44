# backend/agenda/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each factory builds a request-scoped service on the request's session.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.appointment_lifecycle import AppointmentLifecycle
from ...services.booking_committer import BookingCommitter
from ...services.notification_service import NotificationService
from ...services.schedule_service import ScheduleService
from ...services.slot_generator import SlotGenerator
from .database import get_db


@lru_cache(maxsize=1)
def get_notification_service() -> NotificationService:
    """Process-wide notification dispatcher (stateless)."""
    return NotificationService()


def get_slot_generator(db: Session = Depends(get_db)) -> SlotGenerator:
    return SlotGenerator(db)


def get_booking_committer(
    db: Session = Depends(get_db),
    notification_service: NotificationService = Depends(get_notification_service),
) -> BookingCommitter:
    return BookingCommitter(db, notification_service=notification_service)


def get_appointment_lifecycle(
    db: Session = Depends(get_db),
    notification_service: NotificationService = Depends(get_notification_service),
) -> AppointmentLifecycle:
    return AppointmentLifecycle(db, notification_service=notification_service)


def get_schedule_service(db: Session = Depends(get_db)) -> ScheduleService:
    return ScheduleService(db)
