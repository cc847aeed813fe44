# backend/agenda/repositories/__init__.py
"""
Repository layer.

Repositories encapsulate data access and never commit; the service layer
owns transaction boundaries.
"""

from .appointment_repository import AppointmentRepository
from .base_repository import BaseRepository
from .blocked_time_repository import BlockedTimeRepository
from .factory import RepositoryFactory
from .schedule_repository import ScheduleRepository
from .service_catalog_repository import ServiceCatalogRepository
from .service_rule_repository import (
    ExecutionTimeOverrideRepository,
    ServiceScheduleConfigRepository,
)

__all__ = [
    "AppointmentRepository",
    "BaseRepository",
    "BlockedTimeRepository",
    "ExecutionTimeOverrideRepository",
    "RepositoryFactory",
    "ScheduleRepository",
    "ServiceCatalogRepository",
    "ServiceScheduleConfigRepository",
]
