# backend/agenda/repositories/factory.py
"""
Repository Factory

Centralized creation of repository instances so services share one
construction path and tests can swap implementations.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .appointment_repository import AppointmentRepository
    from .blocked_time_repository import BlockedTimeRepository
    from .schedule_repository import ScheduleRepository
    from .service_catalog_repository import ServiceCatalogRepository
    from .service_rule_repository import (
        ExecutionTimeOverrideRepository,
        ServiceScheduleConfigRepository,
    )


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_base_repository(db: Session, model) -> BaseRepository:
        return BaseRepository(db, model)

    @staticmethod
    def create_schedule_repository(db: Session) -> "ScheduleRepository":
        """Create repository for weekly schedule rows."""
        from .schedule_repository import ScheduleRepository

        return ScheduleRepository(db)

    @staticmethod
    def create_service_config_repository(db: Session) -> "ServiceScheduleConfigRepository":
        from .service_rule_repository import ServiceScheduleConfigRepository

        return ServiceScheduleConfigRepository(db)

    @staticmethod
    def create_execution_time_repository(db: Session) -> "ExecutionTimeOverrideRepository":
        from .service_rule_repository import ExecutionTimeOverrideRepository

        return ExecutionTimeOverrideRepository(db)

    @staticmethod
    def create_service_catalog_repository(db: Session) -> "ServiceCatalogRepository":
        """Create repository for service catalog lookups."""
        from .service_catalog_repository import ServiceCatalogRepository

        return ServiceCatalogRepository(db)

    @staticmethod
    def create_appointment_repository(db: Session) -> "AppointmentRepository":
        """Create repository for appointment operations."""
        from .appointment_repository import AppointmentRepository

        return AppointmentRepository(db)

    @staticmethod
    def create_blocked_time_repository(db: Session) -> "BlockedTimeRepository":
        from .blocked_time_repository import BlockedTimeRepository

        return BlockedTimeRepository(db)
