# backend/agenda/services/duration_resolver.py
"""
Effective service duration for a provider.

The provider's active execution-time override wins over the catalog's
reference duration. Either value is snapped to the 15-minute grid.
"""

import logging
import math

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException
from ..repositories.factory import RepositoryFactory
from ..utils.time_ranges import GRID_MINUTES
from .base import BaseService

logger = logging.getLogger(__name__)


def normalize_duration(minutes: float) -> int:
    """
    Round to the nearest multiple of 15, halves rounding up; never below 15.

    >>> normalize_duration(40)
    45
    >>> normalize_duration(22.5)
    30
    >>> normalize_duration(5)
    15
    """
    snapped = int(math.floor(minutes / GRID_MINUTES + 0.5)) * GRID_MINUTES
    return snapped if snapped > 0 else GRID_MINUTES


class DurationResolver(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.service_repository = RepositoryFactory.create_service_catalog_repository(db)
        self.override_repository = RepositoryFactory.create_execution_time_repository(db)

    @BaseService.measure_operation("resolve")
    def resolve(self, provider_id: str, service_id: str) -> int:
        """Duration in minutes used for slot generation and booking."""
        override = self.override_repository.get_active_override(provider_id, service_id)
        if override is not None:
            return normalize_duration(override.execution_time_minutes)

        service = self.service_repository.get_service(service_id)
        if service is None:
            raise NotFoundException(f"Service {service_id} not found")
        return normalize_duration(service.reference_duration_minutes)
