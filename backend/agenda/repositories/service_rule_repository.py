# backend/agenda/repositories/service_rule_repository.py
"""
Service rule repositories.

Per-(provider, service) restriction configs and customized execution times.
Both are keyed by the composite primary key ``(provider_id, service_id)`` and
follow last-write-wins semantics.
"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..models.schedule import ExecutionTimeOverride, ServiceScheduleConfig
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ServiceScheduleConfigRepository(BaseRepository[ServiceScheduleConfig]):
    def __init__(self, db: Session):
        super().__init__(db, ServiceScheduleConfig)

    def get_config(self, provider_id: str, service_id: str) -> Optional[ServiceScheduleConfig]:
        return self.get_by_id((provider_id, service_id))

    def upsert_config(self, provider_id: str, service_id: str, **values: Any) -> ServiceScheduleConfig:
        row = self.get_config(provider_id, service_id)
        if row is None:
            return self.create(provider_id=provider_id, service_id=service_id, **values)
        for key, value in values.items():
            setattr(row, key, value)
        self.flush()
        return row


class ExecutionTimeOverrideRepository(BaseRepository[ExecutionTimeOverride]):
    def __init__(self, db: Session):
        super().__init__(db, ExecutionTimeOverride)

    def get_override(self, provider_id: str, service_id: str) -> Optional[ExecutionTimeOverride]:
        return self.get_by_id((provider_id, service_id))

    def get_active_override(
        self, provider_id: str, service_id: str
    ) -> Optional[ExecutionTimeOverride]:
        row = self.get_override(provider_id, service_id)
        if row is None or not row.is_active:
            return None
        return row

    def upsert_override(
        self, provider_id: str, service_id: str, execution_time_minutes: int
    ) -> ExecutionTimeOverride:
        row = self.get_override(provider_id, service_id)
        if row is None:
            return self.create(
                provider_id=provider_id,
                service_id=service_id,
                execution_time_minutes=execution_time_minutes,
                is_active=True,
            )
        row.execution_time_minutes = execution_time_minutes
        row.is_active = True
        self.flush()
        return row

    def deactivate(self, provider_id: str, service_id: str) -> Optional[ExecutionTimeOverride]:
        """Soft removal: the stored value is kept, but no longer applies."""
        row = self.get_override(provider_id, service_id)
        if row is None:
            return None
        row.is_active = False
        self.flush()
        return row
