# backend/agenda/repositories/schedule_repository.py
"""
Schedule Repository

Data access for the provider's recurring weekly schedule. One row per
``(provider_id, day_of_week)``; rows are overwritten, never deleted.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.schedule import ProviderDaySchedule
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ScheduleRepository(BaseRepository[ProviderDaySchedule]):
    """Repository for provider weekly schedules."""

    def __init__(self, db: Session):
        super().__init__(db, ProviderDaySchedule)

    def get_day(self, provider_id: str, day_of_week: int) -> Optional[ProviderDaySchedule]:
        return self.get_by_id((provider_id, day_of_week))

    def get_week(self, provider_id: str) -> Dict[int, ProviderDaySchedule]:
        """All stored weekdays for a provider keyed by day_of_week."""
        rows = self._execute_query(
            self._build_query()
            .filter(ProviderDaySchedule.provider_id == provider_id)
            .order_by(ProviderDaySchedule.day_of_week)
        )
        return {row.day_of_week: row for row in rows}

    def has_schedule(self, provider_id: str) -> bool:
        try:
            return (
                self._build_query()
                .filter(ProviderDaySchedule.provider_id == provider_id)
                .first()
                is not None
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking schedule for {provider_id}: {str(e)}")
            raise RepositoryException(f"Failed to check schedule: {str(e)}")

    def upsert_day(
        self,
        provider_id: str,
        day_of_week: int,
        *,
        is_working: bool,
        work_blocks: List[Dict[str, Any]],
        break_blocks: List[Dict[str, Any]],
    ) -> ProviderDaySchedule:
        """Overwrite (or create) one weekday. Caller commits."""
        row = self.get_day(provider_id, day_of_week)
        if row is None:
            return self.create(
                provider_id=provider_id,
                day_of_week=day_of_week,
                is_working=is_working,
                work_blocks=work_blocks,
                break_blocks=break_blocks,
            )
        row.is_working = is_working
        row.work_blocks = work_blocks
        row.break_blocks = break_blocks
        self.flush()
        return row
