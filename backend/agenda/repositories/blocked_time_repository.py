# backend/agenda/repositories/blocked_time_repository.py
"""Date-specific blocked time ranges of a provider."""

from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.schedule import BlockedTimeSlot
from .base_repository import BaseRepository


class BlockedTimeRepository(BaseRepository[BlockedTimeSlot]):
    def __init__(self, db: Session):
        super().__init__(db, BlockedTimeSlot)

    def get_for_provider_date(self, provider_id: str, blocked_date: date) -> List[BlockedTimeSlot]:
        return self._execute_query(
            self._build_query()
            .filter(
                BlockedTimeSlot.provider_id == provider_id,
                BlockedTimeSlot.blocked_date == blocked_date,
            )
            .order_by(BlockedTimeSlot.start_time)
        )

    def get_for_provider(
        self, provider_id: str, from_date: Optional[date] = None
    ) -> List[BlockedTimeSlot]:
        query = self._build_query().filter(BlockedTimeSlot.provider_id == provider_id)
        if from_date is not None:
            query = query.filter(BlockedTimeSlot.blocked_date >= from_date)
        return self._execute_query(
            query.order_by(BlockedTimeSlot.blocked_date, BlockedTimeSlot.start_time)
        )
