"""Blocked time schemas."""

import datetime
from typing import Optional

from pydantic import Field, model_validator

from ..models.schedule import BlockedTimeSlot
from ..utils.time_ranges import TimeRange, parse_hhmm
from ._strict_base import StrictModel, StrictRequestModel
from .common import HHMM

DateType = datetime.date


class BlockedTimeCreate(StrictRequestModel):
    date: DateType
    start_time: HHMM
    end_time: HHMM
    reason: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def _check_order(self) -> "BlockedTimeCreate":
        if parse_hhmm(self.start_time) >= parse_hhmm(self.end_time):
            raise ValueError("start_time must be before end_time")
        return self

    def time_range(self) -> TimeRange:
        return TimeRange.from_hhmm(self.start_time, self.end_time)


class BlockedTimeResponse(StrictModel):
    id: str
    provider_id: str
    date: DateType
    start_time: str
    end_time: str
    reason: Optional[str] = None

    @classmethod
    def from_orm_model(cls, block: BlockedTimeSlot) -> "BlockedTimeResponse":
        return cls(
            id=block.id,
            provider_id=block.provider_id,
            date=block.blocked_date,
            start_time=block.start_time.strftime("%H:%M"),
            end_time=block.end_time.strftime("%H:%M"),
            reason=block.reason,
        )
