"""Shared field types for the scheduling schemas."""

from typing import Annotated, Any, Dict

from pydantic import Field, model_validator

from ..utils.time_ranges import TimeRange, parse_hhmm
from ._strict_base import StrictModel

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

HHMM = Annotated[str, Field(pattern=HHMM_PATTERN, examples=["09:00"])]


class TimeRangeSchema(StrictModel):
    """``{"start": "HH:MM", "end": "HH:MM"}`` with start before end."""

    start: HHMM
    end: HHMM

    @model_validator(mode="after")
    def _check_order(self) -> "TimeRangeSchema":
        if parse_hhmm(self.start) >= parse_hhmm(self.end):
            raise ValueError(f"start ({self.start}) must be before end ({self.end})")
        return self

    def to_domain(self) -> TimeRange:
        return TimeRange.from_hhmm(self.start, self.end)

    @classmethod
    def from_domain(cls, value: TimeRange) -> "TimeRangeSchema":
        data: Dict[str, Any] = value.to_dict()
        return cls(**data)
