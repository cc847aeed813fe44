"""
Provider scheduling schemas.

Request models convert to domain value objects with ``to_domain()``;
response models are built from them with ``from_domain()``.
"""

from typing import Dict, List, Optional

from pydantic import Field, field_validator

from ..domain.scheduling import (
    DaySchedule,
    SchedulingPreferences,
    ServiceRules,
    TimeOfDay,
)
from ._strict_base import StrictModel, StrictRequestModel
from .common import TimeRangeSchema


class DayScheduleSchema(StrictModel):
    day_of_week: int = Field(ge=0, le=6, description="0=Sunday .. 6=Saturday")
    is_working: bool
    work_blocks: List[TimeRangeSchema] = Field(default_factory=list)
    break_blocks: List[TimeRangeSchema] = Field(default_factory=list)

    def to_domain(self) -> DaySchedule:
        return DaySchedule(
            is_working=self.is_working,
            work_blocks=tuple(sorted(b.to_domain() for b in self.work_blocks)),
            break_blocks=tuple(sorted(b.to_domain() for b in self.break_blocks)),
        )

    @classmethod
    def from_domain(cls, day_of_week: int, value: DaySchedule) -> "DayScheduleSchema":
        return cls(
            day_of_week=day_of_week,
            is_working=value.is_working,
            work_blocks=[TimeRangeSchema.from_domain(b) for b in value.work_blocks],
            break_blocks=[TimeRangeSchema.from_domain(b) for b in value.break_blocks],
        )


class WeeklyScheduleUpdate(StrictRequestModel):
    """Replaces the whole week; exactly one entry per weekday."""

    days: List[DayScheduleSchema] = Field(min_length=7, max_length=7)

    @field_validator("days")
    @classmethod
    def _one_entry_per_day(cls, v: List[DayScheduleSchema]) -> List[DayScheduleSchema]:
        seen = sorted(d.day_of_week for d in v)
        if seen != list(range(7)):
            raise ValueError("days must contain each day_of_week from 0 to 6 exactly once")
        return v

    def to_domain(self) -> Dict[int, DaySchedule]:
        return {d.day_of_week: d.to_domain() for d in self.days}


class WeeklyScheduleResponse(StrictModel):
    provider_id: str
    days: List[DayScheduleSchema]

    @classmethod
    def from_domain(
        cls, provider_id: str, schedule: Dict[int, DaySchedule]
    ) -> "WeeklyScheduleResponse":
        return cls(
            provider_id=provider_id,
            days=[DayScheduleSchema.from_domain(day, schedule[day]) for day in sorted(schedule)],
        )


class DefaultScheduleResponse(WeeklyScheduleResponse):
    created: bool


class SchedulingPreferencesSchema(StrictModel):
    prioritize_even_spacing: bool = True
    prioritize_consecutive_slots: bool = False
    time_of_day_preference: Optional[TimeOfDay] = None


class ServiceScheduleConfigSchema(StrictModel):
    restrict_to_time_ranges: bool = False
    time_ranges: List[TimeRangeSchema] = Field(default_factory=list)
    days_of_week: List[int] = Field(default_factory=lambda: list(range(7)), min_length=1)
    use_intelligent_scheduling: bool = True
    scheduling_preferences: SchedulingPreferencesSchema = Field(
        default_factory=SchedulingPreferencesSchema
    )

    @field_validator("days_of_week")
    @classmethod
    def _valid_days(cls, v: List[int]) -> List[int]:
        invalid = [d for d in v if d < 0 or d > 6]
        if invalid:
            raise ValueError(f"days_of_week values must be between 0 and 6, got {invalid}")
        return sorted(set(v))

    def to_domain(self) -> ServiceRules:
        prefs = self.scheduling_preferences
        return ServiceRules(
            restrict_to_time_ranges=self.restrict_to_time_ranges,
            time_ranges=tuple(sorted(r.to_domain() for r in self.time_ranges)),
            days_of_week=frozenset(self.days_of_week),
            use_intelligent_scheduling=self.use_intelligent_scheduling,
            preferences=SchedulingPreferences(
                prioritize_even_spacing=prefs.prioritize_even_spacing,
                prioritize_consecutive_slots=prefs.prioritize_consecutive_slots,
                time_of_day_preference=prefs.time_of_day_preference,
            ),
        )

    @classmethod
    def from_domain(cls, rules: ServiceRules) -> "ServiceScheduleConfigSchema":
        prefs = rules.preferences
        return cls(
            restrict_to_time_ranges=rules.restrict_to_time_ranges,
            time_ranges=[TimeRangeSchema.from_domain(r) for r in rules.time_ranges],
            days_of_week=sorted(rules.days_of_week),
            use_intelligent_scheduling=rules.use_intelligent_scheduling,
            scheduling_preferences=SchedulingPreferencesSchema(
                prioritize_even_spacing=prefs.prioritize_even_spacing,
                prioritize_consecutive_slots=prefs.prioritize_consecutive_slots,
                time_of_day_preference=prefs.time_of_day_preference,
            ),
        )


class ServiceScheduleConfigUpdate(ServiceScheduleConfigSchema):
    """Request body for PUT schedule-config (same shape as the response)."""


class ExecutionTimeUpdate(StrictRequestModel):
    execution_time_minutes: int = Field(gt=0, le=24 * 60)


class ExecutionTimeResponse(StrictModel):
    service_id: str
    reference_duration_minutes: int
    custom_minutes: Optional[int] = None
    is_active: bool
    effective_minutes: int
