"""
Plain value objects for schedule data.

The slot generator works on these objects rather than ORM rows so it stays a
pure function of its inputs. Converters at the bottom of the module turn
stored rows into value objects and report malformed data as
``ScheduleIntegrityError``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from ..core.exceptions import ScheduleIntegrityError
from ..utils.time_ranges import TimeRange, find_overlap, subtract_ranges

ALL_WEEKDAYS: FrozenSet[int] = frozenset(range(7))

NOON = 12 * 60
EVENING = 18 * 60


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"

    @classmethod
    def for_minute(cls, minute: int) -> "TimeOfDay":
        if minute < NOON:
            return cls.MORNING
        if minute < EVENING:
            return cls.AFTERNOON
        return cls.EVENING


@dataclass(frozen=True)
class SchedulingPreferences:
    prioritize_even_spacing: bool = True
    prioritize_consecutive_slots: bool = False
    time_of_day_preference: Optional[TimeOfDay] = None


@dataclass(frozen=True)
class ServiceRules:
    """Per-(provider, service) restrictions. The defaults mean 'no restriction'."""

    restrict_to_time_ranges: bool = False
    time_ranges: Tuple[TimeRange, ...] = ()
    days_of_week: FrozenSet[int] = ALL_WEEKDAYS
    use_intelligent_scheduling: bool = True
    preferences: SchedulingPreferences = field(default_factory=SchedulingPreferences)

    def validate(self) -> None:
        if self.restrict_to_time_ranges and not self.time_ranges:
            raise ScheduleIntegrityError("Restricted service has no time ranges")
        if not self.days_of_week:
            raise ScheduleIntegrityError("Service must be offered on at least one day")
        invalid = [d for d in self.days_of_week if d not in ALL_WEEKDAYS]
        if invalid:
            raise ScheduleIntegrityError(
                "Days of week must be between 0 and 6", details={"invalid": sorted(invalid)}
            )

    def allows_weekday(self, weekday: int) -> bool:
        return weekday in self.days_of_week


DEFAULT_SERVICE_RULES = ServiceRules()


@dataclass(frozen=True)
class DaySchedule:
    is_working: bool = False
    work_blocks: Tuple[TimeRange, ...] = ()
    break_blocks: Tuple[TimeRange, ...] = ()

    def validate(self) -> None:
        """Check the weekday invariants, raising ``ScheduleIntegrityError``."""
        if not self.is_working:
            return
        if not self.work_blocks:
            raise ScheduleIntegrityError("Working day has no work blocks")
        overlap = find_overlap(self.work_blocks)
        if overlap:
            raise ScheduleIntegrityError(
                f"Work blocks {overlap[0]} and {overlap[1]} overlap",
                details={"blocks": [str(overlap[0]), str(overlap[1])]},
            )
        overlap = find_overlap(self.break_blocks)
        if overlap:
            raise ScheduleIntegrityError(
                f"Break blocks {overlap[0]} and {overlap[1]} overlap",
                details={"blocks": [str(overlap[0]), str(overlap[1])]},
            )
        for brk in self.break_blocks:
            if not any(work.contains(brk) for work in self.work_blocks):
                raise ScheduleIntegrityError(
                    f"Break {brk} is outside every work block",
                    details={"break": str(brk)},
                )

    def available_windows(self) -> List[TimeRange]:
        """Work blocks with the break blocks carved out."""
        if not self.is_working:
            return []
        self.validate()
        return subtract_ranges(self.work_blocks, self.break_blocks)


NOT_WORKING = DaySchedule()


def default_weekly_schedule() -> Dict[int, DaySchedule]:
    """Schedule every new provider starts with."""
    weekday = DaySchedule(
        is_working=True,
        work_blocks=(TimeRange.from_hhmm("09:00", "17:00"),),
        break_blocks=(TimeRange.from_hhmm("12:00", "13:00"),),
    )
    saturday = DaySchedule(is_working=True, work_blocks=(TimeRange.from_hhmm("09:00", "12:00"),))
    schedule = {day: weekday for day in range(1, 6)}
    schedule[0] = DaySchedule(is_working=False)
    schedule[6] = saturday
    return schedule


def ranges_from_json(raw: Optional[Iterable[Any]], what: str) -> Tuple[TimeRange, ...]:
    """Parse stored ``[{"start": "HH:MM", "end": "HH:MM"}, ...]`` into ranges."""
    ranges: List[TimeRange] = []
    for item in raw or ():
        try:
            ranges.append(TimeRange.from_dict(item))
        except ValueError as exc:
            raise ScheduleIntegrityError(
                f"Malformed {what}: {exc}", details={"value": repr(item)}
            ) from exc
    return tuple(sorted(ranges))


def ranges_to_json(ranges: Sequence[TimeRange]) -> List[Dict[str, str]]:
    return [r.to_dict() for r in sorted(ranges)]


def day_schedule_from_row(row: Any) -> DaySchedule:
    if row is None:
        return NOT_WORKING
    return DaySchedule(
        is_working=bool(row.is_working),
        work_blocks=ranges_from_json(row.work_blocks, "work block"),
        break_blocks=ranges_from_json(row.break_blocks, "break block"),
    )


def service_rules_from_row(row: Any) -> ServiceRules:
    if row is None:
        return DEFAULT_SERVICE_RULES
    preference = row.time_of_day_preference
    try:
        time_of_day = TimeOfDay(preference) if preference else None
    except ValueError as exc:
        raise ScheduleIntegrityError(
            f"Unknown time-of-day preference {preference!r}"
        ) from exc
    return ServiceRules(
        restrict_to_time_ranges=bool(row.restrict_to_time_ranges),
        time_ranges=ranges_from_json(row.time_ranges, "service time range"),
        days_of_week=frozenset(int(d) for d in (row.days_of_week or ())),
        use_intelligent_scheduling=bool(row.use_intelligent_scheduling),
        preferences=SchedulingPreferences(
            prioritize_even_spacing=bool(row.prioritize_even_spacing),
            prioritize_consecutive_slots=bool(row.prioritize_consecutive_slots),
            time_of_day_preference=time_of_day,
        ),
    )
