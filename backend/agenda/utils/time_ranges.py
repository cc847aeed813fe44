"""
Minute-of-day interval arithmetic.

Every range is half-open ``[start, end)`` in minutes since midnight, with
``0 <= start < end`` and both values below ``MINUTES_PER_DAY``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
import re
from typing import Any, Iterable, List, Mapping

MINUTES_PER_DAY = 24 * 60
GRID_MINUTES = 15

_HHMM_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)(?::00)?$")


def parse_hhmm(value: str) -> int:
    """Convert 'HH:MM' (optionally 'HH:MM:00') to minutes since midnight."""
    if not isinstance(value, str):
        raise ValueError(f"time must be a 'HH:MM' string, got {value!r}")
    match = _HHMM_RE.fullmatch(value.strip())
    if not match:
        raise ValueError(f"time must match HH:MM, got {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_hhmm(minutes: int) -> str:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"minutes out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def minutes_to_time(minutes: int) -> time:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"minutes out of range: {minutes}")
    return time(minutes // 60, minutes % 60)


def time_to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def weekday_index(day: date) -> int:
    """Weekday with Sunday as 0 and Saturday as 6."""
    return (day.weekday() + 1) % 7


@dataclass(frozen=True, order=True)
class TimeRange:
    start: int
    end: int

    def __post_init__(self) -> None:
        if not isinstance(self.start, int) or not isinstance(self.end, int):
            raise ValueError("time range bounds must be integers")
        if not (0 <= self.start < MINUTES_PER_DAY and 0 <= self.end < MINUTES_PER_DAY):
            raise ValueError(f"time range out of day bounds: {self.start}-{self.end}")
        if self.start >= self.end:
            raise ValueError(
                f"time range start must be before end: {format_hhmm(self.start)}-"
                f"{format_hhmm(self.end)}"
            )

    @classmethod
    def from_hhmm(cls, start: str, end: str) -> "TimeRange":
        return cls(parse_hhmm(start), parse_hhmm(end))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TimeRange":
        """Accept the stored/wire shape ``{"start": "HH:MM", "end": "HH:MM"}``."""
        try:
            start, end = data["start"], data["end"]
        except (KeyError, TypeError) as exc:
            raise ValueError(f"time range requires start and end: {data!r}") from exc
        return cls.from_hhmm(start, end)

    def to_dict(self) -> dict[str, str]:
        return {"start": format_hhmm(self.start), "end": format_hhmm(self.end)}

    @property
    def duration(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "TimeRange") -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, other: "TimeRange") -> bool:
        return self.start <= other.start and other.end <= self.end

    def __str__(self) -> str:
        return f"{format_hhmm(self.start)}-{format_hhmm(self.end)}"


def merge_ranges(ranges: Iterable[TimeRange]) -> List[TimeRange]:
    """Sort and coalesce overlapping or touching ranges."""
    ordered = sorted(ranges)
    if not ordered:
        return []
    merged: List[TimeRange] = [ordered[0]]
    for current in ordered[1:]:
        last = merged[-1]
        if current.start <= last.end:
            if current.end > last.end:
                merged[-1] = TimeRange(last.start, current.end)
        else:
            merged.append(current)
    return merged


def subtract_ranges(base: Iterable[TimeRange], holes: Iterable[TimeRange]) -> List[TimeRange]:
    """Return ``base`` with every minute covered by ``holes`` carved out."""
    cut = merge_ranges(holes)
    result: List[TimeRange] = []
    for window in merge_ranges(base):
        cursor = window.start
        for hole in cut:
            if hole.end <= cursor:
                continue
            if hole.start >= window.end:
                break
            if hole.start > cursor:
                result.append(TimeRange(cursor, hole.start))
            cursor = max(cursor, hole.end)
            if cursor >= window.end:
                break
        if cursor < window.end:
            result.append(TimeRange(cursor, window.end))
    return result


def intersect_ranges(left: Iterable[TimeRange], right: Iterable[TimeRange]) -> List[TimeRange]:
    """Minutes covered by both inputs, as merged ranges."""
    a = merge_ranges(left)
    b = merge_ranges(right)
    result: List[TimeRange] = []
    i = j = 0
    while i < len(a) and j < len(b):
        start = max(a[i].start, b[j].start)
        end = min(a[i].end, b[j].end)
        if start < end:
            result.append(TimeRange(start, end))
        if a[i].end < b[j].end:
            i += 1
        else:
            j += 1
    return result


def find_overlap(ranges: Iterable[TimeRange]) -> tuple[TimeRange, TimeRange] | None:
    """Return the first pair of overlapping ranges (touching edges are fine)."""
    ordered = sorted(ranges)
    for previous, current in zip(ordered, ordered[1:]):
        if current.start < previous.end:
            return previous, current
    return None
