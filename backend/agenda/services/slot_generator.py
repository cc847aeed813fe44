# backend/agenda/services/slot_generator.py
"""
Slot generation for one provider, service and date.

The module is split in two:

* pure functions (``free_windows``, ``generate_candidate_slots``,
  ``rank_slots``) that compute slots from value objects only, and
* ``SlotGenerator``, which loads an ``AvailabilitySnapshot`` from the
  database and hands it to those functions.

The booking committer reuses the same functions under its lock so the slot
list a client saw and the check performed at commit time cannot drift apart.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.exceptions import NotFoundException
from ..domain.scheduling import (
    DaySchedule,
    ServiceRules,
    TimeOfDay,
    day_schedule_from_row,
    service_rules_from_row,
)
from ..models.service import Service
from ..repositories.factory import RepositoryFactory
from ..utils.time_ranges import (
    GRID_MINUTES,
    MINUTES_PER_DAY,
    TimeRange,
    intersect_ranges,
    subtract_ranges,
    time_to_minutes,
    weekday_index,
)
from .base import BaseService
from .duration_resolver import DurationResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AvailabilitySnapshot:
    """Everything slot generation needs for one (provider, service, date)."""

    provider_id: str
    service_id: str
    day: date
    day_schedule: DaySchedule
    rules: ServiceRules
    occupied: Tuple[TimeRange, ...]
    duration: int
    service_active: bool = True

    @property
    def weekday(self) -> int:
        return weekday_index(self.day)

    def with_occupied(self, extra: TimeRange) -> "AvailabilitySnapshot":
        return replace(self, occupied=tuple(sorted(self.occupied + (extra,))))


@dataclass(frozen=True)
class SlotCheck:
    is_available: bool
    start: int
    end: Optional[int]  # None when the service would run past midnight


def free_windows(
    day_schedule: DaySchedule,
    rules: ServiceRules,
    weekday: int,
    occupied: Iterable[TimeRange] = (),
) -> List[TimeRange]:
    """
    Free windows of a day for a service.

    Raises:
        ScheduleIntegrityError: stored schedule or rules violate their invariants
    """
    if not day_schedule.is_working:
        return []
    rules.validate()
    if not rules.allows_weekday(weekday):
        return []

    windows = day_schedule.available_windows()
    if rules.restrict_to_time_ranges:
        windows = intersect_ranges(windows, rules.time_ranges)
    return subtract_ranges(windows, occupied)


def slots_in_windows(windows: Iterable[TimeRange], duration: int) -> List[TimeRange]:
    """Every grid-step start inside each window where ``duration`` still fits."""
    slots: List[TimeRange] = []
    for window in windows:
        offset = 0
        while offset + duration <= window.duration:
            start = window.start + offset
            slots.append(TimeRange(start, start + duration))
            offset += GRID_MINUTES
    slots.sort()
    return slots


def generate_candidate_slots(snapshot: AvailabilitySnapshot) -> List[TimeRange]:
    """The full, start-ordered candidate set. Used for lookups and diffs."""
    if not snapshot.service_active:
        return []
    windows = free_windows(
        snapshot.day_schedule, snapshot.rules, snapshot.weekday, snapshot.occupied
    )
    return slots_in_windows(windows, snapshot.duration)


def _evenly_spaced(slots: Sequence[TimeRange]) -> List[TimeRange]:
    kept: List[TimeRange] = []
    for slot in slots:
        if not kept or slot.start >= kept[-1].end:
            kept.append(slot)
    return kept


def _touches_window_edge(slot: TimeRange, windows: Sequence[TimeRange]) -> bool:
    for window in windows:
        if window.contains(slot):
            return slot.start == window.start or slot.end == window.end
    return False


def rank_slots(
    slots: Sequence[TimeRange],
    rules: ServiceRules,
    windows: Sequence[TimeRange] = (),
) -> List[TimeRange]:
    """
    Presentation order for a candidate set.

    Ranking never adds slots and never reorders them when intelligent
    scheduling is off. Even spacing picks a non-overlapping subset, the
    consecutive preference pulls slots adjacent to existing bookings or
    window edges forward, and the time-of-day preference is applied last so
    it dominates.
    """
    ranked = list(slots)
    if not rules.use_intelligent_scheduling:
        return ranked

    preferences = rules.preferences
    if preferences.prioritize_even_spacing:
        ranked = _evenly_spaced(ranked)
    if preferences.prioritize_consecutive_slots and windows:
        ranked.sort(key=lambda slot: 0 if _touches_window_edge(slot, windows) else 1)
    if preferences.time_of_day_preference is not None:
        preferred: TimeOfDay = preferences.time_of_day_preference
        ranked.sort(key=lambda slot: 0 if TimeOfDay.for_minute(slot.start) == preferred else 1)
    return ranked


def ranked_slots_for(snapshot: AvailabilitySnapshot) -> List[TimeRange]:
    if not snapshot.service_active:
        return []
    windows = free_windows(
        snapshot.day_schedule, snapshot.rules, snapshot.weekday, snapshot.occupied
    )
    return rank_slots(slots_in_windows(windows, snapshot.duration), snapshot.rules, windows)


def find_slot(slots: Iterable[TimeRange], start_minute: int) -> Optional[TimeRange]:
    for slot in slots:
        if slot.start == start_minute:
            return slot
    return None


class SlotGenerator(BaseService):
    """Loads provider data and produces bookable slots."""

    def __init__(self, db: Session, duration_resolver: Optional[DurationResolver] = None):
        super().__init__(db)
        self.schedule_repository = RepositoryFactory.create_schedule_repository(db)
        self.config_repository = RepositoryFactory.create_service_config_repository(db)
        self.service_repository = RepositoryFactory.create_service_catalog_repository(db)
        self.appointment_repository = RepositoryFactory.create_appointment_repository(db)
        self.blocked_time_repository = RepositoryFactory.create_blocked_time_repository(db)
        self.duration_resolver = duration_resolver or DurationResolver(db)

    def get_service(self, service_id: str) -> Service:
        service = self.service_repository.get_service(service_id)
        if service is None:
            raise NotFoundException(f"Service {service_id} not found")
        return service

    def load_snapshot(
        self,
        provider_id: str,
        service_id: str,
        day: date,
        *,
        exclude_appointment_id: Optional[str] = None,
    ) -> AvailabilitySnapshot:
        """
        Read the current state needed for generation.

        ``exclude_appointment_id`` leaves one appointment out of the occupied
        set, which is how a reschedule checks a target slot against everything
        except itself.
        """
        service = self.get_service(service_id)
        weekday = weekday_index(day)
        day_schedule = day_schedule_from_row(self.schedule_repository.get_day(provider_id, weekday))
        rules = service_rules_from_row(self.config_repository.get_config(provider_id, service_id))

        appointments = self.appointment_repository.get_active_for_provider_date(
            provider_id, day, exclude_appointment_id=exclude_appointment_id
        )
        blocks = self.blocked_time_repository.get_for_provider_date(provider_id, day)
        occupied = [
            TimeRange(time_to_minutes(row.start_time), time_to_minutes(row.end_time))
            for row in list(appointments) + list(blocks)
        ]

        return AvailabilitySnapshot(
            provider_id=provider_id,
            service_id=service_id,
            day=day,
            day_schedule=day_schedule,
            rules=rules,
            occupied=tuple(sorted(occupied)),
            duration=self.duration_resolver.resolve(provider_id, service_id),
            service_active=bool(service.is_active),
        )

    @BaseService.measure_operation("generate")
    def generate(self, provider_id: str, service_id: str, day: date) -> List[TimeRange]:
        """Ranked slots for presentation."""
        snapshot = self.load_snapshot(provider_id, service_id, day)
        slots = ranked_slots_for(snapshot)
        self.logger.debug(
            "Generated %d slots for provider %s service %s on %s",
            len(slots),
            provider_id,
            service_id,
            day.isoformat(),
        )
        return slots

    @BaseService.measure_operation("candidate_slots")
    def candidate_slots(self, provider_id: str, service_id: str, day: date) -> List[TimeRange]:
        """The unranked full candidate set."""
        return generate_candidate_slots(self.load_snapshot(provider_id, service_id, day))

    @BaseService.measure_operation("check")
    def check(self, provider_id: str, service_id: str, day: date, start_minute: int) -> SlotCheck:
        """Whether a slot starting at ``start_minute`` is bookable right now."""
        snapshot = self.load_snapshot(provider_id, service_id, day)
        end_minute = start_minute + snapshot.duration
        slot = find_slot(generate_candidate_slots(snapshot), start_minute)
        return SlotCheck(
            is_available=slot is not None,
            start=start_minute,
            end=end_minute if end_minute < MINUTES_PER_DAY else None,
        )
