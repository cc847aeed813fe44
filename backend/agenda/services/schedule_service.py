# backend/agenda/services/schedule_service.py
"""
Schedule Service

Provider-owned scheduling data: the weekly schedule, per-service rules,
execution-time overrides and date-specific blocked time. Every write runs
the same integrity checks the slot generator relies on, so bad data is
rejected here with a 400 instead of surfacing later as a 500.
"""

from dataclasses import dataclass
from datetime import date
import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.exceptions import (
    NotFoundException,
    ScheduleIntegrityError,
    ValidationException,
)
from ..domain.scheduling import (
    ALL_WEEKDAYS,
    DaySchedule,
    ServiceRules,
    day_schedule_from_row,
    default_weekly_schedule,
    ranges_to_json,
    service_rules_from_row,
)
from ..models.schedule import BlockedTimeSlot, ExecutionTimeOverride
from ..models.service import Service
from ..repositories.factory import RepositoryFactory
from ..utils.time_ranges import TimeRange, minutes_to_time
from .base import BaseService
from .duration_resolver import normalize_duration

logger = logging.getLogger(__name__)

WeeklySchedule = Dict[int, DaySchedule]


@dataclass(frozen=True)
class ExecutionTimeView:
    service_id: str
    reference_duration_minutes: int
    custom_minutes: Optional[int]
    is_active: bool
    effective_minutes: int


def _as_validation_error(exc: ScheduleIntegrityError, **extra: object) -> ValidationException:
    details = dict(exc.details)
    details.update(extra)
    return ValidationException(exc.message, details=details)


class ScheduleService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.schedule_repository = RepositoryFactory.create_schedule_repository(db)
        self.config_repository = RepositoryFactory.create_service_config_repository(db)
        self.override_repository = RepositoryFactory.create_execution_time_repository(db)
        self.service_repository = RepositoryFactory.create_service_catalog_repository(db)
        self.blocked_time_repository = RepositoryFactory.create_blocked_time_repository(db)

    def _require_service(self, service_id: str) -> Service:
        service = self.service_repository.get_service(service_id)
        if service is None:
            raise NotFoundException(f"Service {service_id} not found")
        return service

    # Weekly schedule

    def get_weekly_schedule(self, provider_id: str) -> WeeklySchedule:
        """All seven days; days without a stored row are not working."""
        rows = self.schedule_repository.get_week(provider_id)
        return {day: day_schedule_from_row(rows.get(day)) for day in sorted(ALL_WEEKDAYS)}

    @BaseService.measure_operation("replace_weekly_schedule")
    def replace_weekly_schedule(self, provider_id: str, schedule: WeeklySchedule) -> WeeklySchedule:
        """Overwrite all seven days after validating each one."""
        missing = sorted(ALL_WEEKDAYS - set(schedule))
        extra = sorted(set(schedule) - ALL_WEEKDAYS)
        if missing or extra:
            raise ValidationException(
                "Weekly schedule must contain exactly the days 0 (Sunday) to 6 (Saturday)",
                details={"missing": missing, "unexpected": extra},
            )
        for day, day_schedule in schedule.items():
            try:
                day_schedule.validate()
            except ScheduleIntegrityError as exc:
                raise _as_validation_error(exc, day_of_week=day) from exc

        with self.transaction():
            self._write_week(provider_id, schedule)

        self.log_operation("replace_weekly_schedule", provider_id=provider_id)
        return self.get_weekly_schedule(provider_id)

    @BaseService.measure_operation("create_default_schedule")
    def create_default_schedule(self, provider_id: str) -> Tuple[WeeklySchedule, bool]:
        """
        Onboarding: store the default week unless the provider already has one.

        Returns the schedule and whether it was created by this call.
        """
        if self.schedule_repository.has_schedule(provider_id):
            return self.get_weekly_schedule(provider_id), False
        with self.transaction():
            self._write_week(provider_id, default_weekly_schedule())
        self.logger.info(f"Default weekly schedule created for provider {provider_id}")
        return self.get_weekly_schedule(provider_id), True

    def _write_week(self, provider_id: str, schedule: WeeklySchedule) -> None:
        for day in sorted(schedule):
            day_schedule = schedule[day]
            self.schedule_repository.upsert_day(
                provider_id,
                day,
                is_working=day_schedule.is_working,
                work_blocks=ranges_to_json(day_schedule.work_blocks),
                break_blocks=ranges_to_json(day_schedule.break_blocks),
            )

    # Service rules

    def get_service_rules(self, provider_id: str, service_id: str) -> ServiceRules:
        self._require_service(service_id)
        return service_rules_from_row(self.config_repository.get_config(provider_id, service_id))

    @BaseService.measure_operation("update_service_rules")
    def update_service_rules(
        self, provider_id: str, service_id: str, rules: ServiceRules
    ) -> ServiceRules:
        self._require_service(service_id)
        try:
            rules.validate()
        except ScheduleIntegrityError as exc:
            raise _as_validation_error(exc) from exc

        preferences = rules.preferences
        with self.transaction():
            self.config_repository.upsert_config(
                provider_id,
                service_id,
                restrict_to_time_ranges=rules.restrict_to_time_ranges,
                time_ranges=ranges_to_json(rules.time_ranges),
                days_of_week=sorted(rules.days_of_week),
                use_intelligent_scheduling=rules.use_intelligent_scheduling,
                prioritize_even_spacing=preferences.prioritize_even_spacing,
                prioritize_consecutive_slots=preferences.prioritize_consecutive_slots,
                time_of_day_preference=(
                    preferences.time_of_day_preference.value
                    if preferences.time_of_day_preference
                    else None
                ),
            )
        self.log_operation("update_service_rules", provider_id=provider_id, service_id=service_id)
        return self.get_service_rules(provider_id, service_id)

    # Execution time

    def _execution_view(
        self, service: Service, override: Optional[ExecutionTimeOverride]
    ) -> ExecutionTimeView:
        is_active = bool(override is not None and override.is_active)
        source = override.execution_time_minutes if is_active else service.reference_duration_minutes
        return ExecutionTimeView(
            service_id=service.id,
            reference_duration_minutes=service.reference_duration_minutes,
            custom_minutes=override.execution_time_minutes if override is not None else None,
            is_active=is_active,
            effective_minutes=normalize_duration(source),
        )

    def get_execution_time(self, provider_id: str, service_id: str) -> ExecutionTimeView:
        service = self._require_service(service_id)
        return self._execution_view(
            service, self.override_repository.get_override(provider_id, service_id)
        )

    @BaseService.measure_operation("set_execution_time")
    def set_execution_time(
        self, provider_id: str, service_id: str, minutes: int
    ) -> ExecutionTimeView:
        """Store a custom execution time, snapped to the 15-minute grid."""
        service = self._require_service(service_id)
        if minutes <= 0:
            raise ValidationException(
                "Execution time must be a positive number of minutes",
                details={"executionTimeMinutes": minutes},
            )
        normalized = normalize_duration(minutes)
        with self.transaction():
            override = self.override_repository.upsert_override(provider_id, service_id, normalized)
        if normalized != minutes:
            self.logger.info(
                f"Execution time {minutes}min for {provider_id}/{service_id} "
                f"normalized to {normalized}min"
            )
        return self._execution_view(service, override)

    @BaseService.measure_operation("restore_default_execution_time")
    def restore_default_execution_time(
        self, provider_id: str, service_id: str
    ) -> ExecutionTimeView:
        service = self._require_service(service_id)
        with self.transaction():
            override = self.override_repository.deactivate(provider_id, service_id)
        return self._execution_view(service, override)

    # Blocked time

    def list_blocked_times(
        self, provider_id: str, on_date: Optional[date] = None
    ) -> List[BlockedTimeSlot]:
        if on_date is not None:
            return self.blocked_time_repository.get_for_provider_date(provider_id, on_date)
        return self.blocked_time_repository.get_for_provider(provider_id)

    @BaseService.measure_operation("add_blocked_time")
    def add_blocked_time(
        self,
        provider_id: str,
        on_date: date,
        time_range: TimeRange,
        reason: Optional[str] = None,
    ) -> BlockedTimeSlot:
        with self.transaction():
            block = self.blocked_time_repository.create(
                provider_id=provider_id,
                blocked_date=on_date,
                start_time=minutes_to_time(time_range.start),
                end_time=minutes_to_time(time_range.end),
                reason=reason,
            )
        self.log_operation(
            "add_blocked_time", provider_id=provider_id, date=on_date.isoformat(), range=str(time_range)
        )
        return block

    @BaseService.measure_operation("remove_blocked_time")
    def remove_blocked_time(self, provider_id: str, block_id: str) -> None:
        block = self.blocked_time_repository.get_by_id(block_id)
        if block is None or block.provider_id != provider_id:
            raise NotFoundException(f"Blocked time {block_id} not found")
        with self.transaction():
            self.blocked_time_repository.delete_entity(block)
