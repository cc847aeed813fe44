"""Provider-owned scheduling data: weekly schedule, rules, execution time, blocks."""

import pytest

from agenda.core.exceptions import NotFoundException, ValidationException
from agenda.domain.scheduling import (
    DaySchedule,
    SchedulingPreferences,
    ServiceRules,
    TimeOfDay,
    default_weekly_schedule,
)
from agenda.services.schedule_service import ScheduleService
from agenda.utils.time_ranges import TimeRange
from tests.helpers.scheduling import MONDAY, PROVIDER_ID, next_weekday, ranges


@pytest.fixture
def schedule_service(db):
    return ScheduleService(db)


def _week(overrides=None):
    week = {day: DaySchedule() for day in range(7)}
    week.update(overrides or {})
    return week


class TestWeeklySchedule:
    def test_unknown_provider_has_seven_non_working_days(self, schedule_service):
        week = schedule_service.get_weekly_schedule("nobody")
        assert sorted(week) == list(range(7))
        assert not any(day.is_working for day in week.values())

    def test_replace_and_read_back(self, schedule_service):
        monday = DaySchedule(
            is_working=True,
            work_blocks=tuple(ranges(("08:00", "12:00"), ("13:00", "18:00"))),
            break_blocks=tuple(ranges(("10:00", "10:15"))),
        )

        saved = schedule_service.replace_weekly_schedule(PROVIDER_ID, _week({1: monday}))

        assert saved[MONDAY] == monday
        assert not saved[0].is_working

    def test_replace_requires_every_day(self, schedule_service):
        week = _week()
        del week[3]
        with pytest.raises(ValidationException):
            schedule_service.replace_weekly_schedule(PROVIDER_ID, week)

    def test_overlapping_work_blocks_rejected(self, schedule_service):
        bad = DaySchedule(
            is_working=True, work_blocks=tuple(ranges(("09:00", "12:00"), ("11:00", "13:00")))
        )
        with pytest.raises(ValidationException) as exc_info:
            schedule_service.replace_weekly_schedule(PROVIDER_ID, _week({2: bad}))
        assert exc_info.value.details["day_of_week"] == 2
        assert schedule_service.get_weekly_schedule(PROVIDER_ID)[2] == DaySchedule()

    def test_working_day_without_blocks_rejected(self, schedule_service):
        with pytest.raises(ValidationException):
            schedule_service.replace_weekly_schedule(
                PROVIDER_ID, _week({4: DaySchedule(is_working=True)})
            )

    def test_break_outside_work_rejected(self, schedule_service):
        bad = DaySchedule(
            is_working=True,
            work_blocks=tuple(ranges(("09:00", "12:00"))),
            break_blocks=tuple(ranges(("12:30", "13:00"))),
        )
        with pytest.raises(ValidationException):
            schedule_service.replace_weekly_schedule(PROVIDER_ID, _week({5: bad}))

    def test_default_schedule_is_created_once(self, schedule_service):
        week, created = schedule_service.create_default_schedule(PROVIDER_ID)
        assert created
        assert week == default_weekly_schedule()

        again, created_again = schedule_service.create_default_schedule(PROVIDER_ID)
        assert not created_again
        assert again == week


class TestServiceRules:
    def test_defaults_without_config(self, schedule_service, service):
        assert schedule_service.get_service_rules(PROVIDER_ID, service.id) == ServiceRules()

    def test_update_round_trips(self, schedule_service, service):
        rules = ServiceRules(
            restrict_to_time_ranges=True,
            time_ranges=tuple(ranges(("14:00", "18:00"))),
            days_of_week=frozenset({2, 4}),
            use_intelligent_scheduling=True,
            preferences=SchedulingPreferences(
                prioritize_even_spacing=False,
                prioritize_consecutive_slots=True,
                time_of_day_preference=TimeOfDay.EVENING,
            ),
        )

        assert schedule_service.update_service_rules(PROVIDER_ID, service.id, rules) == rules

    def test_restricted_without_ranges_rejected(self, schedule_service, service):
        with pytest.raises(ValidationException):
            schedule_service.update_service_rules(
                PROVIDER_ID, service.id, ServiceRules(restrict_to_time_ranges=True)
            )

    def test_empty_days_rejected(self, schedule_service, service):
        with pytest.raises(ValidationException):
            schedule_service.update_service_rules(
                PROVIDER_ID, service.id, ServiceRules(days_of_week=frozenset())
            )

    def test_unknown_service(self, schedule_service):
        with pytest.raises(NotFoundException):
            schedule_service.get_service_rules(PROVIDER_ID, "01HZZZZZZZZZZZZZZZZZZZZZZZ")


class TestExecutionTime:
    def test_reference_when_not_customized(self, schedule_service, make_service):
        service = make_service(duration=30)
        view = schedule_service.get_execution_time(PROVIDER_ID, service.id)
        assert view.custom_minutes is None
        assert not view.is_active
        assert view.effective_minutes == 30

    def test_set_normalizes_to_grid(self, schedule_service, make_service):
        service = make_service(duration=30)
        view = schedule_service.set_execution_time(PROVIDER_ID, service.id, 40)
        assert view.custom_minutes == 45
        assert view.is_active
        assert view.effective_minutes == 45

    def test_restore_default_keeps_the_value(self, schedule_service, make_service):
        service = make_service(duration=30)
        schedule_service.set_execution_time(PROVIDER_ID, service.id, 90)

        view = schedule_service.restore_default_execution_time(PROVIDER_ID, service.id)

        assert view.custom_minutes == 90
        assert not view.is_active
        assert view.effective_minutes == 30

    def test_non_positive_rejected(self, schedule_service, service):
        with pytest.raises(ValidationException):
            schedule_service.set_execution_time(PROVIDER_ID, service.id, 0)


class TestBlockedTime:
    def test_add_list_remove(self, schedule_service):
        day = next_weekday(MONDAY)
        block = schedule_service.add_blocked_time(
            PROVIDER_ID, day, TimeRange.from_hhmm("14:00", "15:00"), reason="errand"
        )

        assert [b.id for b in schedule_service.list_blocked_times(PROVIDER_ID, day)] == [block.id]
        assert [b.id for b in schedule_service.list_blocked_times(PROVIDER_ID)] == [block.id]

        schedule_service.remove_blocked_time(PROVIDER_ID, block.id)
        assert schedule_service.list_blocked_times(PROVIDER_ID) == []

    def test_remove_other_providers_block(self, schedule_service):
        block = schedule_service.add_blocked_time(
            PROVIDER_ID, next_weekday(MONDAY), TimeRange.from_hhmm("14:00", "15:00")
        )
        with pytest.raises(NotFoundException):
            schedule_service.remove_blocked_time("someone-else", block.id)
