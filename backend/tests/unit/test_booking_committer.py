"""
BookingCommitter: re-check under the provider-date lock, insert, report
the slots the booking made unavailable.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
import threading
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from agenda.core.booking_lock import provider_date_lock
from agenda.core.config import settings
from agenda.core.exceptions import (
    BusinessRuleException,
    SlotUnavailableError,
    ValidationException,
)
from agenda.database import Base
from agenda.domain.scheduling import ranges_to_json
from agenda.models import Appointment, AppointmentStatus, Service
from agenda.repositories import ScheduleRepository
from agenda.services.booking_committer import BookingCommitter
from agenda.services.completion_code import hash_completion_code
from agenda.services.notification_service import NotificationService
from agenda.services.slot_generator import SlotGenerator
from agenda.utils.time_ranges import parse_hhmm
from tests.helpers.scheduling import (
    CLIENT_ID,
    MONDAY,
    OTHER_CLIENT_ID,
    PROVIDER_ID,
    next_weekday,
    ranges,
    starts,
)


@pytest.fixture
def notifier():
    return MagicMock(spec=NotificationService)


@pytest.fixture
def committer(db, notifier):
    return BookingCommitter(db, notification_service=notifier)


def _commit(committer, service, day, start="10:00", client_id=CLIENT_ID, **kwargs):
    return committer.commit(
        provider_id=PROVIDER_ID,
        service_id=service.id,
        client_id=client_id,
        day=day,
        start_minute=parse_hhmm(start),
        **kwargs,
    )


class TestCommit:
    def test_books_requested_slot(self, committer, notifier, service, monday):
        result = _commit(committer, service, monday)

        appointment = result.appointment
        assert appointment.id
        assert appointment.status == AppointmentStatus.PENDING.value
        assert appointment.start_time.strftime("%H:%M") == "10:00"
        assert appointment.end_time.strftime("%H:%M") == "11:00"
        assert appointment.duration_minutes == 60
        assert len(result.completion_code) == 6
        assert appointment.completion_code_hash == hash_completion_code(result.completion_code)

        recipients = {call.args[0] for call in notifier.notify.call_args_list}
        events = {call.args[1] for call in notifier.notify.call_args_list}
        assert recipients == {PROVIDER_ID, CLIENT_ID}
        assert events == {"appointment.created"}

    def test_second_booking_of_same_slot_conflicts(self, committer, service, monday):
        _commit(committer, service, monday)

        with pytest.raises(SlotUnavailableError) as exc_info:
            _commit(committer, service, monday, client_id=OTHER_CLIENT_ID)

        assert exc_info.value.status_code == 409
        assert exc_info.value.details["start_time"] == "10:00"

    def test_reports_blocked_adjacent_slots(self, committer, service, monday):
        result = _commit(committer, service, monday)

        assert starts(result.blocked_adjacent_slots) == [
            "09:15",
            "09:30",
            "09:45",
            "10:15",
            "10:30",
            "10:45",
        ]

    def test_booked_slot_disappears_from_generation(self, db, committer, service, monday):
        _commit(committer, service, monday)
        assert "10:00" not in starts(SlotGenerator(db).generate(PROVIDER_ID, service.id, monday))

    def test_slot_outside_availability(self, committer, service, monday):
        with pytest.raises(SlotUnavailableError):
            _commit(committer, service, monday, start="12:00")
        with pytest.raises(SlotUnavailableError):
            _commit(committer, service, monday, start="09:10")

    def test_rejects_past_date(self, committer, service, set_day):
        set_day(MONDAY)
        last_week = next_weekday(MONDAY) - timedelta(weeks=1)
        if last_week >= date.today():
            last_week -= timedelta(weeks=1)

        with pytest.raises(ValidationException):
            _commit(committer, service, last_week)

    def test_past_is_judged_in_marketplace_timezone(
        self, committer, service, monday, monkeypatch
    ):
        monkeypatch.setattr(
            "agenda.services.booking_committer.get_marketplace_today",
            lambda: monday + timedelta(days=1),
        )

        with pytest.raises(ValidationException):
            _commit(committer, service, monday)

    def test_rejects_inactive_service(self, committer, make_service, monday):
        retired = make_service(duration=60, is_active=False)
        with pytest.raises(ValidationException):
            _commit(committer, retired, monday)

    def test_confirmed_initial_status(self, committer, service, monday):
        result = _commit(committer, service, monday, initial_status=AppointmentStatus.CONFIRMED)
        assert result.appointment.status == AppointmentStatus.CONFIRMED.value
        assert result.appointment.confirmed_at is not None

    def test_notification_failure_does_not_fail_booking(self, db, service, monday):
        provider = MagicMock()
        provider.send.side_effect = RuntimeError("webhook down")
        committer = BookingCommitter(db, notification_service=NotificationService(provider))

        result = _commit(committer, service, monday)

        assert result.appointment.id
        assert provider.send.call_count == 2

    def test_lock_timeout_is_reported_as_unavailable(
        self, committer, service, monday, monkeypatch
    ):
        monkeypatch.setattr(settings, "booking_lock_timeout_seconds", 0.05)

        with provider_date_lock(PROVIDER_ID, monday) as acquired:
            assert acquired
            with pytest.raises(SlotUnavailableError):
                _commit(committer, service, monday)


class TestReschedule:
    def test_shift_within_own_window(self, committer, notifier, service, monday):
        booked = _commit(committer, service, monday).appointment
        notifier.reset_mock()

        result = committer.reschedule(booked.id, monday, parse_hhmm("10:30"))

        assert result.appointment.id == booked.id
        assert result.appointment.start_time.strftime("%H:%M") == "10:30"
        assert {call.args[1] for call in notifier.notify.call_args_list} == {
            "appointment.rescheduled"
        }

    def test_target_taken_by_someone_else(self, committer, service, monday):
        mine = _commit(committer, service, monday).appointment
        _commit(committer, service, monday, start="14:00", client_id=OTHER_CLIENT_ID)

        with pytest.raises(SlotUnavailableError):
            committer.reschedule(mine.id, monday, parse_hhmm("13:30"))

    def test_terminal_appointment_cannot_move(self, db, committer, service, monday):
        booked = _commit(committer, service, monday).appointment
        booked.status = AppointmentStatus.CANCELED.value
        db.commit()

        with pytest.raises(BusinessRuleException):
            committer.reschedule(booked.id, monday, parse_hhmm("14:00"))


def test_concurrent_commits_for_same_slot_yield_one_appointment(tmp_path):
    """Two clients racing for one slot: exactly one wins, the rest get 409."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    SessionFactory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    with SessionFactory() as setup:
        service = Service(name="Massage", reference_duration_minutes=60, is_active=True)
        setup.add(service)
        ScheduleRepository(setup).upsert_day(
            PROVIDER_ID,
            MONDAY,
            is_working=True,
            work_blocks=ranges_to_json(ranges(("09:00", "17:00"))),
            break_blocks=[],
        )
        setup.commit()
        service_id = service.id

    day = next_weekday(MONDAY)
    workers = 6
    barrier = threading.Barrier(workers)

    def attempt(index: int) -> str:
        with SessionFactory() as session:
            committer = BookingCommitter(
                session, notification_service=MagicMock(spec=NotificationService)
            )
            barrier.wait()
            try:
                committer.commit(
                    provider_id=PROVIDER_ID,
                    service_id=service_id,
                    client_id=f"client-{index}",
                    day=day,
                    start_minute=parse_hhmm("10:00"),
                )
            except SlotUnavailableError:
                return "conflict"
            return "created"

    with ThreadPoolExecutor(max_workers=workers) as pool:
        outcomes = list(pool.map(attempt, range(workers)))

    assert outcomes.count("created") == 1
    assert outcomes.count("conflict") == workers - 1

    with SessionFactory() as check:
        assert check.query(Appointment).count() == 1

    engine.dispose()
