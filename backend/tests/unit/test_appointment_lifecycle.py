"""Appointment status transitions and the completion gate."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from agenda.core.exceptions import (
    CompletionValidationError,
    InvalidTransitionError,
    NotFoundException,
    ValidationException,
)
from agenda.database import Base
from agenda.domain.scheduling import ranges_to_json
from agenda.models import Appointment, AppointmentStatus, Service
from agenda.repositories import ScheduleRepository
from agenda.services.appointment_lifecycle import AppointmentLifecycle
from agenda.services.booking_committer import BookingCommitter
from agenda.services.completion_code import (
    CompletionCodeValidator,
    hash_completion_code,
    is_valid_code_format,
    issue_completion_code,
)
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
def lifecycle(db, notifier):
    return AppointmentLifecycle(db, notification_service=notifier)


@pytest.fixture
def booking(db, service, monday):
    committer = BookingCommitter(db, notification_service=MagicMock(spec=NotificationService))
    return committer.commit(
        provider_id=PROVIDER_ID,
        service_id=service.id,
        client_id=CLIENT_ID,
        day=monday,
        start_minute=parse_hhmm("10:00"),
    )


class TestTransitions:
    def test_confirm_then_complete(self, lifecycle, booking):
        appointment_id = booking.appointment.id

        confirmed = lifecycle.transition(appointment_id, AppointmentStatus.CONFIRMED, PROVIDER_ID)
        assert confirmed.status == "confirmed"
        assert confirmed.confirmed_at is not None

        completed = lifecycle.transition(
            appointment_id,
            AppointmentStatus.COMPLETED,
            PROVIDER_ID,
            completion_code=booking.completion_code,
        )
        assert completed.status == "completed"
        assert completed.completed_at is not None

    def test_pending_cannot_complete(self, lifecycle, booking):
        with pytest.raises(InvalidTransitionError) as exc_info:
            lifecycle.transition(
                booking.appointment.id,
                AppointmentStatus.COMPLETED,
                PROVIDER_ID,
                completion_code=booking.completion_code,
            )
        assert exc_info.value.details == {
            "current_status": "pending",
            "target_status": "completed",
        }

    def test_pending_cannot_be_no_show(self, lifecycle, booking):
        with pytest.raises(InvalidTransitionError):
            lifecycle.transition(
                booking.appointment.id, AppointmentStatus.NO_SHOW, PROVIDER_ID, reason="absent"
            )

    def test_terminal_statuses_are_final(self, lifecycle, booking):
        appointment_id = booking.appointment.id
        lifecycle.transition(appointment_id, AppointmentStatus.CANCELED, CLIENT_ID, reason="sick")

        for target in AppointmentStatus:
            with pytest.raises(InvalidTransitionError):
                lifecycle.transition(appointment_id, target, CLIENT_ID, reason="again")

    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_cancel_requires_reason(self, lifecycle, booking, reason):
        with pytest.raises(ValidationException):
            lifecycle.transition(
                booking.appointment.id, AppointmentStatus.CANCELED, CLIENT_ID, reason=reason
            )

    def test_cancel_records_who_and_why(self, lifecycle, notifier, booking):
        canceled = lifecycle.transition(
            booking.appointment.id, AppointmentStatus.CANCELED, CLIENT_ID, reason=" car broke "
        )

        assert canceled.status == "canceled"
        assert canceled.cancellation_reason == "car broke"
        assert canceled.cancellation_by == CLIENT_ID
        assert canceled.cancellation_date is not None
        notifier.notify.assert_called_once()
        recipient, event, payload = notifier.notify.call_args.args
        assert recipient == PROVIDER_ID
        assert event == "appointment.canceled"
        assert payload["reason"] == "car broke"

    def test_no_show_from_confirmed(self, lifecycle, booking):
        appointment_id = booking.appointment.id
        lifecycle.transition(appointment_id, AppointmentStatus.CONFIRMED, PROVIDER_ID)

        result = lifecycle.transition(
            appointment_id, AppointmentStatus.NO_SHOW, PROVIDER_ID, reason="client absent"
        )

        assert result.status == "no_show"

    def test_canceling_frees_the_slot(self, db, lifecycle, booking, service, monday):
        lifecycle.transition(
            booking.appointment.id, AppointmentStatus.CANCELED, CLIENT_ID, reason="plans changed"
        )
        assert "10:00" in starts(SlotGenerator(db).generate(PROVIDER_ID, service.id, monday))

    def test_unknown_appointment(self, lifecycle):
        with pytest.raises(NotFoundException):
            lifecycle.transition(
                "01HZZZZZZZZZZZZZZZZZZZZZZZ", AppointmentStatus.CONFIRMED, PROVIDER_ID
            )


class TestCompletionGate:
    def test_wrong_code_counts_attempts(self, db, lifecycle, booking):
        appointment_id = booking.appointment.id
        lifecycle.transition(appointment_id, AppointmentStatus.CONFIRMED, PROVIDER_ID)
        wrong = "000000" if booking.completion_code != "000000" else "111111"

        with pytest.raises(CompletionValidationError) as exc_info:
            lifecycle.transition(
                appointment_id, AppointmentStatus.COMPLETED, PROVIDER_ID, completion_code=wrong
            )

        assert exc_info.value.details["attempts_left"] == 2
        db.expire_all()
        stored = lifecycle.get_appointment(appointment_id)
        assert stored.completion_attempts == 1
        assert stored.status == "confirmed"

    def test_attempts_are_bounded(self, lifecycle, booking):
        appointment_id = booking.appointment.id
        lifecycle.transition(appointment_id, AppointmentStatus.CONFIRMED, PROVIDER_ID)

        for _ in range(3):
            with pytest.raises(CompletionValidationError):
                lifecycle.transition(
                    appointment_id,
                    AppointmentStatus.COMPLETED,
                    PROVIDER_ID,
                    completion_code="12345",
                )

        # Even the right code is refused once attempts are exhausted
        with pytest.raises(CompletionValidationError) as exc_info:
            lifecycle.transition(
                appointment_id,
                AppointmentStatus.COMPLETED,
                PROVIDER_ID,
                completion_code=booking.completion_code,
            )
        assert exc_info.value.details["attempts_left"] == 0

    def test_custom_validator_is_used(self, db, notifier, booking):
        validator = MagicMock()
        validator.validate.return_value = True
        lifecycle = AppointmentLifecycle(
            db, completion_validator=validator, notification_service=notifier
        )
        appointment_id = booking.appointment.id
        lifecycle.transition(appointment_id, AppointmentStatus.CONFIRMED, PROVIDER_ID)

        result = lifecycle.transition(appointment_id, AppointmentStatus.COMPLETED, PROVIDER_ID)

        assert result.status == "completed"
        validator.validate.assert_called_once()


class TestCompletionCode:
    def test_issue_returns_code_and_matching_hash(self):
        code, code_hash = issue_completion_code()
        assert is_valid_code_format(code)
        assert code_hash == hash_completion_code(code)
        assert code not in code_hash

    def test_salt_changes_hash(self):
        assert hash_completion_code("123456", salt="a") != hash_completion_code("123456", salt="b")

    @pytest.mark.parametrize("code", ["12345", "1234567", "abcdef", ""])
    def test_format(self, code):
        assert not is_valid_code_format(code)

    def test_validator_rejects_missing_hash(self):
        appointment = MagicMock(completion_code_hash=None, completion_attempts=0, id="x")
        validator = CompletionCodeValidator(max_attempts=3)

        assert validator.validate(appointment, "123456") is False
        assert appointment.completion_attempts == 1
        assert validator.attempts_left(appointment) == 2


def test_stale_read_cannot_reactivate_a_canceled_appointment(tmp_path):
    """A confirm based on an old read must not undo a cancel that freed the slot."""
    engine = create_engine(f"sqlite:///{tmp_path / 'lifecycle.db'}")
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

    def book(session, client_id):
        committer = BookingCommitter(
            session, notification_service=MagicMock(spec=NotificationService)
        )
        return committer.commit(
            provider_id=PROVIDER_ID,
            service_id=service_id,
            client_id=client_id,
            day=day,
            start_minute=parse_hhmm("10:00"),
        )

    with SessionFactory() as session:
        appointment_id = book(session, CLIENT_ID).appointment.id

    stale_session = SessionFactory()
    stale = AppointmentLifecycle(
        stale_session, notification_service=MagicMock(spec=NotificationService)
    )
    assert stale.get_appointment(appointment_id).status == "pending"

    with SessionFactory() as session:
        AppointmentLifecycle(
            session, notification_service=MagicMock(spec=NotificationService)
        ).transition(appointment_id, AppointmentStatus.CANCELED, CLIENT_ID, reason="sick")
    with SessionFactory() as session:
        rebooked = book(session, OTHER_CLIENT_ID).appointment.id

    with pytest.raises(InvalidTransitionError) as exc_info:
        stale.transition(appointment_id, AppointmentStatus.CONFIRMED, PROVIDER_ID)
    assert exc_info.value.details == {
        "current_status": "canceled",
        "target_status": "confirmed",
    }
    stale_session.close()

    with SessionFactory() as check:
        active = (
            check.query(Appointment)
            .filter(Appointment.status.in_(["pending", "confirmed"]))
            .all()
        )
        assert [appointment.id for appointment in active] == [rebooked]
        assert check.get(Appointment, appointment_id).status == "canceled"

    engine.dispose()
