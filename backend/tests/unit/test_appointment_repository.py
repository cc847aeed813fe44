"""Appointment repository queries and constraint mapping."""

from datetime import time
from types import SimpleNamespace
from unittest.mock import MagicMock

from sqlalchemy.exc import IntegrityError
import pytest

from agenda.models import Appointment, AppointmentStatus
from agenda.repositories import AppointmentRepository
from agenda.repositories.appointment_repository import (
    NO_OVERLAP_CONSTRAINT,
    OverlapConstraintViolation,
    is_overlap_violation,
)
from tests.helpers.scheduling import CLIENT_ID, PROVIDER_ID


def _integrity_error(message, constraint_name=None):
    orig = Exception(message)
    if constraint_name:
        orig.diag = SimpleNamespace(constraint_name=constraint_name)
    return IntegrityError("INSERT INTO appointments ...", {}, orig)


class TestOverlapDetection:
    def test_constraint_name_from_driver_diagnostics(self):
        assert is_overlap_violation(_integrity_error("conflict", NO_OVERLAP_CONSTRAINT))

    def test_constraint_name_in_message(self):
        message = f'conflicting key value violates exclusion constraint "{NO_OVERLAP_CONSTRAINT}"'
        assert is_overlap_violation(_integrity_error(message))

    def test_other_integrity_errors(self):
        assert not is_overlap_violation(_integrity_error("NOT NULL constraint failed"))


def test_create_maps_exclusion_violation(db):
    repository = AppointmentRepository(db)
    repository.db = MagicMock(wraps=db)
    repository.db.flush.side_effect = _integrity_error("exclusion", NO_OVERLAP_CONSTRAINT)

    with pytest.raises(OverlapConstraintViolation):
        repository.create_appointment(
            provider_id=PROVIDER_ID,
            service_id="svc",
            client_id=CLIENT_ID,
            start_time=time(10, 0),
            end_time=time(11, 0),
            duration_minutes=60,
        )


def test_active_for_provider_date_skips_terminal_and_excluded(db, service, monday):
    def add(start, status):
        row = Appointment(
            provider_id=PROVIDER_ID,
            service_id=service.id,
            client_id=CLIENT_ID,
            appointment_date=monday,
            start_time=time(start, 0),
            end_time=time(start + 1, 0),
            duration_minutes=60,
            status=status,
        )
        db.add(row)
        db.commit()
        return row

    pending = add(9, "pending")
    confirmed = add(10, "confirmed")
    add(11, "canceled")
    add(13, "no_show")

    repository = AppointmentRepository(db)
    active = repository.get_active_for_provider_date(PROVIDER_ID, monday)
    assert {a.id for a in active} == {pending.id, confirmed.id}

    without = repository.get_active_for_provider_date(
        PROVIDER_ID, monday, exclude_appointment_id=pending.id
    )
    assert [a.id for a in without] == [confirmed.id]


def test_status_update_only_applies_to_expected_status(db, service, monday):
    row = Appointment(
        provider_id=PROVIDER_ID,
        service_id=service.id,
        client_id=CLIENT_ID,
        appointment_date=monday,
        start_time=time(9, 0),
        end_time=time(10, 0),
        duration_minutes=60,
        status="canceled",
    )
    db.add(row)
    db.commit()
    repository = AppointmentRepository(db)

    assert not repository.update_status_if_current(
        row.id, AppointmentStatus.PENDING, {"status": "confirmed"}
    )
    assert repository.update_status_if_current(
        row.id, AppointmentStatus.CANCELED, {"cancellation_reason": "moved"}
    )
    db.commit()
    db.refresh(row)
    assert row.status == "canceled"
    assert row.cancellation_reason == "moved"
