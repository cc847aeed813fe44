# backend/tests/conftest.py
"""
Pytest configuration for the booking engine.

Every test gets a fresh in-memory SQLite database. Environment variables are
set before any ``agenda`` import so settings never pick up a developer's
Redis or webhook configuration.
"""

import os

# Set testing environment BEFORE any app imports
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = ""
os.environ["NOTIFICATION_WEBHOOK_URL"] = ""
os.environ["DEFAULT_APPOINTMENT_STATUS"] = "pending"
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-agenda-booking-tests")

from datetime import date
from typing import Callable, Dict, Iterable, Iterator, Tuple

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from agenda.api.dependencies.database import get_db
from agenda.database import Base
from agenda.domain.scheduling import ranges_to_json
from agenda.main import app
from agenda.models import Service
from agenda.repositories import ScheduleRepository
from tests.helpers.scheduling import (
    CLIENT_ID,
    MONDAY,
    PROVIDER_ID,
    auth_headers,
    next_weekday,
    ranges,
)


@pytest.fixture
def engine() -> Iterator[Engine]:
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine: Engine) -> Iterator[Session]:
    TestingSessionLocal = sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def make_service(db: Session) -> Callable[..., Service]:
    def _make(duration: int = 60, name: str = "Haircut", is_active: bool = True) -> Service:
        service = Service(name=name, reference_duration_minutes=duration, is_active=is_active)
        db.add(service)
        db.commit()
        return service

    return _make


@pytest.fixture
def service(make_service: Callable[..., Service]) -> Service:
    return make_service(duration=60)


@pytest.fixture
def set_day(db: Session) -> Callable[..., None]:
    """Store one weekday of a provider's schedule."""

    def _set(
        day_of_week: int,
        work: Iterable[Tuple[str, str]] = (("09:00", "17:00"),),
        breaks: Iterable[Tuple[str, str]] = (("12:00", "13:00"),),
        *,
        provider_id: str = PROVIDER_ID,
        is_working: bool = True,
    ) -> None:
        ScheduleRepository(db).upsert_day(
            provider_id,
            day_of_week,
            is_working=is_working,
            work_blocks=ranges_to_json(ranges(*work)),
            break_blocks=ranges_to_json(ranges(*breaks)),
        )
        db.commit()

    return _set


@pytest.fixture
def monday(set_day: Callable[..., None]) -> date:
    """Provider works Mondays 09:00-17:00 with a 12:00-13:00 break."""
    set_day(MONDAY)
    return next_weekday(MONDAY)


@pytest.fixture
def client_headers() -> Dict[str, str]:
    return auth_headers(CLIENT_ID, "client")


@pytest.fixture
def provider_headers() -> Dict[str, str]:
    return auth_headers(PROVIDER_ID, "provider")


@pytest.fixture
def client(db: Session) -> Iterator[TestClient]:
    def override_get_db() -> Iterator[Session]:
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
