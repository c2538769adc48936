import datetime as dt
from typing import Callable, Iterator

import pytest
import pytz
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from airodental import models
from airodental.database import build_engine, get_db, init_db
from airodental.deps import get_clock, get_policy
from airodental.services.availability import AvailabilityService
from airodental.services.booking import BookingService
from airodental.services.calendar_policy import BusinessHoursPolicy, OpenCalendarPolicy
from airodental.services.fake_repository import InMemoryAppointmentRepository

CHICAGO = pytz.timezone("America/Chicago")

# Friday before the week of 2024-07-01; every test instant below is in its future
NOW = dt.datetime(2024, 6, 28, 12, 0, tzinfo=dt.timezone.utc)


# ──────────────────────────────────────────────────────────────────────────────
# Policy / clock
# ──────────────────────────────────────────────────────────────────────────────
@pytest.fixture
def policy() -> BusinessHoursPolicy:
    return BusinessHoursPolicy(CHICAGO)


@pytest.fixture
def open_policy() -> OpenCalendarPolicy:
    return OpenCalendarPolicy(CHICAGO)


@pytest.fixture
def clock() -> Callable[[], dt.datetime]:
    return lambda: NOW


# ──────────────────────────────────────────────────────────────────────────────
# In-memory services
# ──────────────────────────────────────────────────────────────────────────────
@pytest.fixture
def fake_repo() -> InMemoryAppointmentRepository:
    repo = InMemoryAppointmentRepository()
    repo.add_user("Dr. Smith", "dentist@airodental.com", models.Role.DENTIST)
    return repo


@pytest.fixture
def availability(fake_repo, policy, clock) -> AvailabilityService:
    return AvailabilityService(fake_repo, policy, clock=clock)


@pytest.fixture
def booking(fake_repo, policy, clock) -> BookingService:
    return BookingService(fake_repo, policy, clock=clock)


# ──────────────────────────────────────────────────────────────────────────────
# SQLite-backed
# ──────────────────────────────────────────────────────────────────────────────
@pytest.fixture
def engine(tmp_path) -> Iterator[Engine]:
    eng = build_engine(url=f"sqlite:///{tmp_path / 'airodental-test.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def db(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def dentist(db: Session) -> models.User:
    user = models.User(name="Dr. Smith", email="dentist@airodental.com", role=models.Role.DENTIST)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def client(session_factory: sessionmaker, policy, clock) -> Iterator[TestClient]:
    from airodental.main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_policy] = lambda: policy
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()
