"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests.
The caller's clock is pinned to NOW (Wednesday 2026-03-11 12:00 UTC) unless
a test moves it with `set_now`.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_taskwatch.db")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from taskwatch.core.deps import get_now
from taskwatch.db.base import Base, get_db
from taskwatch.main import app
from taskwatch.models import Event, Occurrence, OccurrenceStatus, User

SQLITE_URL = "sqlite:///./test_taskwatch.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

NOW = datetime(2026, 3, 11, 12, 0, tzinfo=timezone.utc)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def as_user(user_id: str) -> dict:
    return {"X-User-Id": user_id}


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def set_now():
    def _set(moment: datetime):
        app.dependency_overrides[get_now] = lambda: moment
    return _set


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: NOW
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def published():
    """Every realtime event published while the test runs."""
    events = []
    unsubscribe = app.state.broadcaster.subscribe(events.append)
    yield events
    unsubscribe()


@pytest.fixture()
def make_user(db):
    def _make(user_id: str, name: str | None = None, email: str | None = None, **kwargs) -> User:
        user = User(id=user_id, name=name or user_id.title(), email=email, **kwargs)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture()
def make_event(db):
    def _make(user_id: str, title: str = "Read", duration_minutes: int = 60, **kwargs) -> Event:
        event = Event(user_id=user_id, title=title, duration_minutes=duration_minutes, **kwargs)
        db.add(event)
        db.commit()
        db.refresh(event)
        return event
    return _make


@pytest.fixture()
def make_occurrence(db):
    """Insert an occurrence directly, bypassing the API's validation."""
    def _make(
        event: Event,
        start_at: datetime,
        minutes: int | None = None,
        status: OccurrenceStatus = OccurrenceStatus.scheduled,
        **kwargs,
    ) -> Occurrence:
        occ = Occurrence(
            event_id=event.id,
            user_id=event.user_id,
            start_at=start_at,
            end_at=start_at + timedelta(minutes=minutes or event.duration_minutes),
            status=status,
            is_all_day=event.is_all_day,
            completed_at=start_at if status == OccurrenceStatus.done else None,
            **kwargs,
        )
        db.add(occ)
        db.commit()
        db.refresh(occ)
        return occ
    return _make
