"""Pytest configuration: throwaway SQLite database and shared test doubles."""

import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

# Must be set before wakeme.Core.config is imported anywhere
_DB_DIR = tempfile.mkdtemp(prefix="wakeme-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"

from fastapi.testclient import TestClient  # noqa: E402

from wakeme.DB.base import Base  # noqa: E402
from wakeme.DB.session import engine  # noqa: E402
from wakeme.Services.persistence_gateway import PersistenceError, PersistenceGateway  # noqa: E402


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2026, 1, 1, 8, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


class RecordingGateway(PersistenceGateway):
    """Gateway that records calls; ``fail_saves`` makes save_point raise."""

    def __init__(self, fail_saves: bool = False):
        self.saved = []
        self.ended = []
        self.fail_saves = fail_saves

    def save_point(self, trip_id, coordinate, timestamp):
        if self.fail_saves:
            raise PersistenceError("server unreachable")
        self.saved.append((trip_id, coordinate.latitude, coordinate.longitude, timestamp))

    def end_trip(self, trip_id):
        self.ended.append(trip_id)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def failing_gateway():
    return RecordingGateway(fail_saves=True)


@pytest.fixture
def client():
    from wakeme.main import app

    Base.metadata.create_all(bind=engine)
    with TestClient(app) as test_client:
        yield test_client
    Base.metadata.drop_all(bind=engine)
