import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import pytest

from bandsched.db import init_db, make_engine, make_session_factory
from bandsched.db.store import SqlBookingStore


class FakeStore:
    """In-memory ``BookingStore`` keyed by booking id."""

    def __init__(self, bookings=None):
        self.bookings = dict(bookings or {})
        self.calls = []

    def list_booked_intervals(self, venue_id, exclude_id=None):
        self.calls.append((venue_id, exclude_id))
        return [
            interval
            for booking_id, (venue, interval) in self.bookings.items()
            if venue == venue_id and booking_id != exclude_id
        ]


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def engine():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return SqlBookingStore(make_session_factory(engine))


@pytest.fixture(scope="session")
def pg_url():
    pytest.importorskip("testcontainers.postgres")
    from testcontainers.postgres import PostgresContainer

    try:
        pg = PostgresContainer("postgres:15")
        pg.start()
    except Exception:  # pragma: no cover - depends on Docker being available
        pytest.skip("PostgreSQL container not available")
    yield pg.get_connection_url()
    pg.stop()
