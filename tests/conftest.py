"""Pytest configuration and shared fixtures"""
import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List

from peewee import SqliteDatabase

from sqlbeat.metrics import MetricStateCache
from sqlbeat.publishers import Publisher, PublishError


T0 = datetime(2024, 1, 1, 0, 0, 0, tzinfo=timezone.utc)


def seconds_after(start: datetime, seconds: float) -> datetime:
    return start + timedelta(seconds=seconds)


class RecordingPublisher(Publisher):
    """Collects published events; optionally fails the first N publishes"""

    def __init__(self, fail_first: int = 0):
        self.events: List[Dict[str, Any]] = []
        self.attempts = 0
        self.fail_first = fail_first
        self.closed = False

    def publish(self, event: Dict[str, Any]) -> None:
        self.attempts += 1
        if self.attempts <= self.fail_first:
            raise PublishError("sink unavailable")
        self.events.append(event)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def state():
    """Fresh metric state cache"""
    return MetricStateCache()


@pytest.fixture
def server_state(state):
    return state.for_server("db01")


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def test_db():
    """Create an in-memory test database"""
    # Use in-memory SQLite for fast tests
    test_database = SqliteDatabase(':memory:')
    test_database.connect()

    test_database.execute_sql(
        "CREATE TABLE global_status (variable_name TEXT PRIMARY KEY, variable_value TEXT)"
    )
    test_database.execute_sql(
        "CREATE TABLE table_stats (table_schema TEXT, table_name TEXT, table_rows INTEGER, data_length REAL)"
    )

    yield test_database

    # Cleanup
    test_database.close()


@pytest.fixture
def sqlite_file(tmp_path):
    """File-backed SQLite database that survives connection_context() closing it"""
    path = tmp_path / "status.db"
    setup = SqliteDatabase(str(path))
    setup.connect()
    setup.execute_sql("CREATE TABLE global_status (variable_name TEXT PRIMARY KEY, variable_value TEXT)")
    setup.execute_sql(
        "INSERT INTO global_status VALUES "
        "('Threads_connected', '4'), ('Questions__DELTA', '1000'), ('Uptime', '3600')"
    )
    setup.close()
    return path


def set_status(path, name: str, value: str) -> None:
    """Update one row of the file-backed global_status table"""
    db = SqliteDatabase(str(path))
    db.connect()
    db.execute_sql("UPDATE global_status SET variable_value = ? WHERE variable_name = ?", (value, name))
    db.close()
