# backend/tests/conftest.py
"""
Shared fixtures: an in-memory SQLite engine and a per-test session whose
commits only release savepoints, so every test starts from empty tables.
"""

from datetime import date
from typing import Any, Callable, Dict

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from availability_engine.core.timezone_utils import fixed_offset_resolver
from availability_engine.core.ulid_helper import generate_ulid
from availability_engine.database import Base

# Import models so Base.metadata is populated for create_all.
import availability_engine.models  # noqa: F401
from availability_engine.services.availability_engine import AvailabilityEngine


@pytest.fixture(scope="session")
def _unit_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite needs explicit BEGIN for SAVEPOINT to behave
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_autobegin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def unit_db(_unit_engine) -> Session:
    """
    Provide a session bound to an outer transaction that is rolled back after the test.
    """
    connection = _unit_engine.connect()
    transaction = connection.begin()
    session = Session(
        bind=connection,
        join_transaction_mode="create_savepoint",
        expire_on_commit=False,
    )
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def profile_id() -> str:
    return generate_ulid()


@pytest.fixture
def service_id() -> str:
    return generate_ulid()


@pytest.fixture
def engine(unit_db) -> AvailabilityEngine:
    """Engine with the reference UTC-5 offset pinned regardless of environment."""
    return AvailabilityEngine(unit_db, offset_resolver=fixed_offset_resolver(300))


@pytest.fixture
def rule_data(profile_id) -> Callable[..., Dict[str, Any]]:
    """Builder for rule creation payloads: a Monday 09:00-17:00, 30 minute rule."""

    def _build(**overrides: Any) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "profile_id": profile_id,
            "day_of_week": 1,
            "start_time": "09:00",
            "end_time": "17:00",
            "slot_duration": 30,
            "buffer_time": 0,
            "max_appointments_per_slot": 1,
            "effective_from": date(2023, 12, 1),
        }
        data.update(overrides)
        return data

    return _build
