from datetime import date, time

import pytest
from sqlalchemy import inspect

from availability_engine import database
from availability_engine.models import AvailabilityRule


@pytest.fixture
def file_database(tmp_path, monkeypatch):
    """Point the lazily-built engine at a throwaway SQLite file."""
    monkeypatch.setattr(database.settings, "database_url", f"sqlite:///{tmp_path / 'rules.db'}")
    monkeypatch.setattr(database, "_engine", None)
    database.init_db()
    yield database.get_engine()
    database.get_engine().dispose()
    database._engine = None


def _rule(profile_id: str) -> AvailabilityRule:
    return AvailabilityRule(
        profile_id=profile_id,
        day_of_week=1,
        start_time=time(9, 0),
        end_time=time(10, 0),
        slot_duration=30,
        effective_from=date(2024, 1, 1),
    )


def test_init_db_creates_tables(file_database):
    tables = set(inspect(file_database).get_table_names())
    assert {"availability_rules", "time_slots"} <= tables


def test_get_db_session_commits(file_database):
    with database.get_db_session() as db:
        db.add(_rule("committed"))

    with database.get_db_session() as db:
        assert db.query(AvailabilityRule).filter_by(profile_id="committed").count() == 1


def test_get_db_session_rolls_back_on_error(file_database):
    with pytest.raises(RuntimeError):
        with database.get_db_session() as db:
            db.add(_rule("discarded"))
            db.flush()
            raise RuntimeError("worker crashed")

    with database.get_db_session() as db:
        assert db.query(AvailabilityRule).filter_by(profile_id="discarded").count() == 0


def test_get_db_dependency_closes_session(file_database):
    dependency = database.get_db()
    db = next(dependency)
    db.add(_rule("via-dependency"))
    with pytest.raises(StopIteration):
        next(dependency)

    with database.get_db_session() as check:
        assert check.query(AvailabilityRule).filter_by(profile_id="via-dependency").count() == 1
