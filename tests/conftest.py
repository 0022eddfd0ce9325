from datetime import date, datetime, timedelta

import pytest

from study_planner.catalog import add_subject
from study_planner.db import init_db
from study_planner.locks import LockManager, schedule_locks
from study_planner.users import create_user

NOW = datetime(2026, 3, 10, 12, 0)


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_planner.db")
    return db_path


@pytest.fixture
def db(tmp_db):
    """An initialized, empty database."""
    init_db(tmp_db)
    return tmp_db


@pytest.fixture(autouse=True)
def clear_schedule_locks():
    schedule_locks.clear()
    yield
    schedule_locks.clear()


@pytest.fixture
def locks():
    return LockManager()


@pytest.fixture
def no_retry_delay(monkeypatch):
    monkeypatch.setattr("study_planner.targets.time.sleep", lambda seconds: None)


def make_subject(subject_id, name, durations, pyq_count=0, module_id=None):
    """Catalog document for a subject with one module of lectures."""
    return {
        "id": subject_id,
        "name": name,
        "modules": [{
            "id": module_id or f"{subject_id}-m1",
            "name": f"{name} basics",
            "content": [
                {"id": f"{subject_id}-i{n}", "type": "lecture", "name": f"{name} lecture {n}", "durationMinutes": d}
                for n, d in enumerate(durations, 1)
            ],
        }],
        "pyqs": {"count": pyq_count},
    }


@pytest.fixture
def planner_db(db):
    """Two subjects and a user 30 days from the exam with nothing selected yet."""
    add_subject(db, make_subject("subj-a", "Algorithms", [150, 150]))
    add_subject(db, make_subject("subj-b", "Biology", [100, 100]))
    create_user(db, name="Ada", user_id="u1", deadline=(NOW + timedelta(days=30)).date())
    return db
