"""Tests for streak evaluation."""
from datetime import datetime, timedelta

import pytest

from study_planner.db import get_connection
from study_planner.errors import UserNotFoundError
from study_planner.progress import mark_content_complete, record_study_session
from study_planner.streaks import studied_minutes_on, update_user_streak
from study_planner.users import create_user, get_user, update_user_fields

NOW = datetime(2026, 3, 10, 20, 0)
TODAY = NOW.date()


@pytest.fixture
def user_db(db):
    """User u1 on a 100 minute custom target."""
    create_user(db, name="Ada", user_id="u1")
    update_user_fields(db, "u1", target_custom=100, selected_plan="custom")
    return db


def test_full_target_maintains_streak(user_db):
    record_study_session(user_db, "u1", "s", "m", "i", "lecture", 100, now=NOW)
    result = update_user_streak(user_db, "u1", now=NOW)
    assert result.maintained
    assert result.streak == 1
    assert result.percentage == pytest.approx(100)
    assert result.message.startswith("Streak maintained! You've completed 100.0%")
    user = get_user(user_db, "u1")
    assert user.streak == 1
    assert user.last_streak_date == TODAY


def test_exactly_eighty_percent_counts(user_db):
    record_study_session(user_db, "u1", "s", "m", "i", "lecture", 80, now=NOW)
    assert update_user_streak(user_db, "u1", now=NOW).maintained


def test_below_threshold_leaves_streak(user_db):
    update_user_fields(user_db, "u1", streak=3, last_streak_date=TODAY - timedelta(days=1))
    record_study_session(user_db, "u1", "s", "m", "i", "lecture", 79, now=NOW)
    result = update_user_streak(user_db, "u1", now=NOW)
    assert not result.maintained
    assert result.streak == 3
    assert "only completed 79.0%" in result.message
    assert "at least 80%" in result.message
    user = get_user(user_db, "u1")
    assert user.streak == 3
    assert user.last_streak_date == TODAY - timedelta(days=1)


def test_consecutive_day_extends_streak(user_db):
    update_user_fields(user_db, "u1", streak=4, last_streak_date=TODAY - timedelta(days=1))
    record_study_session(user_db, "u1", "s", "m", "i", "lecture", 100, now=NOW)
    assert update_user_streak(user_db, "u1", now=NOW).streak == 5


def test_same_day_is_idempotent(user_db):
    record_study_session(user_db, "u1", "s", "m", "i", "lecture", 100, now=NOW)
    update_user_streak(user_db, "u1", now=NOW)
    assert update_user_streak(user_db, "u1", now=NOW).streak == 1
    assert get_user(user_db, "u1").streak == 1


def test_gap_restarts_streak(user_db):
    update_user_fields(user_db, "u1", streak=9, last_streak_date=TODAY - timedelta(days=3))
    record_study_session(user_db, "u1", "s", "m", "i", "lecture", 100, now=NOW)
    assert update_user_streak(user_db, "u1", now=NOW).streak == 1


def test_only_todays_sessions_count(user_db):
    record_study_session(user_db, "u1", "s", "m", "i", "lecture", 100, now=NOW - timedelta(days=1))
    assert studied_minutes_on(get_user(user_db, "u1"), TODAY) == 0
    assert not update_user_streak(user_db, "u1", now=NOW).maintained


def test_sessions_and_completions_are_not_double_counted(user_db):
    mark_content_complete(user_db, "u1", "s", "m", "i", "lecture", 60, now=NOW)
    assert studied_minutes_on(get_user(user_db, "u1"), TODAY) == 60
    assert not update_user_streak(user_db, "u1", now=NOW).maintained


def test_completion_time_counts_without_sessions(user_db):
    conn = get_connection(user_db)
    conn.execute(
        """INSERT INTO content_progress (user_id, subject_id, module_id, item_id, type, completed_date, time_spent)
        VALUES ('u1', 's', 'm', 'i', 'lecture', ?, 90)""",
        (NOW.isoformat(),),
    )
    conn.commit()
    conn.close()
    record_study_session(user_db, "u1", "s", "m", "j", "quiz", 30, now=NOW)
    assert studied_minutes_on(get_user(user_db, "u1"), TODAY) == 90
    assert update_user_streak(user_db, "u1", now=NOW).maintained


def test_unset_target_uses_two_hours(db):
    create_user(db, name="Ada", user_id="u1")
    record_study_session(db, "u1", "s", "m", "i", "lecture", 96, now=NOW)
    result = update_user_streak(db, "u1", now=NOW)
    assert result.percentage == pytest.approx(80)
    assert result.maintained


def test_streak_unknown_user(db):
    with pytest.raises(UserNotFoundError):
        update_user_streak(db, "ghost", now=NOW)
