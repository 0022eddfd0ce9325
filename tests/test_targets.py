"""Tests for daily target calculation."""
import sqlite3
from datetime import date, datetime, timedelta

import pytest

from conftest import NOW, make_subject
from study_planner import targets
from study_planner.catalog import add_subject
from study_planner.errors import LockBusyError, NoDeadlineError, StorageError, UserNotFoundError
from study_planner.progress import mark_content_complete
from study_planner.targets import (
    calculate_study_plans, calculate_study_plans_unlocked, compute_daily_targets, days_until,
)
from study_planner.users import create_user, get_user, select_subjects, set_custom_target


def test_days_until_rounds_up_and_floors_at_one():
    assert days_until(date(2026, 3, 20), datetime(2026, 3, 10, 12, 0)) == 10
    assert days_until(date(2026, 3, 11), datetime(2026, 3, 10, 0, 0)) == 1
    assert days_until(date(2026, 3, 1), datetime(2026, 3, 10, 12, 0)) == 1


def test_compute_daily_targets_formula():
    t = compute_daily_targets(total_remaining=3000, days_remaining=10)
    assert t.minimum == 300
    assert t.moderate == 360
    assert t.maximum == 420
    assert t.custom == 360


def test_compute_daily_targets_floor_of_two_hours():
    t = compute_daily_targets(total_remaining=100, days_remaining=10)
    assert (t.minimum, t.moderate, t.maximum) == (120, 180, 240)


def test_compute_daily_targets_rounds_up():
    assert compute_daily_targets(total_remaining=1001, days_remaining=4).minimum == 251


def test_custom_target_clamped_between_minimum_and_sixteen_hours():
    assert compute_daily_targets(3000, 10, custom=200).custom == 300
    assert compute_daily_targets(3000, 10, custom=500).custom == 500
    assert compute_daily_targets(3000, 10, custom=2000).custom == 960
    assert compute_daily_targets(100000, 10, custom=0).custom == 960


def test_calculate_study_plans_persists_targets(planner_db):
    select_subjects(planner_db, "u1", ["subj-a", "subj-b"])
    plan = calculate_study_plans(planner_db, "u1", now=NOW)
    assert plan.days_remaining == 30
    assert plan.total_remaining_minutes == 500
    assert plan.selected_plan == "moderate"
    assert plan.daily_targets.minimum == 120
    stored = get_user(planner_db, "u1").daily_target
    assert stored.as_dict() == {"minimum": 120, "moderate": 180, "maximum": 240, "custom": 180}


def test_calculate_study_plans_uses_all_subjects_when_none_selected(planner_db):
    plan = calculate_study_plans(planner_db, "u1", now=NOW)
    assert plan.total_remaining_minutes == 500


def test_completed_items_and_pyq_block_reduce_remaining(db):
    add_subject(db, make_subject("s", "Stats", [60, 60], pyq_count=100))
    create_user(db, name="Ada", user_id="u1", deadline=date(2026, 3, 12))
    select_subjects(db, "u1", ["s"])
    full = calculate_study_plans(db, "u1", now=NOW)
    assert full.total_remaining_minutes == 120 + 277

    mark_content_complete(db, "u1", "s", "s-m1", "s-i1", "lecture", 60, now=NOW)
    mark_content_complete(db, "u1", "s", "pyq", "pyq", "pyq", 277, now=NOW)
    plan = calculate_study_plans(db, "u1", now=NOW)
    assert plan.total_remaining_minutes == 60
    assert plan.days_remaining == 2


def test_progress_for_other_subject_is_ignored(db):
    add_subject(db, make_subject("s", "Stats", [60], module_id="shared"))
    add_subject(db, make_subject("t", "Theory", [60], module_id="shared-t"))
    create_user(db, name="Ada", user_id="u1", deadline=date(2026, 4, 1))
    mark_content_complete(db, "u1", "t", "shared", "s-i1", "lecture", 60, now=NOW)
    assert calculate_study_plans(db, "u1", now=NOW).total_remaining_minutes == 120


def test_existing_custom_target_is_kept(planner_db):
    set_custom_target(planner_db, "u1", 300)
    plan = calculate_study_plans(planner_db, "u1", now=NOW)
    assert plan.daily_targets.custom == 300


def test_no_deadline(db):
    create_user(db, name="Ada", user_id="u1")
    with pytest.raises(NoDeadlineError):
        calculate_study_plans(db, "u1", now=NOW)


def test_user_not_found(db):
    with pytest.raises(UserNotFoundError):
        calculate_study_plans(db, "ghost", now=NOW)


def test_public_entry_point_respects_lock(planner_db, locks):
    locks.acquire("u1")
    with pytest.raises(LockBusyError):
        calculate_study_plans(planner_db, "u1", now=NOW, locks=locks)
    locks.release("u1")
    assert calculate_study_plans(planner_db, "u1", now=NOW, locks=locks).days_remaining == 30
    assert not locks.is_locked("u1")


def test_unlocked_variant_runs_while_lock_held(planner_db, locks):
    with locks.hold("u1"):
        plan = calculate_study_plans_unlocked(planner_db, "u1", now=NOW)
    assert plan.total_remaining_minutes == 500


def test_target_write_retried_on_conflict(planner_db, monkeypatch, no_retry_delay):
    real_update = targets.update_user_fields
    calls = []

    def flaky_update(*args, **kwargs):
        calls.append(kwargs)
        if len(calls) < 3:
            raise sqlite3.OperationalError("database is locked")
        real_update(*args, **kwargs)

    monkeypatch.setattr(targets, "update_user_fields", flaky_update)
    plan = calculate_study_plans(planner_db, "u1", now=NOW)
    assert len(calls) == 3
    assert get_user(planner_db, "u1").daily_target.minimum == plan.daily_targets.minimum


def test_retry_delay_escalates(planner_db, monkeypatch):
    delays = []
    monkeypatch.setattr(targets.time, "sleep", delays.append)

    def always_locked(*args, **kwargs):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(targets, "update_user_fields", always_locked)
    with pytest.raises(StorageError) as excinfo:
        calculate_study_plans(planner_db, "u1", now=NOW)
    assert isinstance(excinfo.value.__cause__, sqlite3.OperationalError)
    assert delays == pytest.approx([0.1, 0.2])


def test_deadline_far_away_keeps_two_hour_floor(db):
    add_subject(db, make_subject("s", "Stats", [30]))
    create_user(db, name="Ada", user_id="u1", deadline=(NOW + timedelta(days=365)).date())
    plan = calculate_study_plans(db, "u1", now=NOW)
    assert plan.daily_targets.minimum == 120
