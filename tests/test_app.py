import io
import json
from datetime import date, timedelta
from unittest.mock import patch

import pytest
from rich.console import Console

from study_planner import app
from study_planner.app import (
    choose_user, cmd_complete, cmd_generate, cmd_import, cmd_leaderboard, cmd_plan,
    cmd_progress, cmd_settings, cmd_streak, cmd_today, format_minutes, main,
)
from study_planner.config import get_settings
from study_planner.scheduler import get_schedule_for_date
from study_planner.users import create_user, get_user, list_user_ids, select_subjects, set_deadline


@pytest.fixture
def output(monkeypatch):
    """Capture everything the CLI prints."""
    buffer = io.StringIO()
    monkeypatch.setattr(app, "console", Console(file=buffer, width=200))
    return buffer


@pytest.fixture
def app_db(planner_db):
    """planner_db with a deadline a month from the real today and both subjects selected."""
    set_deadline(planner_db, "u1", date.today() + timedelta(days=30))
    select_subjects(planner_db, "u1", ["subj-a", "subj-b"])
    return planner_db


def test_format_minutes():
    assert format_minutes(45) == "45m"
    assert format_minutes(120) == "2h"
    assert format_minutes(150) == "2h 30m"
    assert format_minutes(0) == "0m"


def test_choose_user_creates_missing_user(db, output):
    with patch("study_planner.app.Prompt.ask", side_effect=["me", "Ada"]):
        assert choose_user(db) == "me"
    assert get_user(db, "me").name == "Ada"
    assert "Profile created" in output.getvalue()


def test_choose_user_existing_user(db, output):
    create_user(db, name="Ada", user_id="u1")
    with patch("study_planner.app.Prompt.ask", return_value="u1") as ask:
        assert choose_user(db) == "u1"
    assert ask.call_count == 1
    assert list_user_ids(db) == ["u1"]


def test_cmd_settings_updates_profile(planner_db, output):
    with patch("study_planner.app.Prompt.ask", side_effect=["2026-12-01", "moderate", "2,1"]), \
            patch("study_planner.app.IntPrompt.ask", side_effect=[7, 4]):
        cmd_settings(planner_db, "u1")
    user = get_user(planner_db, "u1")
    assert user.deadline == date(2026, 12, 1)
    assert user.selected_subjects == ["subj-b", "subj-a"]
    assert user.subject_priorities == {"subj-b": 7, "subj-a": 4}
    assert "Settings saved" in output.getvalue()


def test_cmd_settings_custom_plan(planner_db, output):
    with patch("study_planner.app.Prompt.ask", side_effect=["", "custom", ""]), \
            patch("study_planner.app.IntPrompt.ask", return_value=240):
        cmd_settings(planner_db, "u1")
    user = get_user(planner_db, "u1")
    assert user.selected_plan == "custom"
    assert user.daily_target.custom == 240
    assert user.selected_subjects == []


def test_cmd_settings_empty_catalog(db, output):
    create_user(db, name="Ada", user_id="u1")
    with patch("study_planner.app.Prompt.ask", side_effect=["", "minimum"]):
        cmd_settings(db, "u1")
    assert get_user(db, "u1").selected_plan == "minimum"
    assert "catalog is empty" in output.getvalue()


def test_cmd_generate_and_today(app_db, output):
    with patch("study_planner.app.IntPrompt.ask", return_value=7):
        cmd_generate(app_db, "u1")
    assert "Schedule (4 days)" in output.getvalue()
    cmd_today(app_db, "u1")
    assert "Algorithms lecture 1" in output.getvalue()


def test_cmd_generate_without_subjects(planner_db, output):
    set_deadline(planner_db, "u1", date.today() + timedelta(days=30))
    with patch("study_planner.app.IntPrompt.ask", return_value=7):
        cmd_generate(planner_db, "u1")
    assert "Nothing to schedule" in output.getvalue()


def test_cmd_complete(app_db, output):
    cmd_today(app_db, "u1")
    entry = get_schedule_for_date(app_db, "u1", date.today()).planned_sessions[0]
    with patch("study_planner.app.IntPrompt.ask", side_effect=[entry.id, 0]):
        cmd_complete(app_db, "u1")
    assert f"Completed {entry.name}" in output.getvalue()
    assert get_user(app_db, "u1").total_study_time == entry.duration


def test_cmd_plan(app_db, output):
    cmd_plan(app_db, "u1")
    text = output.getvalue()
    assert "Days remaining: 30" in text
    assert "moderate ←" in text


def test_cmd_streak(app_db, output):
    cmd_streak(app_db, "u1")
    assert "Warning" in output.getvalue()


def test_cmd_leaderboard(app_db, output):
    with patch("study_planner.app.Prompt.ask", return_value="overall"):
        cmd_leaderboard(app_db, "u1")
    assert "Ada" in output.getvalue()


def test_cmd_progress(app_db, output):
    cmd_progress(app_db, "u1")
    text = output.getvalue()
    assert "Overall: 0.0%" in text
    assert "Algorithms" in text and "Biology" in text


def test_cmd_import(db, tmp_path, output):
    catalog = tmp_path / "catalog.json"
    catalog.write_text(json.dumps({"subjects": [{"name": "Chemistry", "modules": []}]}))
    with patch("study_planner.app.Prompt.ask", return_value=str(catalog)):
        cmd_import(db, "u1")
    assert "Imported 1 subject(s)" in output.getvalue()


def test_cmd_import_missing_file(db, tmp_path, output):
    with patch("study_planner.app.Prompt.ask", return_value=str(tmp_path / "nope.json")):
        cmd_import(db, "u1")
    assert "File not found" in output.getvalue()


def test_main_menu_loop(tmp_db, monkeypatch, output):
    monkeypatch.setenv("STUDY_PLANNER_DB_PATH", tmp_db)
    get_settings.cache_clear()
    try:
        with patch("study_planner.app.Prompt.ask", side_effect=["me", "Ada", "bogus", "plan", "progress", "quit"]):
            main()
    finally:
        get_settings.cache_clear()
    text = output.getvalue()
    assert "catalog is empty" in text
    assert "Unknown command" in text
    assert "has no deadline set" in text
    assert "Good luck" in text
    assert list_user_ids(tmp_db) == ["me"]
