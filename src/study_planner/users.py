"""User store: profile settings, targets and the per-user aggregate."""
import logging
import uuid
from datetime import date, datetime

from study_planner.db import get_connection
from study_planner.errors import InvalidSettingError, UserNotFoundError
from study_planner.models import (
    CompletionRecord, ContentType, DailyTarget, PlanTier, ScheduleEntry,
    StudySessionRecord, User,
)

logger = logging.getLogger(__name__)

# Columns that may be written through update_user_fields.
UPDATABLE_COLUMNS = {
    "name", "deadline", "target_minimum", "target_moderate", "target_maximum",
    "target_custom", "selected_plan", "streak", "last_streak_date", "total_study_time",
}

MIN_PRIORITY = 1
MAX_PRIORITY = 10


def _parse_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


def _parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _require_user(conn, user_id: str):
    row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    if row is None:
        conn.close()
        raise UserNotFoundError(user_id)
    return row


def create_user(
    db_path: str,
    name: str,
    user_id: str | None = None,
    deadline: date | None = None,
    selected_plan: str = PlanTier.MODERATE.value,
) -> User:
    user_id = user_id or uuid.uuid4().hex
    PlanTier(selected_plan)
    conn = get_connection(db_path)
    conn.execute(
        "INSERT INTO users (id, name, deadline, selected_plan) VALUES (?, ?, ?, ?)",
        (user_id, name, deadline.isoformat() if deadline else None, selected_plan),
    )
    conn.commit()
    conn.close()
    logger.info("Created user %s", user_id)
    return get_user(db_path, user_id)


def get_user(db_path: str, user_id: str) -> User:
    """Load the full user aggregate, including progress, sessions and schedule."""
    conn = get_connection(db_path)
    row = _require_user(conn, user_id)
    user = User(
        id=row["id"],
        name=row["name"],
        deadline=_parse_date(row["deadline"]),
        daily_target=DailyTarget(
            minimum=row["target_minimum"] or 0,
            moderate=row["target_moderate"] or 0,
            maximum=row["target_maximum"] or 0,
            custom=row["target_custom"] or 0,
        ),
        selected_plan=row["selected_plan"] or PlanTier.MODERATE.value,
        streak=row["streak"] or 0,
        last_streak_date=_parse_date(row["last_streak_date"]),
        total_study_time=row["total_study_time"] or 0,
    )
    user.selected_subjects = [
        r["subject_id"]
        for r in conn.execute(
            "SELECT subject_id FROM selected_subjects WHERE user_id = ? ORDER BY position", (user_id,)
        ).fetchall()
    ]
    user.subject_priorities = {
        r["subject_id"]: r["priority"]
        for r in conn.execute(
            "SELECT subject_id, priority FROM subject_priorities WHERE user_id = ?", (user_id,)
        ).fetchall()
    }
    user.content_progress = [
        CompletionRecord(
            subject_id=r["subject_id"],
            module_id=r["module_id"],
            item_id=r["item_id"],
            type=ContentType(r["type"]),
            completed=bool(r["completed"]),
            completed_date=_parse_datetime(r["completed_date"]),
            time_spent=r["time_spent"] or 0,
            notes=r["notes"] or "",
        )
        for r in conn.execute(
            "SELECT * FROM content_progress WHERE user_id = ? ORDER BY id", (user_id,)
        ).fetchall()
    ]
    user.study_sessions = [
        StudySessionRecord(
            subject_id=r["subject_id"],
            module_id=r["module_id"],
            item_id=r["item_id"],
            type=ContentType(r["type"]),
            start_time=datetime.fromisoformat(r["start_time"]),
            end_time=datetime.fromisoformat(r["end_time"]),
            duration=r["duration"],
            notes=r["notes"] or "",
        )
        for r in conn.execute(
            "SELECT * FROM study_sessions WHERE user_id = ? ORDER BY start_time, id", (user_id,)
        ).fetchall()
    ]
    user.schedule = [
        row_to_schedule_entry(r)
        for r in conn.execute(
            "SELECT * FROM schedule_entries WHERE user_id = ? ORDER BY date, id", (user_id,)
        ).fetchall()
    ]
    conn.close()
    return user


def row_to_schedule_entry(row) -> ScheduleEntry:
    return ScheduleEntry(
        id=row["id"],
        date=date.fromisoformat(row["date"]),
        subject_id=row["subject_id"],
        module_id=row["module_id"],
        item_id=row["item_id"],
        type=ContentType(row["type"]),
        name=row["name"],
        module_name=row["module_name"] or "",
        subject_name=row["subject_name"] or "",
        duration=row["duration"],
        completed=bool(row["completed"]),
        completed_date=_parse_datetime(row["completed_date"]),
    )


def update_user_fields(db_path: str, user_id: str, **fields) -> None:
    """Write only the named columns of one user row.

    Raises sqlite3 errors unchanged so callers can decide whether to retry.
    """
    unknown = set(fields) - UPDATABLE_COLUMNS
    if unknown:
        raise InvalidSettingError(f"Cannot update user fields: {', '.join(sorted(unknown))}")
    if not fields:
        return
    values = [
        v.isoformat() if isinstance(v, (date, datetime)) else v
        for v in fields.values()
    ]
    assignments = ", ".join(f"{column} = ?" for column in fields)
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(f"UPDATE users SET {assignments} WHERE id = ?", (*values, user_id))
        if cursor.rowcount == 0:
            raise UserNotFoundError(user_id)
        conn.commit()
    finally:
        conn.close()


def set_deadline(db_path: str, user_id: str, deadline: date | None) -> None:
    update_user_fields(db_path, user_id, deadline=deadline)


def select_plan(db_path: str, user_id: str, plan: str) -> None:
    try:
        tier = PlanTier(plan)
    except ValueError:
        raise InvalidSettingError(f"Unknown plan {plan!r}") from None
    update_user_fields(db_path, user_id, selected_plan=tier.value)


def set_custom_target(db_path: str, user_id: str, minutes: int) -> None:
    if minutes <= 0:
        raise InvalidSettingError("Custom target must be a positive number of minutes")
    update_user_fields(db_path, user_id, target_custom=minutes)


def select_subjects(db_path: str, user_id: str, subject_ids: list[str]) -> None:
    """Replace the user's subject selection, keeping the given order."""
    conn = get_connection(db_path)
    _require_user(conn, user_id)
    conn.execute("DELETE FROM selected_subjects WHERE user_id = ?", (user_id,))
    conn.executemany(
        "INSERT INTO selected_subjects (user_id, subject_id, position) VALUES (?, ?, ?)",
        [(user_id, sid, pos) for pos, sid in enumerate(dict.fromkeys(subject_ids))],
    )
    conn.commit()
    conn.close()


def set_subject_priority(db_path: str, user_id: str, subject_id: str, priority: int) -> None:
    if not MIN_PRIORITY <= priority <= MAX_PRIORITY:
        raise InvalidSettingError(f"Priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}")
    conn = get_connection(db_path)
    _require_user(conn, user_id)
    conn.execute(
        """INSERT INTO subject_priorities (user_id, subject_id, priority) VALUES (?, ?, ?)
        ON CONFLICT(user_id, subject_id) DO UPDATE SET priority=excluded.priority""",
        (user_id, subject_id, priority),
    )
    conn.commit()
    conn.close()


def list_user_ids(db_path: str) -> list[str]:
    conn = get_connection(db_path)
    ids = [r["id"] for r in conn.execute("SELECT id FROM users ORDER BY id").fetchall()]
    conn.close()
    return ids
