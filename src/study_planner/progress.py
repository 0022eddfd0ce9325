"""Progress tracking: completion records and study sessions."""
import logging
from datetime import datetime, timedelta

from study_planner.db import get_connection
from study_planner.errors import UserNotFoundError
from study_planner.models import ContentType, StudySessionRecord

logger = logging.getLogger(__name__)


def _require_user(conn, user_id: str) -> None:
    if conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone() is None:
        conn.close()
        raise UserNotFoundError(user_id)


def _insert_session(conn, user_id: str, session: StudySessionRecord) -> None:
    conn.execute(
        """INSERT INTO study_sessions
        (user_id, subject_id, module_id, item_id, type, start_time, end_time, duration, notes)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            user_id, session.subject_id, session.module_id, session.item_id, session.type.value,
            session.start_time.isoformat(), session.end_time.isoformat(), session.duration, session.notes,
        ),
    )
    conn.execute(
        "UPDATE users SET total_study_time = total_study_time + ? WHERE id = ?",
        (session.duration, user_id),
    )


def _session_ending_now(subject_id, module_id, item_id, type, duration, notes, now) -> StudySessionRecord:
    now = now or datetime.now()
    return StudySessionRecord(
        subject_id=subject_id,
        module_id=module_id,
        item_id=item_id,
        type=ContentType(type),
        start_time=now - timedelta(minutes=duration),
        end_time=now,
        duration=duration,
        notes=notes,
    )


def record_study_session(
    db_path: str,
    user_id: str,
    subject_id: str,
    module_id: str,
    item_id: str,
    type: str,
    duration: int,
    notes: str = "",
    now: datetime | None = None,
) -> StudySessionRecord:
    """Append a study session ending at ``now`` and add it to the user's total study time."""
    session = _session_ending_now(subject_id, module_id, item_id, type, duration, notes, now)
    conn = get_connection(db_path)
    _require_user(conn, user_id)
    _insert_session(conn, user_id, session)
    conn.commit()
    conn.close()
    return session


def mark_content_complete(
    db_path: str,
    user_id: str,
    subject_id: str,
    module_id: str,
    item_id: str,
    type: str,
    duration: int,
    notes: str = "Marked as completed from progress",
    now: datetime | None = None,
    log_session: bool = True,
) -> bool:
    """Record a finished item and log the time spent on it.

    The completion record is written once per (subject, module, item, type);
    the study session is appended every time unless ``log_session`` is False.
    Returns True when a new completion record was created.
    """
    session = _session_ending_now(subject_id, module_id, item_id, type, duration, notes, now)
    conn = get_connection(db_path)
    _require_user(conn, user_id)
    cursor = conn.execute(
        """INSERT OR IGNORE INTO content_progress
        (user_id, subject_id, module_id, item_id, type, completed, completed_date, time_spent, notes)
        VALUES (?, ?, ?, ?, ?, 1, ?, ?, ?)""",
        (
            user_id, subject_id, module_id, item_id, session.type.value,
            session.end_time.isoformat(), duration, notes,
        ),
    )
    created = cursor.rowcount > 0
    if log_session:
        _insert_session(conn, user_id, session)
    conn.commit()
    conn.close()
    if not created:
        logger.debug("Content %s already marked as completed, only adding study session", item_id)
    return created


def get_completed_keys(db_path: str, user_id: str) -> set[tuple[str, str, str, str]]:
    """Return (subject_id, module_id, item_id, type) for every completed item."""
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT subject_id, module_id, item_id, type FROM content_progress
        WHERE user_id = ? AND completed = 1""",
        (user_id,),
    ).fetchall()
    conn.close()
    return {(r["subject_id"], r["module_id"], r["item_id"], r["type"]) for r in rows}
