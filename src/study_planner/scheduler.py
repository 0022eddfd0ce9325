"""Day-by-day schedule generation and the persisted schedule."""
import logging
import sqlite3
from datetime import date, datetime, timedelta

from study_planner.backlog import build_backlog, pyq_part_id, split_pyq_sessions
from study_planner.catalog import get_subject, get_subjects
from study_planner.config import get_settings
from study_planner.db import get_connection
from study_planner.errors import ScheduleEntryNotFoundError, StorageError, UserNotFoundError
from study_planner.locks import LockManager, schedule_locks
from study_planner.models import (
    PYQ_ID, ContentType, DaySchedule, PlanTier, ScheduleEntry, StreakUpdate, StudyItem, User,
)
from study_planner.progress import get_completed_keys, mark_content_complete
from study_planner.streaks import update_user_streak
from study_planner.targets import calculate_study_plans_unlocked
from study_planner.users import get_user, row_to_schedule_entry

logger = logging.getLogger(__name__)

DEFAULT_DAILY_TARGET = 120
SOFT_CAP_RATIO = 1.1
SUBJECT_SWITCH_RATIO = 0.7
SUBJECT_SWITCH_MIN_MINUTES = 60
TODAY_LOOKAHEAD_DAYS = 7


def resolve_daily_target(user: User) -> int:
    """Minutes per day for the user's selected plan, with fallbacks for unset targets."""
    plan = user.selected_plan or PlanTier.MODERATE.value
    minutes = user.daily_target.for_plan(plan)
    if not minutes or minutes <= 0:
        logger.warning("Invalid daily target for user %s, plan: %s. Using fallback value.", user.id, plan)
        minutes = user.daily_target.moderate or user.daily_target.minimum or DEFAULT_DAILY_TARGET
    return minutes


def _entry_for(item: StudyItem, day: date) -> ScheduleEntry:
    return ScheduleEntry(
        date=day,
        subject_id=item.subject_id,
        module_id=item.module_id,
        item_id=item.item_id,
        type=item.type,
        name=item.item_name,
        module_name=item.module_name,
        subject_name=item.subject_name,
        duration=item.duration,
    )


def pack_days(backlog: list[StudyItem], start_date: date, days: int, daily_target: int) -> list[ScheduleEntry]:
    """Greedily fill consecutive days with backlog items.

    A day closes once it reaches ``daily_target``. An item that would push the
    day past 110% of the target waits for the next day, unless the day is still
    empty. Once a day is past 70% of the target (and over an hour) it is not
    started on a new subject.
    """
    entries: list[ScheduleEntry] = []
    max_daily = daily_target * SOFT_CAP_RATIO
    index = 0
    current = start_date
    for _ in range(days):
        if index >= len(backlog):
            break
        scheduled = 0
        day_keys: set[tuple[str, str]] = set()
        current_subject = None
        while index < len(backlog) and scheduled < daily_target:
            item = backlog[index]
            if item.subject_id != current_subject:
                if scheduled > daily_target * SUBJECT_SWITCH_RATIO and scheduled > SUBJECT_SWITCH_MIN_MINUTES:
                    break
                current_subject = item.subject_id
            if day_keys and scheduled + item.duration > max_daily:
                break
            key = (item.item_id, item.type.value)
            if key not in day_keys:
                day_keys.add(key)
                entries.append(_entry_for(item, current))
                scheduled += item.duration
            index += 1
        current += timedelta(days=1)
    return entries


def dedupe_entries(entries: list[ScheduleEntry]) -> list[ScheduleEntry]:
    unique: dict[tuple[str, str, str], ScheduleEntry] = {}
    for entry in entries:
        unique.setdefault(entry.dedup_key, entry)
    return list(unique.values())


def _insert_batch(conn: sqlite3.Connection, user_id: str, batch: list[ScheduleEntry]) -> None:
    conn.executemany(
        """INSERT INTO schedule_entries
        (user_id, date, subject_id, module_id, item_id, type, name, module_name, subject_name,
         duration, completed, completed_date)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        [
            (
                user_id, e.date.isoformat(), e.subject_id, e.module_id, e.item_id, e.type.value,
                e.name, e.module_name, e.subject_name, e.duration, int(e.completed),
                e.completed_date.isoformat() if e.completed_date else None,
            )
            for e in batch
        ],
    )
    conn.commit()


def save_schedule(
    db_path: str,
    user_id: str,
    start_date: date,
    entries: list[ScheduleEntry],
    batch_size: int | None = None,
) -> int:
    """Replace the user's schedule from ``start_date`` onwards.

    Entries are deduplicated on (item, type, date) and written in batches. A
    failed batch is logged and skipped; earlier batches stay written. Returns
    the number of entries stored.
    """
    batch_size = batch_size or get_settings().schedule_batch_size
    conn = get_connection(db_path)
    try:
        conn.execute(
            "DELETE FROM schedule_entries WHERE user_id = ? AND date >= ?",
            (user_id, start_date.isoformat()),
        )
        conn.commit()
    except sqlite3.Error as exc:
        conn.close()
        raise StorageError(f"Could not clear schedule for user {user_id}: {exc}") from exc

    unique = dedupe_entries(entries)
    saved = 0
    for number, offset in enumerate(range(0, len(unique), batch_size), 1):
        batch = unique[offset:offset + batch_size]
        try:
            _insert_batch(conn, user_id, batch)
            saved += len(batch)
        except sqlite3.Error:
            conn.rollback()
            logger.exception("Failed to save schedule batch %d (%d entries) for user %s", number, len(batch), user_id)
    conn.close()
    logger.info("Saved %d of %d schedule entries for user %s", saved, len(unique), user_id)
    return saved


def aggregate_by_day(entries: list[ScheduleEntry]) -> list[DaySchedule]:
    days: dict[date, DaySchedule] = {}
    for entry in entries:
        if entry.date not in days:
            days[entry.date] = DaySchedule(date=entry.date)
        days[entry.date].add(entry)
    return [days[d] for d in sorted(days)]


def generate_schedule(
    db_path: str,
    user_id: str,
    start_date: date | None = None,
    days: int | None = None,
    now: datetime | None = None,
    locks: LockManager = schedule_locks,
) -> list[DaySchedule]:
    """Regenerate the user's schedule from ``start_date`` for up to ``days`` days.

    Runs under the user's lock and recomputes daily targets first. A user with
    no selected subjects gets an empty schedule. A horizon of zero days plans
    nothing and leaves the stored schedule as it is.
    """
    now = now or datetime.now()
    if isinstance(start_date, datetime):
        start_date = start_date.date()
    start_date = start_date or now.date()
    if days is None:
        days = get_settings().default_schedule_days

    with locks.hold(user_id):
        calculate_study_plans_unlocked(db_path, user_id, now=now)
        if days <= 0:
            logger.info("Empty horizon for user %s; schedule left unchanged", user_id)
            return []
        user = get_user(db_path, user_id)
        daily_target = resolve_daily_target(user)

        if not user.selected_subjects:
            logger.info("User %s has not selected any subjects; returning an empty schedule", user_id)
            return []
        subjects = get_subjects(db_path, user.selected_subjects)
        if not subjects:
            logger.info("No selected subjects of user %s exist in the catalog", user_id)
            return []

        completed = get_completed_keys(db_path, user_id)
        backlog = build_backlog(subjects, completed, user.subject_priorities)
        entries = pack_days(backlog, start_date, days, daily_target)
        logger.info(
            "Packed %d of %d backlog items into %d days for user %s at %d min/day",
            len(entries), len(backlog), len({e.date for e in entries}), user_id, daily_target,
        )
        save_schedule(db_path, user_id, start_date, entries)
        return aggregate_by_day(entries)


def _require_user(conn, user_id: str) -> None:
    if conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone() is None:
        conn.close()
        raise UserNotFoundError(user_id)


def get_schedule_for_date(db_path: str, user_id: str, day: date) -> DaySchedule:
    conn = get_connection(db_path)
    _require_user(conn, user_id)
    rows = conn.execute(
        "SELECT * FROM schedule_entries WHERE user_id = ? AND date = ? ORDER BY id",
        (user_id, day.isoformat()),
    ).fetchall()
    conn.close()
    schedule = DaySchedule(date=day)
    for row in rows:
        schedule.add(row_to_schedule_entry(row))
    return schedule


def get_today_schedule(db_path: str, user_id: str, now: datetime | None = None) -> DaySchedule:
    """Today's planned sessions, generating a week ahead when nothing is planned yet."""
    now = now or datetime.now()
    today = now.date()
    schedule = get_schedule_for_date(db_path, user_id, today)
    if schedule.planned_sessions:
        return schedule

    generated = generate_schedule(db_path, user_id, today, TODAY_LOOKAHEAD_DAYS, now=now)
    schedule = get_schedule_for_date(db_path, user_id, today)
    if schedule.planned_sessions:
        return schedule
    if generated and generated[0].date == today:
        return generated[0]
    return DaySchedule(date=today)


def complete_scheduled_session(
    db_path: str,
    user_id: str,
    entry_id: int,
    completed: bool = True,
    duration: int | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> tuple[ScheduleEntry, StreakUpdate | None]:
    """Mark a persisted schedule entry done or not done.

    Completing an entry logs a study session, records the content as finished
    (once) and re-evaluates the streak.
    """
    now = now or datetime.now()
    conn = get_connection(db_path)
    _require_user(conn, user_id)
    cursor = conn.execute(
        "UPDATE schedule_entries SET completed = ?, completed_date = ? WHERE id = ? AND user_id = ?",
        (int(completed), now.isoformat() if completed else None, entry_id, user_id),
    )
    if cursor.rowcount == 0:
        conn.close()
        raise ScheduleEntryNotFoundError(entry_id)
    conn.commit()
    entry = row_to_schedule_entry(
        conn.execute("SELECT * FROM schedule_entries WHERE id = ?", (entry_id,)).fetchone()
    )
    conn.close()

    if not completed:
        return entry, None
    mark_content_complete(
        db_path, user_id,
        subject_id=entry.subject_id,
        module_id=entry.module_id,
        item_id=entry.item_id,
        type=entry.type.value,
        duration=duration or entry.duration,
        notes=notes or "Marked as completed from schedule",
        now=now,
    )
    if entry.type is ContentType.PYQ and entry.item_id != PYQ_ID:
        _close_pyq_block(db_path, user_id, entry.subject_id, now)
    return entry, update_user_streak(db_path, user_id, now=now)


def _close_pyq_block(db_path: str, user_id: str, subject_id: str, now: datetime) -> None:
    """Mark a subject's PYQ block done once every one of its parts is."""
    subject = get_subject(db_path, subject_id)
    parts = split_pyq_sessions(subject.pyqs.estimated_duration)
    completed = get_completed_keys(db_path, user_id)
    pyq = ContentType.PYQ.value
    if all((subject_id, PYQ_ID, pyq_part_id(subject_id, i), pyq) in completed for i in range(len(parts))):
        mark_content_complete(
            db_path, user_id, subject_id, PYQ_ID, PYQ_ID, pyq,
            duration=0, notes="All PYQ parts completed", now=now, log_session=False,
        )
        logger.info("PYQ block of subject %s completed by user %s", subject_id, user_id)


def reset_schedule(db_path: str, user_id: str) -> int:
    conn = get_connection(db_path)
    _require_user(conn, user_id)
    deleted = conn.execute("DELETE FROM schedule_entries WHERE user_id = ?", (user_id,)).rowcount
    conn.commit()
    conn.close()
    logger.info("Reset schedule for user %s (%d entries removed)", user_id, deleted)
    return deleted
