"""Daily study targets derived from the deadline and the remaining content."""
import logging
import math
import sqlite3
import time
from datetime import datetime, time as dt_time

from study_planner.catalog import get_subjects
from study_planner.config import get_settings
from study_planner.errors import NoDeadlineError, StorageError
from study_planner.locks import LockManager, schedule_locks
from study_planner.models import PYQ_ID, DailyTarget, StudyPlan, Subject, User
from study_planner.users import get_user, update_user_fields

logger = logging.getLogger(__name__)

MIN_DAILY_MINUTES = 120
MODERATE_EXTRA_MINUTES = 60
MAXIMUM_EXTRA_MINUTES = 120
MAX_DAILY_MINUTES = 16 * 60

PYQ_COMPLETION_KEY = f"{PYQ_ID}-{PYQ_ID}-{PYQ_ID}"


def days_until(deadline, now: datetime) -> int:
    """Whole days left until the deadline, never less than one."""
    remaining = datetime.combine(deadline, dt_time.min) - now
    return max(1, math.ceil(remaining.total_seconds() / 86400))


def remaining_minutes(subject: Subject, user: User) -> int:
    completed = {
        record.key
        for record in user.content_progress
        if record.completed and record.subject_id == subject.id
    }
    done = sum(
        item.duration_minutes
        for module in subject.modules
        for item in module.content
        if f"{module.id}-{item.id}-{item.type.value}" in completed
    )
    if subject.pyqs.count > 0 and PYQ_COMPLETION_KEY in completed:
        done += subject.pyqs.estimated_duration
    return subject.total_duration - done


def compute_daily_targets(total_remaining: int, days_remaining: int, custom: int = 0) -> DailyTarget:
    minimum = max(MIN_DAILY_MINUTES, math.ceil(total_remaining / days_remaining))
    return DailyTarget(
        minimum=minimum,
        moderate=minimum + MODERATE_EXTRA_MINUTES,
        maximum=minimum + MAXIMUM_EXTRA_MINUTES,
        custom=min(MAX_DAILY_MINUTES, max(minimum, custom or minimum + MODERATE_EXTRA_MINUTES)),
    )


def _save_targets(db_path: str, user_id: str, targets: DailyTarget) -> None:
    settings = get_settings()
    attempt = 0
    while True:
        try:
            update_user_fields(
                db_path, user_id,
                target_minimum=targets.minimum,
                target_moderate=targets.moderate,
                target_maximum=targets.maximum,
                target_custom=targets.custom,
            )
            return
        except sqlite3.OperationalError as exc:
            attempt += 1
            logger.warning("Error saving daily targets for user %s (attempt %d): %s", user_id, attempt, exc)
            if attempt >= settings.target_write_retries:
                raise StorageError(f"Could not save daily targets for user {user_id}: {exc}") from exc
            time.sleep(settings.target_retry_delay_seconds * attempt)


def calculate_study_plans_unlocked(db_path: str, user_id: str, now: datetime | None = None) -> StudyPlan:
    """Recompute and store the user's daily targets without taking the user lock.

    Only call this from inside an operation that already holds the lock.
    """
    user = get_user(db_path, user_id)
    if not user.deadline:
        raise NoDeadlineError(user_id)
    now = now or datetime.now()
    days_remaining = days_until(user.deadline, now)

    if user.selected_subjects:
        subjects = get_subjects(db_path, user.selected_subjects)
    else:
        subjects = get_subjects(db_path)
        logger.debug("No selected subjects for user %s, using all %d subjects", user_id, len(subjects))

    total_remaining = sum(remaining_minutes(subject, user) for subject in subjects)
    targets = compute_daily_targets(total_remaining, days_remaining, user.daily_target.custom)
    _save_targets(db_path, user_id, targets)
    logger.info("Updated daily targets for user %s: %s", user_id, targets.as_dict())

    return StudyPlan(
        days_remaining=days_remaining,
        total_remaining_minutes=total_remaining,
        daily_targets=targets,
        selected_plan=user.selected_plan,
    )


def calculate_study_plans(
    db_path: str,
    user_id: str,
    now: datetime | None = None,
    locks: LockManager = schedule_locks,
) -> StudyPlan:
    """Recompute the four daily targets for a user under the user's lock."""
    with locks.hold(user_id):
        return calculate_study_plans_unlocked(db_path, user_id, now=now)
