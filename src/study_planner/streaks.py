"""Daily streak evaluation."""
import logging
from datetime import date, datetime, timedelta

from study_planner.models import StreakUpdate, User
from study_planner.users import get_user, update_user_fields

logger = logging.getLogger(__name__)

DEFAULT_DAILY_TARGET = 120
STREAK_THRESHOLD_PERCENT = 80


def studied_minutes_on(user: User, day: date) -> int:
    """Minutes studied on ``day``.

    Study sessions and completion records can both log the same work, so the
    larger of the two totals is used rather than their sum.
    """
    session_minutes = sum(s.duration for s in user.study_sessions if s.start_time.date() == day)
    progress_minutes = sum(
        record.time_spent or 0
        for record in user.content_progress
        if record.completed_date and record.completed_date.date() == day
    )
    return max(session_minutes, progress_minutes)


def next_streak(user: User, today: date) -> int:
    if user.last_streak_date == today - timedelta(days=1):
        return user.streak + 1
    if user.last_streak_date == today:
        return user.streak
    return 1


def update_user_streak(db_path: str, user_id: str, now: datetime | None = None) -> StreakUpdate:
    """Extend the user's streak when at least 80% of today's target was studied.

    A missed target leaves the stored streak untouched.
    """
    user = get_user(db_path, user_id)
    today = (now or datetime.now()).date()

    target = DEFAULT_DAILY_TARGET
    if user.selected_plan:
        target = user.daily_target.for_plan(user.selected_plan) or DEFAULT_DAILY_TARGET

    studied = studied_minutes_on(user, today)
    percentage = studied / target * 100

    if percentage >= STREAK_THRESHOLD_PERCENT:
        streak = next_streak(user, today)
        update_user_fields(db_path, user_id, streak=streak, last_streak_date=today)
        logger.info("Streak maintained for user %s: %d day(s), %.1f%% of target", user_id, streak, percentage)
        return StreakUpdate(
            streak=streak,
            maintained=True,
            percentage=percentage,
            message=f"Streak maintained! You've completed {percentage:.1f}% of your daily target.",
        )

    logger.info("User %s at %.1f%% of daily target, streak unchanged", user_id, percentage)
    return StreakUpdate(
        streak=user.streak,
        maintained=False,
        percentage=percentage,
        message=(
            f"Warning: You've only completed {percentage:.1f}% of your daily target. "
            f"You need at least {STREAK_THRESHOLD_PERCENT}% to maintain your streak."
        ),
    )
