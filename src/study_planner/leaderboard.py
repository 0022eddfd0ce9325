"""Leaderboard ranking by streak and study time."""
from datetime import date, datetime, time, timedelta

from study_planner.db import get_connection
from study_planner.models import LeaderboardEntry, Timeframe

WINDOW_DAYS = {
    Timeframe.DAILY: 0,
    Timeframe.WEEKLY: 7,
    Timeframe.MONTHLY: 30,
}


def window_start(timeframe: Timeframe, today: date) -> datetime | None:
    if timeframe is Timeframe.OVERALL:
        return None
    return datetime.combine(today - timedelta(days=WINDOW_DAYS[timeframe]), time.min)


def get_leaderboard(
    db_path: str,
    limit: int = 10,
    timeframe: str = Timeframe.OVERALL.value,
    now: datetime | None = None,
) -> list[LeaderboardEntry]:
    """Rank users for a timeframe.

    ``overall`` ranks by streak, then lifetime study time. Windowed views rank
    by minutes studied inside the window only; streak is reported but does not
    affect the order, and users with no study time in the window are left out.
    """
    timeframe = Timeframe(timeframe)
    today = (now or datetime.now()).date()
    conn = get_connection(db_path)
    if timeframe is Timeframe.OVERALL:
        rows = conn.execute(
            """SELECT name, streak, total_study_time AS minutes FROM users
            ORDER BY streak DESC, total_study_time DESC, id
            LIMIT ?""",
            (limit,),
        ).fetchall()
    else:
        rows = conn.execute(
            """SELECT u.name, u.streak, SUM(s.duration) AS minutes
            FROM study_sessions s
            JOIN users u ON s.user_id = u.id
            WHERE s.start_time >= ?
            GROUP BY u.id
            HAVING minutes > 0
            ORDER BY minutes DESC, u.id
            LIMIT ?""",
            (window_start(timeframe, today).isoformat(), limit),
        ).fetchall()
    conn.close()
    return [
        LeaderboardEntry(rank=rank, name=r["name"], streak=r["streak"] or 0, total_study_time=r["minutes"] or 0)
        for rank, r in enumerate(rows, 1)
    ]
