"""Progress summary across the catalog."""
from study_planner.catalog import get_subjects
from study_planner.models import PYQ_ID, ContentType
from study_planner.progress import get_completed_keys
from study_planner.users import get_user


def _percent(part: float, whole: float) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def get_progress_summary(db_path: str, user_id: str) -> dict:
    """Completed items and minutes, overall and per subject.

    The PYQ block of a subject counts as a single item.
    """
    get_user(db_path, user_id)
    completed = get_completed_keys(db_path, user_id)
    subjects = []
    totals = {"total_items": 0, "completed_items": 0, "total_duration": 0, "completed_duration": 0}
    for subject in get_subjects(db_path):
        units = [
            ((subject.id, module.id, item.id, item.type.value), item.duration_minutes)
            for module in subject.modules
            for item in module.content
        ]
        if subject.pyqs.count > 0:
            units.append(((subject.id, PYQ_ID, PYQ_ID, ContentType.PYQ.value), subject.pyqs.estimated_duration))
        if not units:
            continue
        done = [duration for key, duration in units if key in completed]
        stats = {
            "subject_id": subject.id,
            "name": subject.name,
            "total_items": len(units),
            "completed_items": len(done),
            "total_duration": sum(duration for _, duration in units),
            "completed_duration": sum(done),
        }
        stats["percent_complete"] = _percent(stats["completed_items"], stats["total_items"])
        subjects.append(stats)
        for field in totals:
            totals[field] += stats[field]

    overall = dict(totals)
    overall["percent_complete"] = _percent(totals["completed_items"], totals["total_items"])
    overall["percent_duration_complete"] = _percent(totals["completed_duration"], totals["total_duration"])
    return {"overall": overall, "subjects": subjects}
