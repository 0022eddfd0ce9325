"""Build the ordered backlog of unfinished study items."""
import math

from study_planner.models import PYQ_ID, ContentType, StudyItem, Subject

DEFAULT_PRIORITY = 5
MAX_PYQ_SESSION_MINUTES = 180
PYQ_MODULE_NAME = "Previous Year Questions"


def split_pyq_sessions(estimated_duration: int) -> list[int]:
    """Split a PYQ block into equal sessions of at most three hours (rounded up)."""
    if estimated_duration <= 0:
        return []
    count = math.ceil(estimated_duration / MAX_PYQ_SESSION_MINUTES)
    per_session = math.ceil(estimated_duration / count)
    return [per_session] * count


def pyq_part_id(subject_id: str, index: int) -> str:
    return f"{subject_id}-{PYQ_ID}-{index}"


def _pyq_items(subject: Subject, priority: int, start_order: int, completed) -> list[StudyItem]:
    sessions = split_pyq_sessions(subject.pyqs.estimated_duration)
    items = []
    for i, duration in enumerate(sessions):
        item_id = pyq_part_id(subject.id, i)
        if (subject.id, PYQ_ID, item_id, ContentType.PYQ.value) in completed:
            continue
        suffix = f" (Part {i + 1}/{len(sessions)})" if len(sessions) > 1 else ""
        items.append(StudyItem(
            subject_id=subject.id,
            subject_name=subject.name,
            module_id=PYQ_ID,
            module_name=PYQ_MODULE_NAME,
            item_id=item_id,
            item_name=f"{subject.name} PYQs{suffix}",
            type=ContentType.PYQ,
            duration=duration,
            priority=priority,
            order=start_order + i,
        ))
    return items


def collect_study_items(
    subjects: list[Subject],
    completed: set[tuple[str, str, str, str]],
    priorities: dict[str, int],
) -> list[StudyItem]:
    """Emit one StudyItem per unfinished unit, each at most once, in catalog order."""
    items: list[StudyItem] = []
    seen: set[tuple[str, str, str, str]] = set()
    order = 0
    for subject in subjects:
        priority = priorities.get(subject.id) or DEFAULT_PRIORITY
        for module in subject.modules:
            for content in module.content:
                key = (subject.id, module.id, content.id, content.type.value)
                if key in completed or key in seen:
                    continue
                seen.add(key)
                items.append(StudyItem(
                    subject_id=subject.id,
                    subject_name=subject.name,
                    module_id=module.id,
                    module_name=module.name,
                    item_id=content.id,
                    item_name=content.name,
                    type=content.type,
                    duration=content.duration_minutes,
                    priority=priority,
                    order=order,
                ))
                order += 1

        pyq_key = (subject.id, PYQ_ID, PYQ_ID, ContentType.PYQ.value)
        if subject.pyqs.count > 0 and pyq_key not in completed and pyq_key not in seen:
            seen.add(pyq_key)
            parts = _pyq_items(subject, priority, order, completed)
            items.extend(parts)
            order += len(parts)
    return items


def prioritize(items: list[StudyItem]) -> list[StudyItem]:
    """Group items by subject, highest priority subject first.

    Subjects with equal priority are ordered by subject id. Inside a subject
    the catalog order is kept, with PYQ parts last.
    """
    groups: dict[str, list[StudyItem]] = {}
    for item in items:
        groups.setdefault(item.subject_id, []).append(item)
    ordered_ids = sorted(groups, key=lambda sid: (-groups[sid][0].priority, sid))
    backlog = []
    for subject_id in ordered_ids:
        backlog.extend(sorted(groups[subject_id], key=lambda item: item.order))
    return backlog


def build_backlog(
    subjects: list[Subject],
    completed: set[tuple[str, str, str, str]],
    priorities: dict[str, int],
) -> list[StudyItem]:
    return prioritize(collect_study_items(subjects, completed, priorities))
