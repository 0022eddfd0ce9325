"""Content catalog: subjects, modules and content items."""
import json
import logging
import uuid
from pathlib import Path

from study_planner.db import get_connection
from study_planner.errors import InvalidSettingError, SubjectNotFoundError
from study_planner.models import (
    ContentItem, ContentType, Module, PyqBlock, Subject, pyq_estimated_duration,
)

logger = logging.getLogger(__name__)

CATALOG_CONTENT_TYPES = (ContentType.LECTURE, ContentType.QUIZ, ContentType.HOMEWORK)


def _new_id() -> str:
    return uuid.uuid4().hex


def is_seeded(db_path: str) -> bool:
    """Check whether the catalog holds at least one subject."""
    conn = get_connection(db_path)
    count = conn.execute("SELECT COUNT(*) FROM subjects").fetchone()[0]
    conn.close()
    return count > 0


def add_subject(db_path: str, data: dict) -> Subject:
    """Insert a subject with its modules and content items.

    ``data`` follows the catalog document shape: ``name``, optional ``id``,
    ``modules`` (each with ``name`` and ``content`` items carrying ``type``,
    ``name`` and ``durationMinutes``) and optional ``pyqs.count``.
    """
    pyq_count = int((data.get("pyqs") or {}).get("count", 0))
    subject = Subject(
        id=str(data.get("id") or _new_id()),
        name=data["name"].strip(),
        pyqs=PyqBlock(count=pyq_count, estimated_duration=pyq_estimated_duration(pyq_count)),
    )
    for module_data in data.get("modules", []):
        module = Module(id=str(module_data.get("id") or _new_id()), name=module_data["name"].strip())
        for item_data in module_data.get("content", []):
            item_type = ContentType(item_data["type"])
            if item_type not in CATALOG_CONTENT_TYPES:
                raise InvalidSettingError(f"Content items cannot be of type {item_type.value!r}")
            module.content.append(ContentItem(
                id=str(item_data.get("id") or _new_id()),
                type=item_type,
                name=item_data["name"].strip(),
                duration_minutes=int(item_data["durationMinutes"]),
            ))
        subject.modules.append(module)

    conn = get_connection(db_path)
    conn.execute(
        """INSERT INTO subjects (id, name, pyq_count, pyq_estimated_duration, total_duration)
        VALUES (?, ?, ?, ?, ?)""",
        (subject.id, subject.name, subject.pyqs.count, subject.pyqs.estimated_duration, subject.total_duration),
    )
    for m_pos, module in enumerate(subject.modules):
        conn.execute(
            "INSERT INTO modules (id, subject_id, name, position) VALUES (?, ?, ?, ?)",
            (module.id, subject.id, module.name, m_pos),
        )
        for i_pos, item in enumerate(module.content):
            conn.execute(
                """INSERT INTO content_items (id, module_id, type, name, duration_minutes, position)
                VALUES (?, ?, ?, ?, ?, ?)""",
                (item.id, module.id, item.type.value, item.name, item.duration_minutes, i_pos),
            )
    conn.commit()
    conn.close()
    logger.info("Added subject %s (%s) with %d minutes of content", subject.name, subject.id, subject.total_duration)
    return subject


def _load_subject(conn, row) -> Subject:
    subject = Subject(
        id=row["id"],
        name=row["name"],
        pyqs=PyqBlock(count=row["pyq_count"], estimated_duration=row["pyq_estimated_duration"]),
    )
    modules = conn.execute(
        "SELECT * FROM modules WHERE subject_id = ? ORDER BY position", (row["id"],)
    ).fetchall()
    for m in modules:
        items = conn.execute(
            "SELECT * FROM content_items WHERE module_id = ? ORDER BY position", (m["id"],)
        ).fetchall()
        subject.modules.append(Module(
            id=m["id"],
            name=m["name"],
            content=[
                ContentItem(id=i["id"], type=ContentType(i["type"]), name=i["name"], duration_minutes=i["duration_minutes"])
                for i in items
            ],
        ))
    return subject


def get_subject(db_path: str, subject_id: str) -> Subject:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM subjects WHERE id = ?", (subject_id,)).fetchone()
    if row is None:
        conn.close()
        raise SubjectNotFoundError(subject_id)
    subject = _load_subject(conn, row)
    conn.close()
    return subject


def get_subjects(db_path: str, subject_ids: list[str] | None = None) -> list[Subject]:
    """Return subjects from the catalog.

    With ``subject_ids`` only those subjects are returned, in the given order;
    ids missing from the catalog are skipped. Without it every subject is
    returned ordered by name.
    """
    conn = get_connection(db_path)
    if subject_ids is None:
        rows = conn.execute("SELECT * FROM subjects ORDER BY name").fetchall()
    else:
        by_id = {
            r["id"]: r
            for r in conn.execute(
                f"SELECT * FROM subjects WHERE id IN ({','.join('?' * len(subject_ids))})",
                tuple(subject_ids),
            ).fetchall()
        } if subject_ids else {}
        rows = [by_id[sid] for sid in dict.fromkeys(subject_ids) if sid in by_id]
    subjects = [_load_subject(conn, r) for r in rows]
    conn.close()
    return subjects


def read_catalog_file(file_path: str) -> dict:
    path = Path(file_path)
    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        import yaml
        data = yaml.safe_load(path.read_text())
    else:
        data = json.loads(path.read_text())
    if not isinstance(data, dict) or not isinstance(data.get("subjects"), list):
        raise InvalidSettingError(f"{path.name} does not contain a 'subjects' list")
    return data


def load_catalog(db_path: str, file_path: str) -> list[Subject]:
    """Import every subject from a JSON or YAML catalog file, skipping names already present."""
    data = read_catalog_file(file_path)
    conn = get_connection(db_path)
    existing = {r["name"] for r in conn.execute("SELECT name FROM subjects").fetchall()}
    conn.close()
    added = []
    for subject_data in data["subjects"]:
        if subject_data["name"].strip() in existing:
            logger.info("Skipping subject %s, already in catalog", subject_data["name"])
            continue
        added.append(add_subject(db_path, subject_data))
    return added
