"""Database initialization and connection management."""
import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = str(Path.home() / ".study_planner" / "planner.db")

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    deadline TEXT,
    target_minimum INTEGER DEFAULT 0,
    target_moderate INTEGER DEFAULT 0,
    target_maximum INTEGER DEFAULT 0,
    target_custom INTEGER DEFAULT 0,
    selected_plan TEXT DEFAULT 'moderate',
    streak INTEGER DEFAULT 0,
    last_streak_date TEXT,
    total_study_time INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS subjects (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    pyq_count INTEGER DEFAULT 0,
    pyq_estimated_duration INTEGER DEFAULT 0,
    total_duration INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS modules (
    id TEXT PRIMARY KEY,
    subject_id TEXT NOT NULL REFERENCES subjects(id),
    name TEXT NOT NULL,
    position INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS content_items (
    id TEXT PRIMARY KEY,
    module_id TEXT NOT NULL REFERENCES modules(id),
    type TEXT NOT NULL CHECK (type IN ('lecture', 'quiz', 'homework')),
    name TEXT NOT NULL,
    duration_minutes INTEGER NOT NULL,
    position INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS selected_subjects (
    user_id TEXT NOT NULL REFERENCES users(id),
    subject_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    UNIQUE(user_id, subject_id)
);

CREATE TABLE IF NOT EXISTS subject_priorities (
    user_id TEXT NOT NULL REFERENCES users(id),
    subject_id TEXT NOT NULL,
    priority INTEGER NOT NULL CHECK (priority BETWEEN 1 AND 10),
    UNIQUE(user_id, subject_id)
);

CREATE TABLE IF NOT EXISTS content_progress (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL REFERENCES users(id),
    subject_id TEXT NOT NULL,
    module_id TEXT NOT NULL,
    item_id TEXT NOT NULL,
    type TEXT NOT NULL,
    completed INTEGER DEFAULT 1,
    completed_date TEXT,
    time_spent INTEGER DEFAULT 0,
    notes TEXT,
    UNIQUE(user_id, subject_id, module_id, item_id, type)
);

CREATE TABLE IF NOT EXISTS study_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL REFERENCES users(id),
    subject_id TEXT NOT NULL,
    module_id TEXT NOT NULL,
    item_id TEXT NOT NULL,
    type TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    duration INTEGER NOT NULL,
    notes TEXT
);

CREATE TABLE IF NOT EXISTS schedule_entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL REFERENCES users(id),
    date TEXT NOT NULL,
    subject_id TEXT NOT NULL,
    module_id TEXT NOT NULL,
    item_id TEXT NOT NULL,
    type TEXT NOT NULL,
    name TEXT NOT NULL,
    module_name TEXT,
    subject_name TEXT,
    duration INTEGER NOT NULL,
    completed INTEGER DEFAULT 0,
    completed_date TEXT,
    UNIQUE(user_id, item_id, type, date)
);

CREATE INDEX IF NOT EXISTS idx_study_sessions_user_start
    ON study_sessions (user_id, start_time);
CREATE INDEX IF NOT EXISTS idx_schedule_entries_user_date
    ON schedule_entries (user_id, date);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()
