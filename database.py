"""
SQLite database layer for Nexus Study.

Uses raw sqlite3 with WAL mode and parameterized queries.
A schema_version table handles migrations.
"""

from __future__ import annotations

import fcntl
import math
import sqlite3
from datetime import datetime
from pathlib import Path

from flask import current_app, g


SCHEMA = """
-- Migration tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER NOT NULL,
    applied_at TEXT NOT NULL
);

-- Auth identity
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    email TEXT UNIQUE NOT NULL,
    password_hash TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL DEFAULT ''
);

-- Student profile, one row per user (created at signup)
CREATE TABLE IF NOT EXISTS profiles (
    id INTEGER PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
    full_name TEXT NOT NULL DEFAULT '',
    username TEXT NOT NULL DEFAULT '',
    target_course TEXT NOT NULL DEFAULT '',
    current_year TEXT NOT NULL DEFAULT '',
    avatar_url TEXT NOT NULL DEFAULT '',
    streak_count INTEGER NOT NULL DEFAULT 0 CHECK (streak_count >= 0),
    last_activity_date TEXT,
    is_pro INTEGER NOT NULL DEFAULT 0,
    xp INTEGER NOT NULL DEFAULT 0 CHECK (xp >= 0),
    level INTEGER NOT NULL DEFAULT 1 CHECK (level >= 1),
    updated_at TEXT NOT NULL DEFAULT ''
);

-- Flashcards (interval in days, next_review as ISO date)
CREATE TABLE IF NOT EXISTS flashcards (
    id TEXT PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    front TEXT NOT NULL,
    back TEXT NOT NULL,
    subject TEXT,
    interval_days INTEGER NOT NULL DEFAULT 1,
    next_review TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_flashcards_user_review ON flashcards(user_id, next_review);

-- Corrected essays (history capped per user by the grader)
CREATE TABLE IF NOT EXISTS essays (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    theme TEXT NOT NULL DEFAULT '',
    content TEXT NOT NULL,
    score INTEGER NOT NULL DEFAULT 0,
    feedback TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_essays_user_created ON essays(user_id, created_at);

-- Planner tasks
CREATE TABLE IF NOT EXISTS study_tasks (
    id TEXT PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    subject TEXT NOT NULL,
    topic TEXT NOT NULL DEFAULT '',
    date TEXT NOT NULL,
    duration_minutes INTEGER NOT NULL DEFAULT 60,
    is_done INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT ''
);
CREATE INDEX IF NOT EXISTS idx_study_tasks_user_date ON study_tasks(user_id, date);

-- Shared question pool (imports + AI generations)
CREATE TABLE IF NOT EXISTS questions_pool (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
    subject TEXT NOT NULL,
    topic TEXT NOT NULL,
    difficulty TEXT NOT NULL DEFAULT 'medium',
    content TEXT NOT NULL,
    is_public INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL DEFAULT ''
);

-- Questions a student kept after answering
CREATE TABLE IF NOT EXISTS saved_questions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    content TEXT NOT NULL,
    subject TEXT NOT NULL DEFAULT '',
    topic TEXT NOT NULL DEFAULT '',
    is_correct INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL DEFAULT ''
);
"""


MIGRATIONS: list[tuple[int, str]] = [
    # Version 1 = base schema.
    # Migration 2: pool lookups filter on subject + topic + difficulty
    (2, """
        CREATE INDEX IF NOT EXISTS idx_questions_pool_lookup
            ON questions_pool(subject, topic, difficulty);
    """),
    # Migration 3: saved questions listed newest first per user
    (3, """
        CREATE INDEX IF NOT EXISTS idx_saved_questions_user
            ON saved_questions(user_id, created_at);
    """),
]


def level_for_xp(xp: int) -> int:
    return int(math.sqrt(max(xp, 0) / 50)) + 1


def get_db():
    """Return a DB connection from Flask g, creating if needed."""
    if "db" not in g:
        db_path = current_app.config.get("DATABASE", str(Path(__file__).parent / "nexus_study.db"))
        g.db = sqlite3.connect(db_path)
        g.db.row_factory = sqlite3.Row
        g.db.create_function("xp_level", 1, level_for_xp)
        g.db.execute("PRAGMA journal_mode=WAL")
        g.db.execute("PRAGMA foreign_keys=ON")
    return g.db


def close_db(e=None) -> None:
    """Teardown handler: close DB connection."""
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db() -> None:
    """Execute schema DDL to create all tables."""
    db = get_db()
    db.executescript(SCHEMA)
    if not db.execute("SELECT 1 FROM schema_version WHERE version = 1").fetchone():
        db.execute(
            "INSERT INTO schema_version (version, applied_at) VALUES (1, ?)",
            (datetime.now().isoformat(),),
        )
    db.commit()


def run_migrations() -> None:
    """Apply any unapplied versioned migrations.

    Uses file-based locking to prevent race conditions when multiple
    Gunicorn workers start simultaneously.
    """
    db_path = current_app.config.get("DATABASE", str(Path(__file__).parent / "nexus_study.db"))
    lock_file = None
    lock_path = Path(db_path).with_suffix(".migration.lock")
    try:
        lock_file = open(lock_path, "w")
        fcntl.flock(lock_file, fcntl.LOCK_EX)
    except OSError:
        lock_file = None

    try:
        db = get_db()
        applied = {
            row["version"]
            for row in db.execute("SELECT version FROM schema_version").fetchall()
        }
        for version, sql in MIGRATIONS:
            if version not in applied:
                try:
                    db.executescript(sql)
                except sqlite3.OperationalError as e:
                    err_msg = str(e).lower()
                    if "duplicate column" not in err_msg and "already exists" not in err_msg:
                        raise
                db.execute(
                    "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now().isoformat()),
                )
                db.commit()
    finally:
        if lock_file:
            fcntl.flock(lock_file, fcntl.LOCK_UN)
            lock_file.close()


def increment_xp(user_id: int, amount: int) -> int | None:
    """Atomic counter bump on the profile row; level follows from the new total.

    Returns the new XP total, or None when the profile does not exist.
    """
    db = get_db()
    cur = db.execute(
        "UPDATE profiles SET xp = xp + ?, level = xp_level(xp + ?), updated_at = ? WHERE id = ?",
        (amount, amount, datetime.now().isoformat(), user_id),
    )
    db.commit()
    if cur.rowcount == 0:
        return None
    row = db.execute("SELECT xp FROM profiles WHERE id = ?", (user_id,)).fetchone()
    return row["xp"]


def init_app(app) -> None:
    """Register teardown and auto-init on first request."""
    app.teardown_appcontext(close_db)

    @app.before_request
    def _ensure_db():
        if not getattr(app, "_db_initialized", False):
            init_db()
            run_migrations()
            app._db_initialized = True
