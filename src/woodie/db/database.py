"""SQLite database connection and schema management.

Provides connection management and schema initialization for Woodie Campus.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

from woodie.config import load_app_config

logger = structlog.get_logger(__name__)

# Current database path (set by init_db, falls back to config)
_db_path: Path | None = None


def get_db_path() -> Path:
    """Return the database path in use."""
    return _db_path or load_app_config().db_path


def init_db(db_path: Path | None = None) -> None:
    """Initialize database with schema.

    Creates the database file and all required tables if they don't exist.

    Args:
        db_path: Path to database file. Defaults to the configured db_path
    """
    global _db_path
    _db_path = db_path or load_app_config().db_path

    _db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db() as conn:
        _create_schema(conn)

    logger.info("database.initialized", path=str(_db_path))


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get database connection as context manager.

    Commits on success, rolls back if the block raises.

    Yields:
        SQLite connection with row factory set to sqlite3.Row

    Example:
        with get_db() as conn:
            rows = conn.execute("SELECT * FROM users").fetchall()
    """
    db_path = get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency.
    """
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT NOT NULL UNIQUE,
            email TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL DEFAULT '',
            full_name TEXT,
            role TEXT NOT NULL DEFAULT 'student' CHECK(role IN ('admin', 'teacher', 'student')),
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S+00:00', 'now')),
            updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S+00:00', 'now')),
            last_login TEXT
        );

        CREATE TABLE IF NOT EXISTS problems (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            content TEXT NOT NULL,
            answer TEXT,
            explanation TEXT,
            difficulty TEXT NOT NULL DEFAULT 'medium' CHECK(difficulty IN ('easy', 'medium', 'hard')),
            subject TEXT NOT NULL,
            topic TEXT,
            problem_type TEXT NOT NULL DEFAULT 'multiple_choice'
                CHECK(problem_type IN ('multiple_choice', 'true_false', 'short_answer', 'essay')),
            points INTEGER NOT NULL DEFAULT 1,
            created_by INTEGER REFERENCES users(id),
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S+00:00', 'now')),
            updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S+00:00', 'now'))
        );

        CREATE TABLE IF NOT EXISTS workbooks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            title TEXT NOT NULL,
            description TEXT,
            status TEXT NOT NULL DEFAULT 'draft' CHECK(status IN ('draft', 'published', 'archived')),
            created_by INTEGER REFERENCES users(id),
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S+00:00', 'now')),
            updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S+00:00', 'now'))
        );

        -- order_index is contiguous from 1 within a workbook
        CREATE TABLE IF NOT EXISTS workbook_problems (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            workbook_id INTEGER NOT NULL REFERENCES workbooks(id) ON DELETE CASCADE,
            problem_id INTEGER NOT NULL REFERENCES problems(id) ON DELETE CASCADE,
            order_index INTEGER NOT NULL,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S+00:00', 'now')),
            UNIQUE (workbook_id, problem_id)
        );

        -- Append-only submission log; mastery fields mutate on review
        CREATE TABLE IF NOT EXISTS solution_records (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL REFERENCES users(id),
            problem_id INTEGER NOT NULL REFERENCES problems(id),
            workbook_id INTEGER REFERENCES workbooks(id),
            user_answer TEXT NOT NULL,
            is_correct INTEGER NOT NULL,
            time_spent INTEGER,
            attempt_number INTEGER NOT NULL DEFAULT 1,
            mastery_level INTEGER NOT NULL DEFAULT 0,
            next_review_date TEXT NOT NULL,
            submitted_at TEXT NOT NULL,
            last_reviewed_at TEXT
        );

        CREATE TABLE IF NOT EXISTS review_schedules (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL REFERENCES users(id),
            problem_id INTEGER NOT NULL REFERENCES problems(id),
            workbook_id INTEGER REFERENCES workbooks(id),
            review_stage INTEGER NOT NULL DEFAULT 0,
            scheduled_date TEXT NOT NULL,
            is_completed INTEGER NOT NULL DEFAULT 0,
            completed_date TEXT
        );

        CREATE TABLE IF NOT EXISTS workbook_review_schedules (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL REFERENCES users(id),
            workbook_id INTEGER NOT NULL REFERENCES workbooks(id),
            review_stage INTEGER NOT NULL DEFAULT 0,
            next_review_date TEXT NOT NULL,
            is_completed INTEGER NOT NULL DEFAULT 0,
            completed_at TEXT,
            created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S+00:00', 'now')),
            updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%S+00:00', 'now'))
        );

        CREATE TABLE IF NOT EXISTS review_history (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL REFERENCES users(id),
            record_id INTEGER NOT NULL REFERENCES solution_records(id) ON DELETE CASCADE,
            is_correct INTEGER NOT NULL,
            time_spent INTEGER,
            confidence_level INTEGER,
            difficulty_perceived INTEGER,
            previous_mastery_level INTEGER NOT NULL,
            new_mastery_level INTEGER NOT NULL,
            created_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS daily_review_stats (
            user_id INTEGER NOT NULL REFERENCES users(id),
            target_date TEXT NOT NULL,
            target_review_count INTEGER NOT NULL DEFAULT 0,
            completed_review_count INTEGER NOT NULL DEFAULT 0,
            correct_answers INTEGER NOT NULL DEFAULT 0,
            total_time_spent INTEGER NOT NULL DEFAULT 0,
            PRIMARY KEY (user_id, target_date)
        );

        -- Indexes
        CREATE INDEX IF NOT EXISTS idx_solution_records_user_problem
            ON solution_records(user_id, problem_id);
        CREATE INDEX IF NOT EXISTS idx_solution_records_next_review
            ON solution_records(next_review_date);
        CREATE INDEX IF NOT EXISTS idx_workbook_problems_order
            ON workbook_problems(workbook_id, order_index);
        CREATE INDEX IF NOT EXISTS idx_review_schedules_user_date
            ON review_schedules(user_id, scheduled_date);
        CREATE INDEX IF NOT EXISTS idx_workbook_review_schedules_user
            ON workbook_review_schedules(user_id, is_completed);
        CREATE INDEX IF NOT EXISTS idx_review_history_user_created
            ON review_history(user_id, created_at);
        """
    )
