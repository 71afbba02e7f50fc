# persistence/db.py
"""
SQLite database connection and schema management.

Holds the team billing projection. On Railway, point BILLING_DB_PATH at a
persistent volume to survive restarts.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Set

_logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path(__file__).parent.parent / "data" / "billing.db"

_init_lock = threading.Lock()
_initialized_paths: Set[str] = set()


def get_db_path() -> Path:
    """Get the database file path (BILLING_DB_PATH, read on every call)."""
    return Path(os.environ.get("BILLING_DB_PATH", str(DEFAULT_DB_PATH)))


def _connect() -> sqlite3.Connection:
    db_path = get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path), timeout=30.0)
    conn.execute("PRAGMA foreign_keys = ON")
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_db():
    """
    Get a database connection for one unit of work.

    Commits on success, rolls back on error, always closes.

    Usage:
        with get_db() as conn:
            cursor = conn.execute("SELECT ...")
    """
    conn = _connect()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db() -> None:
    """
    Initialize database schema.

    Creates tables if they don't exist.
    Safe to call multiple times (idempotent).
    """
    path_key = str(get_db_path())

    with _init_lock:
        if path_key in _initialized_paths:
            return

        with get_db() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS teams (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    stripe_customer_id TEXT,
                    stripe_subscription_id TEXT,
                    stripe_product_id TEXT,
                    plan_name TEXT,
                    subscription_status TEXT
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_teams_customer
                ON teams(stripe_customer_id)
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS team_members (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    team_id INTEGER NOT NULL,
                    role TEXT NOT NULL,
                    joined_at TEXT NOT NULL,
                    FOREIGN KEY (team_id) REFERENCES teams(id)
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_team_members_user
                ON team_members(user_id)
            """)

        _logger.info(f"Database initialized at {path_key}")
        _initialized_paths.add(path_key)


def reset_db() -> None:
    """Reset database (for testing). Drops all tables."""
    path_key = str(get_db_path())

    with _init_lock:
        with get_db() as conn:
            conn.execute("DROP TABLE IF EXISTS team_members")
            conn.execute("DROP TABLE IF EXISTS teams")
        _initialized_paths.discard(path_key)
