import json
import os
import sqlite3
from pathlib import Path

ROOT = Path(__file__).resolve().parent
DEFAULT_DB_PATH = str(ROOT / "data" / "db" / "app.db")
DB_PATH = Path(os.environ.get("APP_DB_PATH", DEFAULT_DB_PATH))
DB_PATH.parent.mkdir(parents=True, exist_ok=True)


def _busy_timeout_seconds():
    try:
        return max(float(os.environ.get("SQLITE_BUSY_TIMEOUT_SEC", "30")), 1.0)
    except ValueError:
        return 30.0


def get_connection():
    timeout = _busy_timeout_seconds()
    connection = sqlite3.connect(DB_PATH, timeout=timeout)
    connection.row_factory = sqlite3.Row
    # Settings are read on every planning request while the API may write them.
    connection.execute("PRAGMA journal_mode=WAL")
    connection.execute(f"PRAGMA busy_timeout={int(timeout * 1000)}")
    return connection


def init_db():
    with get_connection() as connection:
        connection.execute(
            """
            CREATE TABLE IF NOT EXISTS planning_settings (
                key TEXT PRIMARY KEY,
                value_text TEXT,
                updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
            """
        )


def get_planning_setting(key):
    """Return ``{"key", "value_text", "updated_at"}`` or None when unset."""
    key = (key or "").strip()
    if not key:
        return None
    with get_connection() as connection:
        row = connection.execute(
            "SELECT * FROM planning_settings WHERE key = ?", (key,)
        ).fetchone()
    return dict(row) if row else None


def upsert_planning_setting(key, value_text):
    key = (key or "").strip()
    if not key:
        raise ValueError("Setting key is required.")
    if isinstance(value_text, (dict, list)):
        value_text = json.dumps(value_text, sort_keys=True)
    with get_connection() as connection:
        connection.execute(
            """
            INSERT INTO planning_settings (key, value_text, updated_at)
            VALUES (?, ?, datetime('now'))
            ON CONFLICT(key) DO UPDATE SET
                value_text = excluded.value_text,
                updated_at = excluded.updated_at
            """,
            (key, None if value_text is None else str(value_text)),
        )
