"""SQLite storage for persisted search-session records."""

import sqlite3
from datetime import datetime
from pathlib import Path

_SEARCH_STATE_TABLE = """
CREATE TABLE IF NOT EXISTS search_state (
    key         TEXT PRIMARY KEY,
    payload     TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
"""


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_SEARCH_STATE_TABLE)
    conn.commit()
    return conn


def read_record(conn: sqlite3.Connection, key: str) -> str | None:
    """Return the stored payload for key, or None if absent."""
    row = conn.execute(
        "SELECT payload FROM search_state WHERE key = ?",
        (key,),
    ).fetchone()
    if row is None:
        return None
    return row["payload"]


def write_record(conn: sqlite3.Connection, key: str, payload: str) -> None:
    """Insert or replace the payload stored under key."""
    conn.execute(
        """
        INSERT INTO search_state (key, payload, updated_at)
        VALUES (?, ?, ?)
        ON CONFLICT(key)
        DO UPDATE SET
            payload = excluded.payload,
            updated_at = excluded.updated_at
        """,
        (key, payload, datetime.now().isoformat()),
    )
    conn.commit()
