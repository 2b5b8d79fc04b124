"""Persistence backends for search-session records.

Records are opaque JSON text stored under independent keys (``state``,
``saved_searches``, ``recent_searches``). Backends only move text around;
decoding and fallback to defaults is the engine's job. Backend I/O failures
surface as PersistenceError.
"""

import logging
import re
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path

from jobquery.core.db import init_db, read_record, write_record
from jobquery.core.errors import PersistenceError

logger = logging.getLogger(__name__)

STATE_KEY = "state"
SAVED_SEARCHES_KEY = "saved_searches"
RECENT_SEARCHES_KEY = "recent_searches"

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class SearchStatePersistence(ABC):
    """Base class that every persistence backend must implement."""

    @abstractmethod
    def load(self, key: str) -> str | None:
        """Return the record stored under key, or None if there is none."""

    @abstractmethod
    def save(self, key: str, payload: str) -> None:
        """Store payload under key, replacing any previous record."""


class InMemoryPersistence(SearchStatePersistence):
    """Keeps records in a dict. Useful for tests and throwaway sessions."""

    def __init__(self) -> None:
        self.records: dict[str, str] = {}

    def load(self, key: str) -> str | None:
        return self.records.get(key)

    def save(self, key: str, payload: str) -> None:
        self.records[key] = payload


class JsonFilePersistence(SearchStatePersistence):
    """One ``<key>.json`` file per record inside a directory."""

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            msg = f"Invalid record key: {key!r}"
            raise ValueError(msg)
        return self._directory / f"{key}.json"

    def load(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            msg = f"Failed to read {path}: {e}"
            raise PersistenceError(msg) from e

    def save(self, key: str, payload: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            tmp.write_text(payload, encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            msg = f"Failed to write {path}: {e}"
            raise PersistenceError(msg) from e
        logger.debug("Wrote %s (%d bytes)", path, len(payload))


class SqlitePersistence(SearchStatePersistence):
    """Records in the ``search_state`` table of a SQLite database."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @classmethod
    def open(cls, path: str | Path) -> "SqlitePersistence":
        """Create (if needed) and open the database at path."""
        try:
            return cls(init_db(path))
        except (OSError, sqlite3.Error) as e:
            msg = f"Failed to open state database {path}: {e}"
            raise PersistenceError(msg) from e

    def load(self, key: str) -> str | None:
        try:
            return read_record(self._conn, key)
        except sqlite3.Error as e:
            msg = f"Failed to read record '{key}': {e}"
            raise PersistenceError(msg) from e

    def save(self, key: str, payload: str) -> None:
        try:
            write_record(self._conn, key, payload)
        except sqlite3.Error as e:
            msg = f"Failed to write record '{key}': {e}"
            raise PersistenceError(msg) from e

    def close(self) -> None:
        self._conn.close()


def open_persistence(backend: str, path: str | Path) -> SearchStatePersistence:
    """Build the persistence backend named in configuration."""
    if backend == "sqlite":
        return SqlitePersistence.open(path)
    if backend == "json":
        return JsonFilePersistence(path)
    if backend == "memory":
        return InMemoryPersistence()
    msg = f"Unknown persistence backend '{backend}'. Available: json, memory, sqlite"
    raise ValueError(msg)
