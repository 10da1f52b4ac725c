"""
Key-value persistence store.

Single responsibility: hold string values under string keys. All JSON
encoding and key naming lives in Repository. Two implementations share the
same narrow interface so services can be tested against an in-memory fake.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

from timesheet.errors import PersistenceError

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv_store (
    key         TEXT    PRIMARY KEY,
    value       TEXT    NOT NULL,
    updated_at  TEXT
);
"""


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def keys(self) -> List[str]: ...


class MemoryStore:
    """Dict-backed store. Used by tests and for throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class SqliteStore:
    """Key-value table inside a local SQLite file."""

    def __init__(self, db_path: Union[Path, str]) -> None:
        self.db_path = db_path
        self.conn: Optional[sqlite3.Connection] = None

    # -- lifecycle -----------------------------------------------------------

    def connect(self) -> sqlite3.Connection:
        """Open (or return existing) connection and ensure the table exists."""
        if self.conn is not None:
            return self.conn
        logger.info("Connecting to SQLite at %s", self.db_path)
        try:
            self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            if str(self.db_path) != ":memory:":
                self.conn.execute("PRAGMA journal_mode=WAL")
            self.conn.executescript(SCHEMA_SQL)
            self.conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot open store at {self.db_path}: {exc}") from exc
        return self.conn

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.info("Store connection closed.")

    # -- KeyValueStore -------------------------------------------------------

    def get(self, key: str) -> Optional[str]:
        try:
            row = self.connect().execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Read of {key!r} failed: {exc}") from exc
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        try:
            conn = self.connect()
            conn.execute(
                "INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                "updated_at = excluded.updated_at",
                (key, value, now),
            )
            conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Write of {key!r} failed: {exc}") from exc

    def remove(self, key: str) -> None:
        try:
            conn = self.connect()
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Delete of {key!r} failed: {exc}") from exc

    def keys(self) -> List[str]:
        try:
            rows = self.connect().execute(
                "SELECT key FROM kv_store ORDER BY key"
            ).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Key listing failed: {exc}") from exc
        return [r[0] for r in rows]
