#!/usr/bin/env python3
"""
Durable key-value backends.

A backend is the synchronous string-in, string-out store that sits
underneath PersistentStore:

- get_item(key) → str | None
- set_item(key, value)
- remove_item(key)
- clear()
- keys() → [str]

Backends raise StorageBackendError subclasses on failure. They never
swallow errors; turning failures into fallbacks is PersistentStore's job.
"""

import logging
import os
import sqlite3
import time
from pathlib import Path
from typing import Dict, List, Optional

from storage.errors import BackendUnavailableError, QuotaExceededError

logger = logging.getLogger(__name__)

# Default DB location, overridable via config / DATA_ENGINE_DB_PATH
DEFAULT_DB_DIR = os.path.expanduser("~/.laundry/data")
DEFAULT_DB_PATH = os.path.join(DEFAULT_DB_DIR, "storage.db")

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at REAL NOT NULL
);
"""


class KeyValueBackend:
    """Interface shared by every durable backend."""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError

    def close(self) -> None:
        """Release resources. Backends without resources do nothing."""


def _entry_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class MemoryBackend(KeyValueBackend):
    """
    Dict-backed backend for tests and ephemeral sessions.

    `quota_bytes` mimics the practical size limit of browser-style storage:
    a write that would push the total past the quota raises
    QuotaExceededError and leaves the previous value in place.
    """

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        self._data: Dict[str, str] = {}
        self.quota_bytes = quota_bytes
        self.available = True

    def _check(self) -> None:
        if not self.available:
            raise BackendUnavailableError("memory backend is unavailable")

    def get_item(self, key: str) -> Optional[str]:
        self._check()
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._check()
        if self.quota_bytes is not None:
            used = self.size_bytes()
            if key in self._data:
                used -= _entry_size(key, self._data[key])
            if used + _entry_size(key, value) > self.quota_bytes:
                raise QuotaExceededError(
                    f"writing {key!r} would exceed quota of {self.quota_bytes} bytes"
                )
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._check()
        self._data.pop(key, None)

    def clear(self) -> None:
        self._check()
        self._data.clear()

    def keys(self) -> List[str]:
        self._check()
        return list(self._data)

    def size_bytes(self) -> int:
        return sum(_entry_size(k, v) for k, v in self._data.items())


class SQLiteBackend(KeyValueBackend):
    """
    SQLite-backed durable store. One row per key.

    Zero infrastructure, portable, survives process restarts. The optional
    quota is enforced on the summed key+value size.
    """

    def __init__(self, db_path: str = None, quota_bytes: Optional[int] = None):
        self.db_path = db_path or os.environ.get("DATA_ENGINE_DB_PATH", DEFAULT_DB_PATH)
        self.quota_bytes = quota_bytes

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=10.0)
        self._conn.row_factory = sqlite3.Row
        if self.db_path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

        logger.info(f"SQLiteBackend initialized (db={self.db_path})")

    def _init_schema(self):
        """Create tables if they don't exist."""
        self._conn.executescript(SCHEMA)
        self._conn.commit()

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise BackendUnavailableError(f"backend closed (db={self.db_path})")
        return self._conn

    def get_item(self, key: str) -> Optional[str]:
        conn = self._require_conn()
        try:
            row = conn.execute(
                "SELECT value FROM kv_store WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise BackendUnavailableError(f"read failed for {key!r}: {e}") from e
        return row["value"] if row else None

    def set_item(self, key: str, value: str) -> None:
        conn = self._require_conn()
        try:
            if self.quota_bytes is not None:
                used = conn.execute(
                    "SELECT COALESCE(SUM(LENGTH(CAST(key AS BLOB)) + LENGTH(CAST(value AS BLOB))), 0) "
                    "FROM kv_store WHERE key != ?",
                    (key,),
                ).fetchone()[0]
                if used + _entry_size(key, value) > self.quota_bytes:
                    raise QuotaExceededError(
                        f"writing {key!r} would exceed quota of {self.quota_bytes} bytes"
                    )
            conn.execute(
                """INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET
                       value = excluded.value,
                       updated_at = excluded.updated_at""",
                (key, value, time.time()),
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise BackendUnavailableError(f"write failed for {key!r}: {e}") from e

    def remove_item(self, key: str) -> None:
        conn = self._require_conn()
        try:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()
        except sqlite3.Error as e:
            raise BackendUnavailableError(f"delete failed for {key!r}: {e}") from e

    def clear(self) -> None:
        conn = self._require_conn()
        try:
            cleared = conn.execute("DELETE FROM kv_store").rowcount
            conn.commit()
        except sqlite3.Error as e:
            raise BackendUnavailableError(f"clear failed: {e}") from e
        logger.info(f"Cleared {cleared} durable entries")

    def keys(self) -> List[str]:
        conn = self._require_conn()
        try:
            rows = conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        except sqlite3.Error as e:
            raise BackendUnavailableError(f"key listing failed: {e}") from e
        return [r["key"] for r in rows]

    def close(self):
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            logger.info("SQLiteBackend closed")
