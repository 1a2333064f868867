"""SQLite management utilities."""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Any, Sequence

READ_ONLY_PRAGMAS = ("PRAGMA temp_store=MEMORY;",)
SCHEMA_PATH = Path(__file__).with_name("schema.sql")


class SQLiteDatabase:
    """Read-only wrapper around sqlite3.

    One connection is shared across request threads; calls are serialized by
    an internal lock. The tables it expects are described in ``schema.sql``.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path.expanduser()
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def connect(self) -> sqlite3.Connection:
        with self._lock:
            if self._connection is None:
                uri = f"file:{self.db_path}?mode=ro"
                self._connection = sqlite3.connect(uri, uri=True, check_same_thread=False)
                self._connection.row_factory = sqlite3.Row
                for pragma in READ_ONLY_PRAGMAS:
                    self._connection.execute(pragma)
            return self._connection

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    def query(self, sql: str, params: Sequence[Any] | None = None) -> list[sqlite3.Row]:
        with self._lock:
            return self.connect().execute(sql, params or []).fetchall()

    def scalar(self, sql: str, params: Sequence[Any] | None = None) -> Any:
        rows = self.query(sql, params)
        return rows[0][0] if rows else None


__all__ = ["SQLiteDatabase", "SCHEMA_PATH"]
