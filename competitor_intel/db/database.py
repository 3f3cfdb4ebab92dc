"""SQLite connection manager for the report store (WAL mode, thread-safe)."""

from __future__ import annotations

import logging
import sqlite3
import threading
import time

logger = logging.getLogger(__name__)

_DEFAULT_DB = ".competitor_intel.db"
_BUSY_TIMEOUT = 10  # seconds sqlite waits on a locked database


class Database:
    """Thin wrapper around sqlite3 with WAL mode and row-factory helpers.

    The connection is shared across threads (the pipeline runs store calls
    via ``asyncio.to_thread``), so every statement runs under a lock.
    """

    def __init__(self, db_path: str = _DEFAULT_DB):
        self.db_path = db_path
        self.conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def connect(self) -> None:
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=_BUSY_TIMEOUT)
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self.conn.row_factory = sqlite3.Row
        logger.debug("Connected to %s", self.db_path)

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None

    def _require(self) -> sqlite3.Connection:
        if self.conn is None:
            raise sqlite3.ProgrammingError("Database not connected")
        return self.conn

    def executescript(self, sql: str) -> None:
        with self._lock:
            self._require().executescript(sql)

    def fetchone(self, sql: str, params: tuple = ()) -> sqlite3.Row | None:
        with self._lock:
            return self._require().execute(sql, params).fetchone()

    def fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self._require().execute(sql, params).fetchall()

    def write(self, sql: str, params: tuple = (), timeout: float | None = None) -> int:
        """Execute one statement in its own transaction. Returns the affected row count.

        With ``timeout`` the whole write, lock and busy waits included, must
        finish within that many seconds or it is rolled back. A write that
        misses its deadline never commits afterwards.
        """
        if timeout is None:
            with self._lock:
                conn = self._require()
                with conn:
                    cur = conn.execute(sql, params)
                return cur.rowcount

        deadline = time.monotonic() + timeout
        if not self._lock.acquire(timeout=timeout):
            raise sqlite3.OperationalError(f"timed out after {timeout:g}s waiting for the connection")
        try:
            conn = self._require()
            remaining_ms = int(max(0.0, deadline - time.monotonic()) * 1000)
            conn.execute(f"PRAGMA busy_timeout = {remaining_ms}")
            try:
                with conn:
                    cur = conn.execute(sql, params)
                    if time.monotonic() > deadline:
                        raise sqlite3.OperationalError(f"timed out after {timeout:g}s")
            finally:
                conn.execute(f"PRAGMA busy_timeout = {_BUSY_TIMEOUT * 1000}")
            return cur.rowcount
        finally:
            self._lock.release()
