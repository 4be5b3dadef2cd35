"""
SQLite-backed key-value store.

One connection per logical operation: get_db() opens and always closes it,
and session() lets several store calls share one connection.
"""

import json
import sqlite3
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Generator, List, Optional

from .config import ensure_db_directory
from .errors import StoreUnavailableError
from .store import IKeyValueStore


@contextmanager
def get_db(db_path: str, timeout: float = 5.0) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection."""
    try:
        conn = sqlite3.connect(db_path, timeout=timeout)
    except sqlite3.Error as e:
        raise StoreUnavailableError(f"Cannot open database {db_path}: {e}") from e
    try:
        yield conn
    finally:
        conn.close()


class SQLiteKeyValueStore(IKeyValueStore):
    """Key-value store over a SQLite file. Expired rows are filtered on read."""

    def __init__(self, db_path: str, timeout: float = 5.0, clock: Callable[[], float] = time.time):
        self.db_path = db_path
        self.timeout = timeout
        self._clock = clock
        self._local = threading.local()
        ensure_db_directory(db_path)
        self.init_db()

    def init_db(self):
        """Initialize the database with required tables."""
        with self._connection() as conn:
            cursor = conn.cursor()

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS records (
                    key TEXT PRIMARY KEY,
                    fields_json TEXT NOT NULL,
                    expires_at REAL
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS set_members (
                    set_key TEXT NOT NULL,
                    member TEXT NOT NULL,
                    PRIMARY KEY (set_key, member)
                )
            ''')

            cursor.execute('CREATE INDEX IF NOT EXISTS idx_records_expires_at ON records(expires_at)')

            conn.commit()

    @contextmanager
    def session(self) -> Generator["SQLiteKeyValueStore", None, None]:
        if getattr(self._local, "conn", None) is not None:
            # nested session reuses the outer connection
            yield self
            return
        with get_db(self.db_path, self.timeout) as conn:
            self._local.conn = conn
            try:
                yield self
            finally:
                self._local.conn = None

    @contextmanager
    def _connection(self) -> Generator[sqlite3.Connection, None, None]:
        try:
            conn = getattr(self._local, "conn", None)
            if conn is not None:
                yield conn
            else:
                with get_db(self.db_path, self.timeout) as conn:
                    yield conn
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"SQLite store error: {e}") from e

    def _expires_at(self, ttl_seconds: Optional[int]) -> Optional[float]:
        return self._clock() + ttl_seconds if ttl_seconds is not None else None

    def put(self, key: str, fields: Dict[str, str], ttl_seconds: Optional[int] = None) -> None:
        with self._connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO records (key, fields_json, expires_at) VALUES (?, ?, ?)",
                (key, json.dumps(fields), self._expires_at(ttl_seconds))
            )
            conn.commit()

    def put_if_absent(self, key: str, fields: Dict[str, str], ttl_seconds: Optional[int] = None) -> bool:
        with self._connection() as conn:
            conn.execute(
                "DELETE FROM records WHERE key = ? AND expires_at IS NOT NULL AND expires_at <= ?",
                (key, self._clock())
            )
            cursor = conn.execute(
                "INSERT OR IGNORE INTO records (key, fields_json, expires_at) VALUES (?, ?, ?)",
                (key, json.dumps(fields), self._expires_at(ttl_seconds))
            )
            conn.commit()
            return cursor.rowcount == 1

    def get(self, key: str) -> Optional[Dict[str, str]]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT fields_json FROM records WHERE key = ? AND (expires_at IS NULL OR expires_at > ?)",
                (key, self._clock())
            ).fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    def delete(self, key: str) -> int:
        with self._connection() as conn:
            cursor = conn.execute(
                "DELETE FROM records WHERE key = ? AND (expires_at IS NULL OR expires_at > ?)",
                (key, self._clock())
            )
            conn.commit()
            return cursor.rowcount

    def scan_prefix(self, prefix: str) -> List[str]:
        # substr comparison avoids LIKE wildcard escaping for prefixes containing % or _
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT key FROM records WHERE substr(key, 1, ?) = ? "
                "AND (expires_at IS NULL OR expires_at > ?) ORDER BY key",
                (len(prefix), prefix, self._clock())
            ).fetchall()
        return [row[0] for row in rows]

    def set_add(self, set_key: str, member: str) -> None:
        with self._connection() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO set_members (set_key, member) VALUES (?, ?)",
                (set_key, member)
            )
            conn.commit()

    def set_remove(self, set_key: str, member: str) -> int:
        with self._connection() as conn:
            cursor = conn.execute(
                "DELETE FROM set_members WHERE set_key = ? AND member = ?",
                (set_key, member)
            )
            conn.commit()
            return cursor.rowcount

    def set_members(self, set_key: str) -> List[str]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT member FROM set_members WHERE set_key = ? ORDER BY member",
                (set_key,)
            ).fetchall()
        return [row[0] for row in rows]

    def set_keys(self, prefix: str) -> List[str]:
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT DISTINCT set_key FROM set_members WHERE substr(set_key, 1, ?) = ? ORDER BY set_key",
                (len(prefix), prefix)
            ).fetchall()
        return [row[0] for row in rows]

    def ping(self) -> bool:
        """Check database health."""
        try:
            with self._connection() as conn:
                tables = conn.execute("SELECT name FROM sqlite_master WHERE type='table';").fetchall()
        except StoreUnavailableError:
            return False
        table_names = [table[0] for table in tables]
        return all(table in table_names for table in ("records", "set_members"))

    def purge_expired(self) -> int:
        with self._connection() as conn:
            cursor = conn.execute(
                "DELETE FROM records WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (self._clock(),)
            )
            conn.commit()
            return cursor.rowcount
