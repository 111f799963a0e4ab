"""
SQLite mirror for the in-memory cache.

The mirror keeps entries across process restarts. It is an optimization only:
every failure is logged and swallowed, and callers fall back to memory.
"""
import sqlite3
import json
import logging
from pathlib import Path
from typing import Optional, List
from contextlib import contextmanager

from .core import CacheEntry

logger = logging.getLogger("cache.persistence")


SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    stored_at REAL NOT NULL,
    ttl REAL NOT NULL
);
"""


class SQLiteCacheMirror:
    """
    Persists cache entries as JSON rows in a single SQLite table.

    A fresh connection is opened per operation, so one mirror can be shared
    between threads.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._available = True
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._get_connection() as conn:
                conn.executescript(SCHEMA)
                conn.commit()
        except (OSError, sqlite3.Error) as e:
            logger.warning(f"Cache mirror disabled, cannot open {self.db_path}: {e}")
            self._available = False

    @property
    def is_available(self) -> bool:
        return self._available

    @contextmanager
    def _get_connection(self):
        conn = sqlite3.connect(str(self.db_path))
        try:
            yield conn
        finally:
            conn.close()

    def save(self, key: str, entry: CacheEntry) -> bool:
        """Write an entry. Returns False if it could not be persisted."""
        if not self._available:
            return False
        try:
            payload = json.dumps(entry.value)
        except (TypeError, ValueError) as e:
            logger.warning(f"Not mirroring {key}, value is not JSON serializable: {e}")
            return False
        try:
            with self._get_connection() as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO cache_entries (key, value, stored_at, ttl) "
                    "VALUES (?, ?, ?, ?)",
                    (key, payload, entry.stored_at, entry.ttl_seconds),
                )
                conn.commit()
            return True
        except sqlite3.Error as e:
            logger.warning(f"Failed to mirror {key}: {e}")
            return False

    def load(self, key: str) -> Optional[CacheEntry]:
        """Read an entry regardless of freshness, or None."""
        if not self._available:
            return None
        try:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT value, stored_at, ttl FROM cache_entries WHERE key = ?",
                    (key,),
                ).fetchone()
        except sqlite3.Error as e:
            logger.warning(f"Failed to read {key} from mirror: {e}")
            return None

        if row is None:
            return None

        try:
            value = json.loads(row[0])
        except ValueError as e:
            logger.warning(f"Dropping corrupt mirrored entry {key}: {e}")
            self.delete(key)
            return None

        return CacheEntry(value=value, stored_at=row[1], ttl_seconds=row[2])

    def delete(self, key: str) -> None:
        if not self._available:
            return
        try:
            with self._get_connection() as conn:
                conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
                conn.commit()
        except sqlite3.Error as e:
            logger.warning(f"Failed to delete {key} from mirror: {e}")

    def keys(self) -> List[str]:
        if not self._available:
            return []
        try:
            with self._get_connection() as conn:
                return [row[0] for row in conn.execute("SELECT key FROM cache_entries")]
        except sqlite3.Error as e:
            logger.warning(f"Failed to list mirrored keys: {e}")
            return []

    def delete_many(self, keys: List[str]) -> None:
        if not self._available or not keys:
            return
        try:
            with self._get_connection() as conn:
                conn.executemany(
                    "DELETE FROM cache_entries WHERE key = ?",
                    [(k,) for k in keys],
                )
                conn.commit()
        except sqlite3.Error as e:
            logger.warning(f"Failed to delete {len(keys)} keys from mirror: {e}")

    def clear(self) -> None:
        if not self._available:
            return
        try:
            with self._get_connection() as conn:
                conn.execute("DELETE FROM cache_entries")
                conn.commit()
        except sqlite3.Error as e:
            logger.warning(f"Failed to clear mirror: {e}")

    def count(self) -> int:
        if not self._available:
            return 0
        try:
            with self._get_connection() as conn:
                return conn.execute("SELECT COUNT(*) FROM cache_entries").fetchone()[0]
        except sqlite3.Error as e:
            logger.warning(f"Failed to count mirrored entries: {e}")
            return 0
