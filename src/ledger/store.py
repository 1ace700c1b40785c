"""Key-value storage with per-key expiry for the prediction ledger.

Two backends, chosen once at construction time:

- SQLiteStore: durable, single ``kv`` table in WAL mode. Atomic operations
  run inside ``BEGIN IMMEDIATE`` so they hold across processes.
- MemoryStore: in-process dict guarded by a lock. Degraded mode only:
  everything is lost when the process restarts.

Values are JSON-serializable objects. Expired keys read as absent; rows are
physically removed by ``purge_expired()``.
"""

import json
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

import structlog

from cli.config_models import StoreConfig
from db import wal_connect
from shared_types import StoreBackend

logger = structlog.get_logger().bind(source="store")

Clock = Callable[[], float]
Updater = Callable[[Optional[Any]], Optional[Any]]


class StoreUnavailable(Exception):
    """Backend fault (locked database, I/O error). Safe to retry."""


class KeyValueStore(ABC):
    """Storage contract used by the ledger."""

    name: str = "abstract"
    durable: bool = False

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Value for key, or None if absent or expired."""

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        """Write value. ttl_seconds=None means no expiry."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete key. True if a live value was removed."""

    @abstractmethod
    def take(self, key: str) -> Optional[Any]:
        """Atomically read and delete. Of two concurrent callers only one gets the value."""

    @abstractmethod
    def update(self, key: str, fn: Updater, ttl_seconds: Optional[float] = None) -> Optional[Any]:
        """Atomic read-modify-write.

        fn receives the current value (None if absent) and returns the new
        value, or None to delete the key. Returns what fn returned.
        """

    @abstractmethod
    def delete_if(self, key: str, predicate: Callable[[Any], bool]) -> bool:
        """Atomically delete key if it is live and predicate(value) holds."""

    @abstractmethod
    def scan(self, prefix: str) -> list[tuple[str, Any]]:
        """Snapshot of live (key, value) pairs whose key starts with prefix."""

    @abstractmethod
    def purge_expired(self) -> int:
        """Physically drop expired entries. Returns number removed."""


# --- In-memory ---


class MemoryStore(KeyValueStore):
    """Dict-backed store with per-key expiry. Not durable across restarts."""

    name = StoreBackend.MEMORY.value
    durable = False

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._data: dict[str, tuple[str, Optional[float]]] = {}
        self._lock = threading.RLock()

    def _live(self, key: str) -> Optional[Any]:
        entry = self._data.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            return None
        # Stored as JSON so callers never share mutable state with the store
        return json.loads(raw)

    def _put(self, key: str, value: Any, ttl_seconds: Optional[float]) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        self._data[key] = (json.dumps(value), expires_at)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._live(key)

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        with self._lock:
            self._put(key, value, ttl_seconds)

    def delete(self, key: str) -> bool:
        with self._lock:
            found = self._live(key) is not None
            self._data.pop(key, None)
            return found

    def take(self, key: str) -> Optional[Any]:
        with self._lock:
            value = self._live(key)
            self._data.pop(key, None)
            return value

    def update(self, key: str, fn: Updater, ttl_seconds: Optional[float] = None) -> Optional[Any]:
        with self._lock:
            new = fn(self._live(key))
            if new is None:
                self._data.pop(key, None)
            else:
                self._put(key, new, ttl_seconds)
            return new

    def delete_if(self, key: str, predicate: Callable[[Any], bool]) -> bool:
        with self._lock:
            value = self._live(key)
            if value is None or not predicate(value):
                return False
            del self._data[key]
            return True

    def scan(self, prefix: str) -> list[tuple[str, Any]]:
        with self._lock:
            keys = [k for k in self._data if k.startswith(prefix)]
            pairs = [(k, self._live(k)) for k in keys]
        return [(k, v) for k, v in pairs if v is not None]

    def purge_expired(self) -> int:
        with self._lock:
            now = self._clock()
            dead = [k for k, (_, exp) in self._data.items() if exp is not None and exp <= now]
            for k in dead:
                del self._data[k]
            return len(dead)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


# --- SQLite ---


class SQLiteStore(KeyValueStore):
    """Durable key-value table in SQLite. Any sqlite3.Error becomes StoreUnavailable."""

    name = StoreBackend.SQLITE.value
    durable = True

    def __init__(self, db_path: Path, timeout: float = 5.0, clock: Clock = time.time):
        self.db_path = Path(db_path).expanduser()
        self.timeout = timeout
        self._clock = clock
        self._init_tables()

    def _init_tables(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._tx() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_kv_expires ON kv(expires_at)")

    @contextmanager
    def _tx(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        """Run the body in one transaction, committing on success."""
        try:
            with closing(wal_connect(self.db_path, timeout=self.timeout)) as conn:
                conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
                try:
                    yield conn
                except BaseException:
                    conn.execute("ROLLBACK")
                    raise
                conn.execute("COMMIT")
        except sqlite3.Error as e:
            logger.warning("store.sqlite_error", error=str(e), db=str(self.db_path))
            raise StoreUnavailable(str(e)) from e

    def _select_live(self, conn: sqlite3.Connection, key: str) -> Optional[Any]:
        row = conn.execute(
            "SELECT value FROM kv WHERE key = ? AND (expires_at IS NULL OR expires_at > ?)",
            (key, self._clock()),
        ).fetchone()
        return json.loads(row[0]) if row else None

    def _upsert(self, conn: sqlite3.Connection, key: str, value: Any, ttl_seconds: Optional[float]):
        expires_at = self._clock() + ttl_seconds if ttl_seconds is not None else None
        conn.execute(
            "INSERT OR REPLACE INTO kv (key, value, expires_at) VALUES (?, ?, ?)",
            (key, json.dumps(value), expires_at),
        )

    def get(self, key: str) -> Optional[Any]:
        with self._tx() as conn:
            return self._select_live(conn, key)

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        with self._tx(immediate=True) as conn:
            self._upsert(conn, key, value, ttl_seconds)

    def delete(self, key: str) -> bool:
        with self._tx(immediate=True) as conn:
            found = self._select_live(conn, key) is not None
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            return found

    def take(self, key: str) -> Optional[Any]:
        with self._tx(immediate=True) as conn:
            value = self._select_live(conn, key)
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            return value

    def update(self, key: str, fn: Updater, ttl_seconds: Optional[float] = None) -> Optional[Any]:
        with self._tx(immediate=True) as conn:
            new = fn(self._select_live(conn, key))
            if new is None:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            else:
                self._upsert(conn, key, new, ttl_seconds)
            return new

    def delete_if(self, key: str, predicate: Callable[[Any], bool]) -> bool:
        with self._tx(immediate=True) as conn:
            value = self._select_live(conn, key)
            if value is None or not predicate(value):
                return False
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            return True

    def scan(self, prefix: str) -> list[tuple[str, Any]]:
        with self._tx() as conn:
            rows = conn.execute(
                """SELECT key, value FROM kv
                WHERE substr(key, 1, ?) = ? AND (expires_at IS NULL OR expires_at > ?)
                ORDER BY key""",
                (len(prefix), prefix, self._clock()),
            ).fetchall()
        return [(k, json.loads(v)) for k, v in rows]

    def purge_expired(self) -> int:
        with self._tx(immediate=True) as conn:
            cur = conn.execute(
                "DELETE FROM kv WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (self._clock(),),
            )
            return cur.rowcount


def build_store(config: StoreConfig, clock: Clock = time.time) -> KeyValueStore:
    """Create the configured backend.

    If the SQLite database cannot be opened at startup, fall back to a
    MemoryStore. That degraded mode loses all predictions, histories and
    stats when the process restarts.
    """
    if config.backend == StoreBackend.MEMORY:
        logger.info("store.memory_backend")
        return MemoryStore(clock=clock)

    try:
        store = SQLiteStore(config.path, timeout=config.timeout_seconds, clock=clock)
    except (StoreUnavailable, OSError) as e:
        logger.warning(
            "store.degraded_mode",
            error=str(e),
            path=str(config.path),
            note="in-memory store: data will not survive a restart",
        )
        return MemoryStore(clock=clock)

    logger.info("store.sqlite_backend", path=str(config.path))
    return store
