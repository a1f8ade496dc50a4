"""
Key/value store with per-key time-to-live.

Holds the Betfair session record, processed-opportunity markers and the
daytime state. Values are JSON-serializable objects (encoded with orjson).

Implementations:
- MemoryStore: process-local, clock is injectable (tests, mock mode)
- SqliteStore: durable across restarts, backed by aiosqlite

Expired entries read as absent. SqliteStore also deletes them on open and
at most once per purge_interval seconds while writing, so markers that are
never read again do not pile up.

Single-key writes are atomic. There is no compare-and-set, so callers that
read then write (the dedup gate) can race with each other.
"""

import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Optional

import aiosqlite
import orjson
import structlog

logger = structlog.get_logger()


class KeyValueStore(ABC):
    """Async key/value store with optional TTL (seconds) per key."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Value for key, or None if absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store value under key, expiring after ttl seconds if given."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key. Missing keys are ignored."""

    async def purge_expired(self) -> int:
        """Delete every expired entry. Returns the number removed."""
        return 0

    async def close(self) -> None:
        pass


class MemoryStore(KeyValueStore):
    """In-process store. Expired entries are dropped when read."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._data: dict[str, tuple[bytes, Optional[float]]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._data.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return orjson.loads(raw)

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        expires_at = self._clock() + ttl if ttl is not None else None
        self._data[key] = (orjson.dumps(value), expires_at)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def purge_expired(self) -> int:
        now = self._clock()
        expired = [
            key for key, (_, expires_at) in self._data.items()
            if expires_at is not None and expires_at <= now
        ]
        for key in expired:
            del self._data[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._data)


class SqliteStore(KeyValueStore):
    """
    SQLite-backed store.

    Usage:
        store = SqliteStore("data/arbseeker.db")
        await store.open()
        await store.set("processed:abc", {...}, ttl=7200)
        await store.close()
    """

    CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS kv (
        key TEXT PRIMARY KEY,
        value BLOB NOT NULL,
        expires_at REAL
    )
    """

    def __init__(
        self,
        path: str,
        clock: Callable[[], float] = time.time,
        purge_interval: float = 10 * 60,
    ):
        self.path = path
        self._clock = clock
        self.purge_interval = purge_interval
        self._last_purge: float = 0
        self._db: Optional[aiosqlite.Connection] = None
        self.logger = logger.bind(component="sqlite_store")

    async def open(self) -> None:
        if self._db is not None:
            return
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self.path)
        await self._db.execute(self.CREATE_TABLE_SQL)
        await self._db.commit()
        purged = await self.purge_expired()
        self.logger.debug("Store opened", path=self.path, purged=purged)

    async def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            await self.open()
        return self._db

    async def get(self, key: str) -> Optional[Any]:
        db = await self._conn()
        async with db.execute(
            "SELECT value, expires_at FROM kv WHERE key = ?", (key,)
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return None
        raw, expires_at = row
        if expires_at is not None and expires_at <= self._clock():
            await self.delete(key)
            return None
        return orjson.loads(raw)

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        db = await self._conn()
        expires_at = self._clock() + ttl if ttl is not None else None
        await db.execute(
            "INSERT OR REPLACE INTO kv (key, value, expires_at) VALUES (?, ?, ?)",
            (key, orjson.dumps(value), expires_at),
        )
        await db.commit()

        if self._clock() - self._last_purge >= self.purge_interval:
            await self.purge_expired()

    async def delete(self, key: str) -> None:
        db = await self._conn()
        await db.execute("DELETE FROM kv WHERE key = ?", (key,))
        await db.commit()

    async def purge_expired(self) -> int:
        """Delete every expired row. Returns the number removed."""
        db = await self._conn()
        cursor = await db.execute(
            "DELETE FROM kv WHERE expires_at IS NOT NULL AND expires_at <= ?",
            (self._clock(),),
        )
        await db.commit()
        self._last_purge = self._clock()
        return cursor.rowcount

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
