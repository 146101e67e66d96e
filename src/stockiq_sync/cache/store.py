"""Key/value cache backends: Protocol definition, memory and SQLite implementations, factory."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, ClassVar, Protocol, runtime_checkable

import aiosqlite

from stockiq_sync.core.config import CacheBackend, CacheConfig
from stockiq_sync.core.exceptions import StorageError

logger = logging.getLogger(__name__)

# Key namespaces
HISTORICAL_PREFIX = "historical"
CATALYSTS_PREFIX = "catalysts"

# ttl_seconds value meaning "never expires"
NO_EXPIRY = 0


def cache_key(prefix: str, identifier: str) -> str:
    """Colon-namespaced cache key, e.g. ``historical:AAPL``."""
    return f"{prefix}:{identifier.strip().upper()}"


@runtime_checkable
class CacheStore(Protocol):
    """Generic key/value cache the sync engine persists through.

    Values are JSON-compatible objects. ``ttl_seconds=0`` never expires.
    """

    async def get(self, key: str) -> Any | None: ...
    async def set(self, key: str, value: Any, ttl_seconds: int = NO_EXPIRY) -> None: ...
    async def delete(self, key: str) -> None: ...
    async def initialize(self) -> None: ...
    async def close(self) -> None: ...


class MemoryCacheStore:
    """In-process dict-backed cache. Values are deep-copied through JSON."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}

    async def initialize(self) -> None:
        return None

    async def close(self) -> None:
        self._data.clear()

    async def get(self, key: str) -> Any | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        payload, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return json.loads(payload)

    async def set(self, key: str, value: Any, ttl_seconds: int = NO_EXPIRY) -> None:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise StorageError(
                f"Value for {key!r} is not JSON-serializable: {e}",
                context={"operation": "set", "key": key},
            ) from e
        expires_at = self._clock() + ttl_seconds if ttl_seconds > 0 else None
        self._data[key] = (payload, expires_at)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)


class SqliteCacheStore:
    """SQLite implementation of the cache protocol.

    Uses aiosqlite for async access, WAL mode for concurrent reads,
    and a version-tracked migration system. Values are stored as JSON text
    with an optional absolute expiry (unix seconds).
    """

    _MIGRATIONS: ClassVar[dict[int, tuple[str, list[str]]]] = {
        1: (
            "Initial schema",
            [
                """CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT DEFAULT (datetime('now'))
                )""",
                """CREATE TABLE IF NOT EXISTS cache_entries (
                    key TEXT PRIMARY KEY,
                    value_json TEXT NOT NULL,
                    expires_at REAL,
                    updated_at TEXT DEFAULT (datetime('now'))
                )""",
                "CREATE INDEX IF NOT EXISTS idx_cache_expires ON cache_entries(expires_at)",
            ],
        ),
    }

    def __init__(
        self,
        path: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._path = path
        self._clock = clock
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection, enable WAL, run migrations."""
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._path)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute("PRAGMA journal_mode=WAL")
            current = await self._get_schema_version()
            await self._apply_migrations(current)
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to initialize SQLite cache: {e}",
                context={"operation": "initialize", "path": self._path},
            ) from e

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    # --- Schema Migration ---

    async def _get_schema_version(self) -> int:
        try:
            async with self._db.execute(
                "SELECT MAX(version) FROM schema_version"
            ) as cursor:
                row = await cursor.fetchone()
            return row[0] if row[0] is not None else 0
        except aiosqlite.OperationalError:
            return 0

    async def _apply_migrations(self, current_version: int) -> None:
        for version in sorted(self._MIGRATIONS.keys()):
            if version <= current_version:
                continue
            desc, statements = self._MIGRATIONS[version]
            logger.info("Applying migration %d: %s", version, desc)
            for sql in statements:
                await self._db.execute(sql)
            await self._db.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )

    def _require_db(self, operation: str, key: str) -> aiosqlite.Connection:
        if self._db is None:
            raise StorageError(
                "SQLite cache used before initialize()",
                context={"operation": operation, "key": key},
            )
        return self._db

    # --- Key/Value Operations ---

    async def get(self, key: str) -> Any | None:
        db = self._require_db("get", key)
        try:
            async with db.execute(
                "SELECT value_json, expires_at FROM cache_entries WHERE key = ?",
                (key,),
            ) as cursor:
                row = await cursor.fetchone()
            if row is None:
                return None
            if row["expires_at"] is not None and self._clock() >= row["expires_at"]:
                await db.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
                await db.commit()
                return None
            return json.loads(row["value_json"])
        except (aiosqlite.Error, ValueError) as e:
            raise StorageError(
                f"Failed to read cache entry {key!r}: {e}",
                context={"operation": "get", "key": key},
            ) from e

    async def set(self, key: str, value: Any, ttl_seconds: int = NO_EXPIRY) -> None:
        db = self._require_db("set", key)
        expires_at = self._clock() + ttl_seconds if ttl_seconds > 0 else None
        try:
            payload = json.dumps(value)
            await db.execute(
                """INSERT OR REPLACE INTO cache_entries
                   (key, value_json, expires_at, updated_at)
                   VALUES (?, ?, ?, datetime('now'))""",
                (key, payload, expires_at),
            )
            await db.commit()
        except (aiosqlite.Error, TypeError, ValueError) as e:
            raise StorageError(
                f"Failed to write cache entry {key!r}: {e}",
                context={"operation": "set", "key": key},
            ) from e

    async def delete(self, key: str) -> None:
        db = self._require_db("delete", key)
        try:
            await db.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
            await db.commit()
        except aiosqlite.Error as e:
            raise StorageError(
                f"Failed to delete cache entry {key!r}: {e}",
                context={"operation": "delete", "key": key},
            ) from e


async def create_cache(config: CacheConfig) -> CacheStore:
    """Create and initialize a cache backend based on configuration."""
    if config.backend == CacheBackend.MEMORY:
        store: CacheStore = MemoryCacheStore()
    elif config.backend == CacheBackend.SQLITE:
        store = SqliteCacheStore(config.sqlite_path)
    else:
        raise StorageError(
            f"Unsupported cache backend: {config.backend}",
            context={"operation": "create_cache", "backend": str(config.backend)},
        )
    await store.initialize()
    return store
