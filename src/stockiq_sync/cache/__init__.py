"""Key/value cache collaborators for the sync engine."""

from stockiq_sync.cache.store import (
    CATALYSTS_PREFIX,
    HISTORICAL_PREFIX,
    NO_EXPIRY,
    CacheStore,
    MemoryCacheStore,
    SqliteCacheStore,
    cache_key,
    create_cache,
)

__all__ = [
    "CATALYSTS_PREFIX",
    "HISTORICAL_PREFIX",
    "NO_EXPIRY",
    "CacheStore",
    "MemoryCacheStore",
    "SqliteCacheStore",
    "cache_key",
    "create_cache",
]
