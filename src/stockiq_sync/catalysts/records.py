"""Persistence of the per-symbol catalyst record shared by all catalyst sources."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from stockiq_sync.cache.store import CATALYSTS_PREFIX, NO_EXPIRY, CacheStore, cache_key
from stockiq_sync.core.exceptions import StorageError
from stockiq_sync.core.models import CatalystCacheRecord

logger = logging.getLogger(__name__)


class CatalystRecordStore:
    """Loads and saves ``catalysts:{SYMBOL}`` records."""

    def __init__(self, store: CacheStore) -> None:
        self._store = store

    async def load(self, symbol: str) -> CatalystCacheRecord:
        """Return the cached record, or an empty one if there is none.

        A corrupt record is discarded and treated as empty.

        Raises:
            StorageError: The cache backend could not be read.
        """
        key = cache_key(CATALYSTS_PREFIX, symbol)
        raw = await self._store.get(key)
        if raw is None:
            return CatalystCacheRecord(symbol=symbol)
        try:
            return CatalystCacheRecord.model_validate(raw)
        except ValidationError as e:
            logger.warning("Discarding corrupt catalyst record %s: %s", key, e)
            return CatalystCacheRecord(symbol=symbol)

    async def save(self, record: CatalystCacheRecord) -> bool:
        """Persist with no expiry. Returns False (after logging) on failure."""
        key = cache_key(CATALYSTS_PREFIX, record.symbol)
        try:
            await self._store.set(key, record.model_dump(mode="json"), NO_EXPIRY)
        except StorageError as e:
            logger.warning("Cache write failed for %s: %s", key, e)
            return False
        return True
