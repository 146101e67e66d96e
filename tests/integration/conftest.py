"""Integration test fixtures: real SQLite I/O, network mocked with respx."""

from __future__ import annotations

from pathlib import Path

import pytest

from stockiq_sync.cache.store import SqliteCacheStore
from stockiq_sync.core.config import (
    CacheConfig,
    EdgarConfig,
    RetryConfig,
    SyncConfig,
    TrialsConfig,
    YahooConfig,
)

YAHOO_BASE = "https://yahoo.integration.test"
TRIALS_BASE = "https://trials.integration.test/api/v2/studies"


@pytest.fixture
def integration_config(tmp_path: Path) -> SyncConfig:
    """Config pointing every upstream at a mockable host, with no throttling delay."""
    return SyncConfig(
        edgar=EdgarConfig(user_agent="Integration tests tests@example.com", min_interval=0.1),
        yahoo=YahooConfig(base_url=YAHOO_BASE, min_interval=0.0),
        trials=TrialsConfig(base_url=TRIALS_BASE, min_interval=0.0),
        retry=RetryConfig(retries=1, base_delay=0.0),
        cache=CacheConfig(backend="sqlite", sqlite_path=str(tmp_path / "integration.db")),
    )


@pytest.fixture
async def sqlite_store(integration_config: SyncConfig) -> SqliteCacheStore:
    """An initialized SqliteCacheStore for integration tests."""
    store = SqliteCacheStore(integration_config.cache.sqlite_path)
    await store.initialize()
    yield store
    await store.close()
