"""stockiq_sync.core: Foundation types, config, and exceptions."""

from stockiq_sync.core.config import (
    CacheBackend,
    CacheConfig,
    EdgarConfig,
    RetryConfig,
    SyncConfig,
    TrialsConfig,
    YahooConfig,
    load_config,
)
from stockiq_sync.core.exceptions import (
    ConfigError,
    FailureKind,
    ParseError,
    PartialFetchError,
    PermanentUpstreamError,
    RateLimitError,
    StockSyncError,
    StorageError,
    TransientUpstreamError,
    UpstreamError,
)
from stockiq_sync.core.models import (
    CIK,
    SOURCE_PRIORITY,
    AccessionNumber,
    CatalystCacheRecord,
    CatalystEvent,
    CatalystSource,
    CatalystSyncState,
    CatalystType,
    EventId,
    ExtractedCatalyst,
    FilingIndexEntry,
    Ticker,
    catalyst_id,
)

__all__ = [
    # Type aliases
    "AccessionNumber",
    "CIK",
    "EventId",
    "Ticker",
    # Enums
    "CacheBackend",
    "CatalystSource",
    "CatalystType",
    "FailureKind",
    # Models
    "CatalystCacheRecord",
    "CatalystEvent",
    "CatalystSyncState",
    "ExtractedCatalyst",
    "FilingIndexEntry",
    "SOURCE_PRIORITY",
    "catalyst_id",
    # Config
    "CacheConfig",
    "EdgarConfig",
    "RetryConfig",
    "SyncConfig",
    "TrialsConfig",
    "YahooConfig",
    "load_config",
    # Exceptions
    "ConfigError",
    "ParseError",
    "PartialFetchError",
    "PermanentUpstreamError",
    "RateLimitError",
    "StockSyncError",
    "StorageError",
    "TransientUpstreamError",
    "UpstreamError",
]
