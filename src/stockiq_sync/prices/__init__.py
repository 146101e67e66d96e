"""Daily price history with incremental range reconciliation.

Architecture
------------

    Upstream JSON -> BarAdapter -> list[HistoricalBar] -> BarSource -> RangeCache -> Consumer

- ``HistoricalBar``: Canonical daily OHLCV record.
- ``CachedRangeRecord``: Everything cached for one symbol, plus the
  coverage bounds that make re-syncs idempotent.
- ``RangeCache``: Fetches only the missing date ranges and merges them in.
"""

from stockiq_sync.prices.models import CachedRangeRecord, DateRange, HistoricalBar, RangeKind
from stockiq_sync.prices.provider import BarAdapter, BarSource
from stockiq_sync.prices.range_cache import (
    RangeCache,
    compute_missing_ranges,
    has_weekday_after,
    merge_bars,
)

__all__ = [
    # Models
    "CachedRangeRecord",
    "DateRange",
    "HistoricalBar",
    "RangeKind",
    # Protocols
    "BarAdapter",
    "BarSource",
    # Reconciliation
    "RangeCache",
    "compute_missing_ranges",
    "has_weekday_after",
    "merge_bars",
]
