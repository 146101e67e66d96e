"""Bar source and adapter protocols for the range cache.

    Upstream JSON -> BarAdapter -> list[HistoricalBar] -> BarSource -> RangeCache

The range cache depends only on ``BarSource``; swapping the quote provider
means writing one adapter and one source.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Protocol, runtime_checkable

from stockiq_sync.prices.models import HistoricalBar


@runtime_checkable
class BarAdapter(Protocol):
    """Transforms one raw upstream payload into HistoricalBar records."""

    def adapt(self, raw_data: Any) -> list[HistoricalBar]: ...


@runtime_checkable
class BarSource(Protocol):
    """Fetches daily bars for an inclusive date range.

    Implementations raise UpstreamError subclasses on failure and return an
    empty list when the upstream simply has no data for the range.
    """

    async def get_daily_bars(
        self,
        symbol: str,
        start: date,
        end: date,
    ) -> list[HistoricalBar]: ...
