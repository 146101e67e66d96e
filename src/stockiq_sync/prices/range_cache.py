"""Incremental daily-bar cache that only fetches the date ranges it is missing."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import date, timedelta

from pydantic import ValidationError

from stockiq_sync.cache.store import HISTORICAL_PREFIX, NO_EXPIRY, CacheStore, cache_key
from stockiq_sync.core.exceptions import PartialFetchError, StorageError
from stockiq_sync.prices.models import CachedRangeRecord, DateRange, HistoricalBar, RangeKind
from stockiq_sync.prices.provider import BarSource

logger = logging.getLogger(__name__)

_SATURDAY = 5


def has_weekday_after(after: date, through: date) -> bool:
    """True if some Monday-Friday lies in the half-open span (after, through]."""
    day = after + timedelta(days=1)
    while day <= through:
        if day.weekday() < _SATURDAY:
            return True
        day += timedelta(days=1)
    return False


def compute_missing_ranges(
    record: CachedRangeRecord | None,
    requested_start: date,
    yesterday: date,
) -> list[DateRange]:
    """Date ranges that must be fetched to cover [requested_start, yesterday].

    Without a record the whole window is missing. With one there are at most
    two gaps: before the earliest date ever requested, and after the latest
    date held. A tail made only of weekend days is not worth a request.
    """
    if requested_start > yesterday:
        return []
    if record is None:
        return [DateRange(start=requested_start, end=yesterday, kind=RangeKind.FULL)]

    gaps: list[DateRange] = []
    if requested_start < record.fetched_from_date:
        gaps.append(
            DateRange(
                start=requested_start,
                end=record.fetched_from_date,
                kind=RangeKind.BEFORE,
            )
        )

    through = record.covered_through or record.fetched_from_date
    if through < yesterday and has_weekday_after(through, yesterday):
        gaps.append(DateRange(start=through, end=yesterday, kind=RangeKind.AFTER))
    return gaps


def merge_bars(
    existing: Iterable[HistoricalBar],
    new: Iterable[HistoricalBar],
) -> list[HistoricalBar]:
    """Union two bar lists by date; ``new`` wins on conflicts. Sorted ascending."""
    by_date: dict[date, HistoricalBar] = {b.date: b for b in existing}
    for bar in new:
        by_date[bar.date] = bar
    return [by_date[d] for d in sorted(by_date)]


class RangeCache:
    """Serves daily bars from cache, fetching only the missing date ranges.

    ``get_historical_data`` never raises: upstream and storage failures
    degrade to whatever the cache already holds, down to an empty list.

    Parameters
    ----------
    store : CacheStore
        Key/value cache the records are persisted in (``historical:{SYMBOL}``).
    source : BarSource
        Upstream daily bar source.
    clock : Callable[[], date]
        Returns today's date. Injected in tests.
    """

    def __init__(
        self,
        store: CacheStore,
        source: BarSource,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._store = store
        self._source = source
        self._clock = clock

    async def get_historical_data(
        self,
        symbol: str,
        lookback_days: int,
    ) -> list[HistoricalBar]:
        """Return bars with ``today - lookback_days <= date <= yesterday``."""
        symbol = symbol.strip().upper()
        today = self._clock()
        yesterday = today - timedelta(days=1)
        requested_start = today - timedelta(days=lookback_days)

        if requested_start > yesterday:
            logger.warning("Non-positive lookback (%d) for %s", lookback_days, symbol)
            return []

        try:
            record = await self._load_record(symbol)
        except StorageError as e:
            # An unreadable record may hold more history than this window
            logger.warning("Cache read failed for %s, not persisting this sync: %s", symbol, e)
            record, readable = None, False
        else:
            readable = True
        gaps = compute_missing_ranges(record, requested_start, yesterday)

        if not gaps:
            logger.debug("Cache hit for %s [%s..%s]", symbol, requested_start, yesterday)
            return self._window(record, requested_start, yesterday)

        logger.info(
            "Cache miss for %s: fetching %s",
            symbol,
            ", ".join(f"{g.kind.value} {g.start}..{g.end}" for g in gaps),
        )

        try:
            fetched = await self._fetch_gaps(symbol, gaps, today)
        except PartialFetchError as e:
            fetched = e.partial or {}
            logger.warning("%s; merging what succeeded", e)

        if not fetched:
            return self._window(record, requested_start, yesterday)

        updated = self._merge_record(symbol, record, fetched)
        if readable:
            await self._save_record(updated)
        return self._window(updated, requested_start, yesterday)

    # --- Persistence ---

    async def _load_record(self, symbol: str) -> CachedRangeRecord | None:
        """Return the cached record; a corrupt one counts as absent.

        Raises:
            StorageError: The cache backend could not be read.
        """
        key = cache_key(HISTORICAL_PREFIX, symbol)
        raw = await self._store.get(key)
        if raw is None:
            return None
        try:
            return CachedRangeRecord.model_validate(raw)
        except ValidationError as e:
            logger.warning("Discarding corrupt cache record %s: %s", key, e)
            return None

    async def _save_record(self, record: CachedRangeRecord) -> None:
        key = cache_key(HISTORICAL_PREFIX, record.symbol)
        try:
            await self._store.set(key, record.model_dump(mode="json"), NO_EXPIRY)
        except StorageError as e:
            logger.warning("Cache write failed for %s: %s", key, e)

    # --- Fetch & merge ---

    async def _fetch_gaps(
        self,
        symbol: str,
        gaps: list[DateRange],
        today: date,
    ) -> dict[DateRange, list[HistoricalBar]]:
        """Fetch every gap. Raises PartialFetchError if any gap failed.

        Bars outside their gap, or dated today or later, are dropped.
        """
        fetched: dict[DateRange, list[HistoricalBar]] = {}
        failed: list[str] = []
        for gap in gaps:
            try:
                bars = await self._source.get_daily_bars(symbol, gap.start, gap.end)
            except Exception as e:
                logger.warning(
                    "Fetching %s %s..%s for %s failed: %s",
                    gap.kind.value, gap.start, gap.end, symbol, e,
                )
                failed.append(f"{gap.kind.value} {gap.start}..{gap.end}")
                continue
            fetched[gap] = [
                b.rounded() for b in bars if gap.contains(b.date) and b.date < today
            ]

        if failed:
            raise PartialFetchError(
                f"{len(failed)} of {len(gaps)} range fetches failed for {symbol}",
                partial=fetched,
                context={"symbol": symbol, "failed": failed},
            )
        return fetched

    @staticmethod
    def _merge_record(
        symbol: str,
        record: CachedRangeRecord | None,
        fetched: dict[DateRange, list[HistoricalBar]],
    ) -> CachedRangeRecord:
        """Fold successfully fetched gaps into the record.

        Coverage only grows, and only in the direction of a gap that was
        actually fetched.
        """
        bars = list(record.bars) if record else []
        fetched_from = record.fetched_from_date if record else None
        fetched_through = record.fetched_through_date if record else None

        for gap, new_bars in fetched.items():
            bars = merge_bars(bars, new_bars)
            if gap.kind in (RangeKind.FULL, RangeKind.BEFORE):
                fetched_from = gap.start if fetched_from is None else min(fetched_from, gap.start)
            if gap.kind in (RangeKind.FULL, RangeKind.AFTER):
                fetched_through = (
                    gap.end if fetched_through is None else max(fetched_through, gap.end)
                )

        return CachedRangeRecord.from_bars(
            symbol,
            bars,
            fetched_from_date=fetched_from,
            fetched_through_date=fetched_through,
        )

    @staticmethod
    def _window(
        record: CachedRangeRecord | None,
        start: date,
        end: date,
    ) -> list[HistoricalBar]:
        if record is None:
            return []
        return [b for b in record.bars if start <= b.date <= end]
