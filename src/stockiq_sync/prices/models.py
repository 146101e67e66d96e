"""Price history models for the range-reconciling bar cache."""

from __future__ import annotations

import datetime as dt
from datetime import date
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

_PRICE_DECIMALS = 3


class HistoricalBar(BaseModel):
    """One daily OHLCV bar, the canonical price record.

    One bar per calendar date per symbol. Adapters must produce data in this
    format; the cache stores nothing else.
    """

    model_config = ConfigDict(frozen=True)

    date: date
    open: float
    high: float
    low: float
    close: float
    volume: int = 0

    @field_validator("volume")
    @classmethod
    def volume_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"volume must be >= 0, got {v}")
        return v

    @model_validator(mode="after")
    def high_gte_low(self) -> HistoricalBar:
        if self.high < self.low:
            raise ValueError(
                f"high ({self.high}) must be >= low ({self.low})"
            )
        return self

    def rounded(self, decimals: int = _PRICE_DECIMALS) -> HistoricalBar:
        """Return a copy with price fields rounded for storage."""
        return HistoricalBar(
            date=self.date,
            open=round(self.open, decimals),
            high=round(self.high, decimals),
            low=round(self.low, decimals),
            close=round(self.close, decimals),
            volume=self.volume,
        )


class RangeKind(StrEnum):
    """Why a date range has to be fetched."""

    FULL = "full"
    BEFORE = "before"
    AFTER = "after"


class DateRange(BaseModel):
    """An inclusive [start, end] span of calendar dates missing from the cache."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date
    kind: RangeKind = RangeKind.FULL

    @model_validator(mode="after")
    def start_not_after_end(self) -> DateRange:
        if self.start > self.end:
            raise ValueError(f"start ({self.start}) must be <= end ({self.end})")
        return self

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


class CachedRangeRecord(BaseModel):
    """Everything the cache knows about one symbol's daily history.

    ``fetched_from_date`` is the earliest date ever requested, not the
    earliest date with data, so that a window that starts on a weekend or
    holiday is not re-queried forever. ``fetched_through_date`` is the latest
    date ever successfully requested, for the same reason at the other end.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    bars: list[HistoricalBar] = []
    earliest_date: dt.date | None = None
    latest_date: dt.date | None = None
    fetched_from_date: dt.date
    fetched_through_date: dt.date | None = None

    @field_validator("symbol")
    @classmethod
    def symbol_upper(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode="after")
    def coverage_consistent(self) -> CachedRangeRecord:
        if not self.bars:
            if self.earliest_date is not None or self.latest_date is not None:
                raise ValueError("earliest_date/latest_date must be unset without bars")
            return self

        dates = [b.date for b in self.bars]
        if any(a >= b for a, b in zip(dates, dates[1:])):
            raise ValueError("bars must be strictly ascending by date")
        if self.earliest_date != dates[0] or self.latest_date != dates[-1]:
            raise ValueError("earliest_date/latest_date must match the bars")
        if self.fetched_from_date > self.earliest_date:
            raise ValueError(
                f"fetched_from_date ({self.fetched_from_date}) must be <= "
                f"earliest_date ({self.earliest_date})"
            )
        return self

    @classmethod
    def from_bars(
        cls,
        symbol: str,
        bars: list[HistoricalBar],
        fetched_from_date: date,
        fetched_through_date: date | None = None,
    ) -> CachedRangeRecord:
        """Build a record, deriving earliest/latest from already-sorted bars."""
        return cls(
            symbol=symbol,
            bars=bars,
            earliest_date=bars[0].date if bars else None,
            latest_date=bars[-1].date if bars else None,
            fetched_from_date=fetched_from_date,
            fetched_through_date=fetched_through_date,
        )

    @property
    def covered_through(self) -> date | None:
        """The date the after-gap is measured from."""
        if not self.bars:
            return self.fetched_through_date
        if self.fetched_through_date is None:
            return self.latest_date
        return max(self.latest_date, self.fetched_through_date)
