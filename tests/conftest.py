"""Shared pytest fixtures for stockiq-sync."""

from __future__ import annotations

from datetime import date

import pytest

from stockiq_sync.cache.store import MemoryCacheStore
from stockiq_sync.core.exceptions import StorageError, TransientUpstreamError
from stockiq_sync.core.models import (
    CatalystEvent,
    CatalystSource,
    CatalystType,
    catalyst_id,
)
from stockiq_sync.prices.models import HistoricalBar


class FakeClock:
    """Settable monotonic clock; ``sleep`` advances it instead of waiting."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeBarSource:
    """In-memory BarSource over a fixed set of bars.

    Records every (start, end) it is asked for. Ranges listed in
    ``fail_ranges`` raise a transient upstream error.
    """

    def __init__(self, bars: list[HistoricalBar] | None = None) -> None:
        self.bars = list(bars or [])
        self.calls: list[tuple[date, date]] = []
        self.fail_ranges: set[tuple[date, date]] = set()
        self.fail_all = False

    async def get_daily_bars(self, symbol: str, start: date, end: date) -> list[HistoricalBar]:
        self.calls.append((start, end))
        if self.fail_all or (start, end) in self.fail_ranges:
            raise TransientUpstreamError(f"Server error 503 for {symbol}")
        return [b for b in self.bars if start <= b.date <= end]


class FailingStore(MemoryCacheStore):
    """MemoryCacheStore whose reads and/or writes can be made to fail."""

    def __init__(self, fail_get: bool = False, fail_set: bool = False) -> None:
        super().__init__()
        self.fail_get = fail_get
        self.fail_set = fail_set

    async def get(self, key):
        if self.fail_get:
            raise StorageError("disk unavailable", context={"operation": "get", "key": key})
        return await super().get(key)

    async def set(self, key, value, ttl_seconds=0):
        if self.fail_set:
            raise StorageError("disk full", context={"operation": "set", "key": key})
        await super().set(key, value, ttl_seconds)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store() -> MemoryCacheStore:
    return MemoryCacheStore()


@pytest.fixture
def sample_sec_event() -> CatalystEvent:
    day = date(2026, 3, 2)
    return CatalystEvent(
        id=catalyst_id(CatalystSource.SEC, CatalystType.EARNINGS, "ACME", day, "2.02"),
        symbol="ACME",
        event_type=CatalystType.EARNINGS,
        date=day,
        title="Earnings Results",
        description="8-K Item 2.02",
        source=CatalystSource.SEC,
    )


@pytest.fixture
def sample_trial_event() -> CatalystEvent:
    day = date(2026, 11, 1)
    return CatalystEvent(
        id=catalyst_id(
            CatalystSource.CLINICAL_TRIALS, CatalystType.CLINICAL_TRIAL, "ACME", day, "NCT01234567"
        ),
        symbol="ACME",
        event_type=CatalystType.CLINICAL_TRIAL,
        date=day,
        is_estimate=True,
        title="Phase 3 Trial Completion",
        description="A Study of Acmeximab in Adults",
        source=CatalystSource.CLINICAL_TRIALS,
    )


@pytest.fixture
def bar_source() -> FakeBarSource:
    return FakeBarSource()


@pytest.fixture
def failing_store() -> FailingStore:
    return FailingStore()
