"""Wires upstream clients, the cache store, and the synchronizers together."""

from __future__ import annotations

import logging

from stockiq_sync.cache.store import CacheStore, create_cache
from stockiq_sync.catalysts.aggregate import CatalystAggregator
from stockiq_sync.catalysts.synchronizer import CatalystSynchronizer
from stockiq_sync.catalysts.trials import TrialsSynchronizer
from stockiq_sync.core.config import SyncConfig
from stockiq_sync.core.models import CatalystEvent
from stockiq_sync.prices.models import HistoricalBar
from stockiq_sync.prices.range_cache import RangeCache
from stockiq_sync.upstream.client import RateLimitedClient, RateLimiter
from stockiq_sync.upstream.edgar import SEC_PROVIDER, EdgarClient
from stockiq_sync.upstream.trials import TRIALS_PROVIDER, ClinicalTrialsClient
from stockiq_sync.upstream.yahoo import YAHOO_PROVIDER, YahooChartClient

logger = logging.getLogger(__name__)


class SyncEngine:
    """One RateLimitedClient per upstream, one cache store, and the services on top.

    Use via ``async with await SyncEngine.create(config) as engine:`` or call
    ``close()`` explicitly.
    """

    def __init__(self, config: SyncConfig, cache: CacheStore) -> None:
        self.config = config
        self.cache = cache

        self._yahoo_http = RateLimitedClient(
            YAHOO_PROVIDER,
            RateLimiter(config.yahoo.min_interval),
            retry=config.retry,
            timeout=config.yahoo.request_timeout,
        )
        self._edgar_http = RateLimitedClient(
            SEC_PROVIDER,
            RateLimiter(config.edgar.min_interval),
            retry=config.retry,
            headers={"User-Agent": config.edgar.user_agent},
            timeout=config.edgar.request_timeout,
        )
        self._trials_http = RateLimitedClient(
            TRIALS_PROVIDER,
            RateLimiter(config.trials.min_interval),
            retry=config.retry,
            timeout=config.trials.request_timeout,
        )

        self.edgar = EdgarClient(self._edgar_http, max_filings=config.edgar.max_filings)
        self.range_cache = RangeCache(
            cache, YahooChartClient(self._yahoo_http, base_url=config.yahoo.base_url)
        )
        self.sec_catalysts = CatalystSynchronizer(
            cache, self.edgar, lookback_days=config.edgar.lookback_days
        )
        self.trials = TrialsSynchronizer(
            cache,
            ClinicalTrialsClient(self._trials_http, base_url=config.trials.base_url),
            recent_days=config.trials.recent_days,
            max_events=config.trials.max_events,
        )
        self.catalysts = CatalystAggregator(self.sec_catalysts, self.trials)

    @classmethod
    async def create(cls, config: SyncConfig, cache: CacheStore | None = None) -> SyncEngine:
        """Build an engine, creating and initializing the configured cache if none given."""
        if cache is None:
            cache = await create_cache(config.cache)
        return cls(config, cache)

    async def __aenter__(self) -> SyncEngine:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close HTTP clients and the cache store."""
        for http in (self._yahoo_http, self._edgar_http, self._trials_http):
            await http.close()
        await self.cache.close()

    async def get_historical_data(self, symbol: str, lookback_days: int) -> list[HistoricalBar]:
        return await self.range_cache.get_historical_data(symbol, lookback_days)

    async def get_catalyst_events(
        self,
        symbol: str,
        company_name: str = "",
        industry: str = "Unknown",
    ) -> list[CatalystEvent]:
        return await self.catalysts.get_catalyst_events(symbol, company_name, industry)
