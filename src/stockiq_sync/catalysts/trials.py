"""Daily clinical-trial catalyst refresh for biotech issuers."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, timedelta
from typing import Any

from stockiq_sync.cache.store import CacheStore
from stockiq_sync.catalysts.codes import is_biotech_industry
from stockiq_sync.catalysts.records import CatalystRecordStore
from stockiq_sync.core.exceptions import StorageError
from stockiq_sync.core.models import CatalystEvent, CatalystSource, CatalystSyncState
from stockiq_sync.upstream.trials import ClinicalTrialsClient, parse_study

logger = logging.getLogger(__name__)


def _parse_all(studies: list[dict[str, Any]], symbol: str) -> list[CatalystEvent]:
    events = (parse_study(study, symbol) for study in studies)
    return [e for e in events if e is not None]


class TrialsSynchronizer:
    """Refreshes a symbol's trial-completion events at most once per day.

    Unlike the filings sync this source is not incremental: every refresh
    replaces the source's events wholesale, and the source's mark records the
    day of the last successful refresh.

    Parameters
    ----------
    store : CacheStore
        Cache holding ``catalysts:{SYMBOL}`` records.
    client : ClinicalTrialsClient
        Trials registry client.
    recent_days : int
        How far back completed trials are kept.
    max_events : int
        Cap on upcoming and, separately, on recently completed trials.
    clock : Callable[[], date]
        Returns today's date. Injected in tests.
    """

    source = CatalystSource.CLINICAL_TRIALS

    def __init__(
        self,
        store: CacheStore,
        client: ClinicalTrialsClient,
        recent_days: int = 90,
        max_events: int = 20,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._records = CatalystRecordStore(store)
        self._client = client
        self._recent_days = recent_days
        self._max_events = max_events
        self._clock = clock

    async def get_trial_events(
        self,
        symbol: str,
        company_name: str,
        industry: str,
    ) -> CatalystSyncState:
        symbol = symbol.strip().upper()

        try:
            record = await self._records.load(symbol)
        except StorageError as e:
            logger.warning("Catalyst cache unreadable for %s, skipping trials: %s", symbol, e)
            return CatalystSyncState(symbol=symbol)

        prior = record.state_for(self.source)
        if not is_biotech_industry(industry):
            return prior
        if not company_name.strip():
            logger.info("No company name for %s, skipping trials registry", symbol)
            return prior

        today = self._clock()
        if prior.last_fetched_date is not None and prior.last_fetched_date >= today:
            logger.debug("Trials for %s already refreshed today", symbol)
            return prior

        try:
            active, completed = await self._client.get_studies(company_name)
        except Exception as e:
            logger.warning("Trials sync failed for %s, serving cached state: %s", symbol, e)
            return prior

        events = self._select(symbol, active, completed, today)
        updated = record.with_source(self.source, events, today)
        await self._records.save(updated)
        logger.info("Trials for %s: %d events", symbol, len(events))
        return updated.state_for(self.source)

    def _select(
        self,
        symbol: str,
        active: list[dict[str, Any]],
        completed: list[dict[str, Any]],
        today: date,
    ) -> list[CatalystEvent]:
        """Soonest upcoming plus most recently completed trials, date-sorted."""
        recent_bound = today - timedelta(days=self._recent_days)

        upcoming = sorted(
            (e for e in _parse_all(active, symbol) if e.date >= today),
            key=lambda e: e.date,
        )[: self._max_events]
        past = sorted(
            (e for e in _parse_all(completed, symbol) if recent_bound <= e.date < today),
            key=lambda e: e.date,
            reverse=True,
        )[: self._max_events]

        by_id: dict[str, CatalystEvent] = {}
        for event in upcoming + past:
            by_id.setdefault(event.id, event)
        return sorted(by_id.values(), key=lambda e: (e.date, e.id))
