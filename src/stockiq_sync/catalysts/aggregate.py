"""Cross-source catalyst aggregation."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from stockiq_sync.catalysts.synchronizer import CatalystSynchronizer
from stockiq_sync.catalysts.trials import TrialsSynchronizer
from stockiq_sync.core.models import SOURCE_PRIORITY, CatalystEvent

logger = logging.getLogger(__name__)


def _prefer(candidate: CatalystEvent, existing: CatalystEvent) -> bool:
    """True if ``candidate`` should replace ``existing`` for the same event."""
    new_priority = SOURCE_PRIORITY.get(candidate.source, 0)
    old_priority = SOURCE_PRIORITY.get(existing.source, 0)
    if new_priority != old_priority:
        return new_priority > old_priority
    return len(candidate.description) > len(existing.description)


def deduplicate_events(events: Iterable[CatalystEvent]) -> list[CatalystEvent]:
    """Collapse reports of the same (symbol, type, date) from different sources.

    The more authoritative source wins (sec > clinicaltrials > finnhub >
    yahoo); between equals, the longer description wins. Sorted by date.
    """
    best: dict[tuple[str, str, object], CatalystEvent] = {}
    for event in events:
        key = (event.symbol, event.event_type, event.date)
        existing = best.get(key)
        if existing is None or _prefer(event, existing):
            best[key] = event
    return sorted(best.values(), key=lambda e: (e.date, e.id))


class CatalystAggregator:
    """Runs every catalyst source for a symbol and merges the results.

    The sources share one cached record per symbol, so they run one after
    the other rather than concurrently.
    """

    def __init__(
        self,
        sec: CatalystSynchronizer,
        trials: TrialsSynchronizer | None = None,
    ) -> None:
        self._sec = sec
        self._trials = trials

    async def get_catalyst_events(
        self,
        symbol: str,
        company_name: str = "",
        industry: str = "Unknown",
    ) -> list[CatalystEvent]:
        sec_state = await self._sec.get_catalyst_events(symbol, industry)
        events = list(sec_state.events)

        if self._trials is not None:
            trials_state = await self._trials.get_trial_events(symbol, company_name, industry)
            events.extend(trials_state.events)

        merged = deduplicate_events(events)
        logger.info("Total catalyst events for %s: %d", symbol.upper(), len(merged))
        return merged
