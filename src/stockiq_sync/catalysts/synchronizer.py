"""Incremental catalyst sync from SEC filings."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, timedelta

from stockiq_sync.cache.store import CacheStore
from stockiq_sync.catalysts.codes import (
    ITEM_CODES,
    SHELF_DESCRIPTION,
    SHELF_TITLE,
    TEXT_BEARING_ITEMS,
    is_biotech_industry,
)
from stockiq_sync.catalysts.extraction import PatternExtractionEngine
from stockiq_sync.catalysts.records import CatalystRecordStore
from stockiq_sync.catalysts.text import FilingTextCleaner
from stockiq_sync.core.exceptions import StorageError
from stockiq_sync.core.models import (
    CIK,
    CatalystEvent,
    CatalystSource,
    CatalystSyncState,
    CatalystType,
    FilingIndexEntry,
    catalyst_id,
)
from stockiq_sync.upstream.edgar import EdgarClient

logger = logging.getLogger(__name__)

_BROWSE_URL = (
    "https://www.sec.gov/cgi-bin/browse-edgar?action=getcompany"
    "&CIK={cik}&type={form}&dateb=&owner=include&count=40"
)


class CatalystSynchronizer:
    """Keeps a symbol's SEC-derived catalysts current with minimal upstream work.

    Each sync only looks at filings newer than the source's high-water mark
    (``last_fetched_date``) and merges what it finds into the cached events.
    ``get_catalyst_events`` never raises: on any upstream failure the prior
    cached state is returned unchanged.

    Parameters
    ----------
    store : CacheStore
        Cache holding ``catalysts:{SYMBOL}`` records.
    edgar : EdgarClient
        Filings registry client.
    engine : PatternExtractionEngine | None
        Extractor run over 8-K text for biotech issuers.
    lookback_days : int
        Filings older than this are never processed.
    clock : Callable[[], date]
        Returns today's date. Injected in tests.
    """

    source = CatalystSource.SEC

    def __init__(
        self,
        store: CacheStore,
        edgar: EdgarClient,
        engine: PatternExtractionEngine | None = None,
        lookback_days: int = 365,
        clock: Callable[[], date] = date.today,
        cleaner: FilingTextCleaner | None = None,
    ) -> None:
        self._records = CatalystRecordStore(store)
        self._edgar = edgar
        self._engine = engine or PatternExtractionEngine()
        self._cleaner = cleaner or FilingTextCleaner()
        self._lookback_days = lookback_days
        self._clock = clock

    async def get_catalyst_events(
        self,
        symbol: str,
        industry: str = "Unknown",
    ) -> CatalystSyncState:
        symbol = symbol.strip().upper()

        try:
            record = await self._records.load(symbol)
        except StorageError as e:
            logger.warning("Catalyst cache unreadable for %s, skipping sync: %s", symbol, e)
            return CatalystSyncState(symbol=symbol)

        prior = record.state_for(self.source)

        try:
            synced = await self._sync(symbol, industry, prior)
        except Exception as e:
            logger.warning(
                "SEC catalyst sync failed for %s, serving cached state: %s", symbol, e
            )
            return prior

        if synced is None:
            return prior

        events, mark = synced
        updated = record.with_source(self.source, events, mark)
        await self._records.save(updated)

        new_count = len(events) - len(prior.events)
        logger.info(
            "SEC catalysts for %s: %d events (%d new), synced through %s",
            symbol, len(events), new_count, mark,
        )
        return updated.state_for(self.source)

    async def _sync(
        self,
        symbol: str,
        industry: str,
        prior: CatalystSyncState,
    ) -> tuple[list[CatalystEvent], date | None] | None:
        """Fetch and fold new filings. Returns None for an unknown ticker."""
        cik = await self._edgar.resolve_ticker(symbol)
        if cik is None:
            return None

        filings = await self._edgar.get_filing_index(cik)

        today = self._clock()
        lookback_bound = today - timedelta(days=self._lookback_days)
        last_fetched = prior.last_fetched_date
        candidate = last_fetched
        biotech = is_biotech_industry(industry)

        events = list(prior.events)
        seen_ids = {e.id for e in events}

        for entry in filings:
            if last_fetched is not None and entry.filing_date <= last_fetched:
                continue
            if entry.filing_date < lookback_bound:
                continue
            if candidate is None or entry.filing_date > candidate:
                candidate = entry.filing_date

            for event in await self._events_for_filing(symbol, cik, entry, biotech, today):
                if event.id in seen_ids:
                    continue
                seen_ids.add(event.id)
                events.append(event)

        return events, candidate

    async def _events_for_filing(
        self,
        symbol: str,
        cik: CIK,
        entry: FilingIndexEntry,
        biotech: bool,
        today: date,
    ) -> list[CatalystEvent]:
        events: list[CatalystEvent] = []
        doc_url = self._edgar.document_url(cik, entry)

        if entry.is_current_report and entry.item_codes:
            source_url = doc_url or _BROWSE_URL.format(cik=cik, form="8-K")
            for code, item in ITEM_CODES.items():
                if not entry.has_item(code):
                    continue
                events.append(
                    CatalystEvent(
                        id=catalyst_id(self.source, item.event_type, symbol, entry.filing_date, code),
                        symbol=symbol,
                        event_type=item.event_type,
                        date=entry.filing_date,
                        title=item.title,
                        description=f"8-K Item {code}",
                        source=self.source,
                        source_url=source_url,
                        metadata={
                            "form": entry.form,
                            "item_code": code,
                            "accession_number": entry.accession_number,
                        },
                    )
                )

            if (
                biotech
                and doc_url is not None
                and any(entry.has_item(code) for code in TEXT_BEARING_ITEMS)
            ):
                events.extend(await self._extract_from_document(symbol, entry, doc_url, today))

        if entry.is_shelf_registration:
            events.append(
                CatalystEvent(
                    id=catalyst_id(
                        self.source, CatalystType.SEC_FILING, symbol, entry.filing_date, "S-3"
                    ),
                    symbol=symbol,
                    event_type=CatalystType.SEC_FILING,
                    date=entry.filing_date,
                    title=SHELF_TITLE,
                    description=SHELF_DESCRIPTION,
                    source=self.source,
                    source_url=doc_url,
                    metadata={"form": entry.form, "accession_number": entry.accession_number},
                )
            )

        return events

    async def _extract_from_document(
        self,
        symbol: str,
        entry: FilingIndexEntry,
        doc_url: str,
        today: date,
    ) -> list[CatalystEvent]:
        raw = await self._edgar.get_filing_text(doc_url)
        text = self._cleaner.clean(raw)
        extracted = self._engine.extract(text, entry.filing_date, today=today)

        events: list[CatalystEvent] = []
        for item in extracted:
            event_date = item.date or entry.filing_date
            events.append(
                CatalystEvent(
                    id=catalyst_id(self.source, item.event_type, symbol, event_date),
                    symbol=symbol,
                    event_type=item.event_type,
                    date=event_date,
                    is_estimate=item.is_estimate,
                    title=item.title,
                    description=item.description,
                    source=self.source,
                    source_url=doc_url,
                    metadata={
                        "form": entry.form,
                        "filing_date": entry.filing_date.isoformat(),
                        "accession_number": entry.accession_number,
                    },
                )
            )
        if events:
            logger.info(
                "Extracted %d catalysts from %s filing of %s",
                len(events), symbol, entry.filing_date,
            )
        return events
