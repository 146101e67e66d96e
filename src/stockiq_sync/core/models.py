"""Pydantic data models: the system's type contracts."""

from __future__ import annotations

import datetime as dt
from datetime import date
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

# --- Type Aliases ---

Ticker = str
CIK = str
AccessionNumber = str
EventId = str

# --- Enumerations ---


class CatalystType(StrEnum):
    """Kinds of dated, price-relevant events.

    EARNINGS_CALL, EX_DIVIDEND, DIVIDEND_PAYMENT, REVERSE_SPLIT,
    ANALYST_RATING and INSIDER_TRANSACTION have no producer in this package.
    They exist so that shared catalyst records written by the finnhub and
    yahoo sources still validate.
    """

    # FDA / regulatory
    PDUFA_DATE = "pdufa_date"
    ADCOM = "adcom"
    FDA_APPROVAL = "fda_approval"
    FDA_REJECTION = "fda_rejection"
    FDA_DESIGNATION = "fda_designation"
    NDA_BLA_SUBMISSION = "nda_bla_submission"
    # Clinical
    CLINICAL_TRIAL = "clinical_trial"
    CLINICAL_READOUT = "clinical_readout"
    CLINICAL_MILESTONE = "clinical_milestone"
    # Financial
    EARNINGS = "earnings"
    EARNINGS_CALL = "earnings_call"
    EX_DIVIDEND = "ex_dividend"
    DIVIDEND_PAYMENT = "dividend_payment"
    STOCK_SPLIT = "stock_split"
    REVERSE_SPLIT = "reverse_split"
    # Corporate
    ANALYST_RATING = "analyst_rating"
    INSIDER_TRANSACTION = "insider_transaction"
    EXECUTIVE_CHANGE = "executive_change"
    ACQUISITION = "acquisition"
    PARTNERSHIP = "partnership"
    SEC_FILING = "sec_filing"


class CatalystSource(StrEnum):
    """Upstreams that contribute catalyst events."""

    SEC = "sec"
    CLINICAL_TRIALS = "clinicaltrials"
    FINNHUB = "finnhub"
    YAHOO = "yahoo"


# Higher wins when two sources report the same event.
SOURCE_PRIORITY: dict[CatalystSource, int] = {
    CatalystSource.SEC: 4,
    CatalystSource.CLINICAL_TRIALS: 3,
    CatalystSource.FINNHUB: 2,
    CatalystSource.YAHOO: 1,
}


def catalyst_id(
    source: CatalystSource | str,
    event_type: CatalystType | str,
    symbol: Ticker,
    event_date: date,
    code: str | None = None,
) -> EventId:
    """Deterministic event id, stable across re-runs and safe as a dedup key."""
    parts = [str(source), str(event_type), symbol.upper(), event_date.isoformat()]
    if code:
        parts.append(code)
    return "-".join(parts)


# --- Catalyst Models ---


class CatalystEvent(BaseModel):
    """A dated, materially price-relevant event for one symbol."""

    model_config = ConfigDict(frozen=True)

    id: EventId
    symbol: Ticker
    event_type: CatalystType
    date: date
    is_estimate: bool = False
    title: str
    description: str = ""
    source: CatalystSource
    source_url: str | None = None
    metadata: dict[str, Any] = {}

    @field_validator("symbol")
    @classmethod
    def symbol_upper(cls, v: str) -> str:
        return v.strip().upper()


class ExtractedCatalyst(BaseModel):
    """Pattern-extraction output, before it gets an id and a symbol."""

    model_config = ConfigDict(frozen=True)

    event_type: CatalystType
    title: str
    description: str = ""
    date: dt.date | None = None
    is_estimate: bool = False


class CatalystSyncState(BaseModel):
    """One source's view of a symbol's catalyst sync: high-water mark + events."""

    model_config = ConfigDict(frozen=True)

    symbol: Ticker
    last_fetched_date: date | None = None
    events: list[CatalystEvent] = []


class CatalystCacheRecord(BaseModel):
    """The per-symbol cached object that embeds every source's sync state."""

    model_config = ConfigDict(frozen=True)

    symbol: Ticker
    events: list[CatalystEvent] = []
    sync_marks: dict[CatalystSource, date] = {}

    def mark_for(self, source: CatalystSource) -> date | None:
        return self.sync_marks.get(source)

    def events_for(self, source: CatalystSource) -> list[CatalystEvent]:
        return [e for e in self.events if e.source == source]

    def state_for(self, source: CatalystSource) -> CatalystSyncState:
        """Project this record onto a single source."""
        return CatalystSyncState(
            symbol=self.symbol,
            last_fetched_date=self.mark_for(source),
            events=self.events_for(source),
        )

    def with_source(
        self,
        source: CatalystSource,
        events: list[CatalystEvent],
        mark: date | None,
    ) -> CatalystCacheRecord:
        """Replace one source's events and mark, keeping the other sources."""
        others = [e for e in self.events if e.source != source]
        merged = sorted(others + list(events), key=lambda e: (e.date, e.id))
        marks = dict(self.sync_marks)
        if mark is not None:
            marks[source] = mark
        return CatalystCacheRecord(symbol=self.symbol, events=merged, sync_marks=marks)


# --- Filing Registry Models ---


class FilingIndexEntry(BaseModel):
    """One row of an issuer's filing index."""

    model_config = ConfigDict(frozen=True)

    form: str
    filing_date: date
    item_codes: list[str] = []
    accession_number: AccessionNumber | None = None
    primary_document: str | None = None

    @field_validator("item_codes", mode="before")
    @classmethod
    def split_item_codes(cls, v: Any) -> list[str]:
        """EDGAR packs item codes into one comma-separated string."""
        if v is None:
            return []
        if isinstance(v, str):
            return [code.strip() for code in v.split(",") if code.strip()]
        return list(v)

    @property
    def is_current_report(self) -> bool:
        return self.form in ("8-K", "8-K/A")

    @property
    def is_shelf_registration(self) -> bool:
        return "S-3" in self.form

    def has_item(self, code: str) -> bool:
        return code in self.item_codes
