"""SEC EDGAR filings registry adapter."""

from __future__ import annotations

import asyncio
import logging
from datetime import date

from stockiq_sync.core.exceptions import PermanentUpstreamError
from stockiq_sync.core.models import CIK, FilingIndexEntry
from stockiq_sync.upstream.client import RateLimitedClient

logger = logging.getLogger(__name__)

SEC_PROVIDER = "sec"

# EDGAR API base URLs
TICKERS_URL = "https://www.sec.gov/files/company_tickers.json"
SUBMISSIONS_URL = "https://data.sec.gov/submissions/CIK{cik}.json"
ARCHIVES_BASE = "https://www.sec.gov/Archives/edgar/data"


def document_url(cik: CIK, accession_number: str, primary_document: str) -> str:
    """Archive URL of a filing's primary document.

    Archive paths use the CIK without zero padding and the accession number
    without dashes.
    """
    accession_no_dashes = accession_number.replace("-", "")
    return f"{ARCHIVES_BASE}/{cik.lstrip('0')}/{accession_no_dashes}/{primary_document}"


def parse_filing_index(submissions: dict, max_filings: int | None = None) -> list[FilingIndexEntry]:
    """Zip the submissions endpoint's parallel arrays into FilingIndexEntry rows.

    Rows are kept in the order EDGAR returns them (newest first). Rows
    without a parseable filing date are skipped.
    """
    recent = (submissions.get("filings") or {}).get("recent") or {}
    forms: list[str] = recent.get("form") or []
    dates: list[str] = recent.get("filingDate") or []
    items: list[str | None] = recent.get("items") or []
    accessions: list[str | None] = recent.get("accessionNumber") or []
    primary_docs: list[str | None] = recent.get("primaryDocument") or []

    count = len(forms) if max_filings is None else min(len(forms), max_filings)
    entries: list[FilingIndexEntry] = []
    for i in range(count):
        try:
            filed = date.fromisoformat(dates[i])
        except (IndexError, TypeError, ValueError):
            logger.debug("Skipping filing row %d without a valid date", i)
            continue
        entries.append(
            FilingIndexEntry(
                form=forms[i],
                filing_date=filed,
                item_codes=items[i] if i < len(items) else None,
                accession_number=(accessions[i] or None) if i < len(accessions) else None,
                primary_document=(primary_docs[i] or None) if i < len(primary_docs) else None,
            )
        )
    return entries


class EdgarClient:
    """Async client for the SEC EDGAR endpoints the catalyst sync needs.

    SEC EDGAR fair-access policy:
    - Max 10 requests/second (enforced by the shared RateLimiter)
    - User-Agent MUST include company/person name + email

    The ticker -> CIK map is loaded once per client. Concurrent first callers
    share one in-flight load; a failed load is forgotten so the next caller
    retries it.
    """

    def __init__(self, http: RateLimitedClient, max_filings: int = 100) -> None:
        self._http = http
        self._max_filings = max_filings
        self._tickers_cache: dict[str, CIK] | None = None
        self._tickers_task: asyncio.Task[dict[str, CIK]] | None = None

    # --- CIK / Ticker Resolution ---

    async def get_company_tickers(self) -> dict[str, CIK]:
        """Return the {ticker: 10-digit CIK} mapping, loading it at most once."""
        if self._tickers_cache is not None:
            return self._tickers_cache

        if self._tickers_task is None:
            self._tickers_task = asyncio.ensure_future(self._load_company_tickers())

        task = self._tickers_task
        try:
            mapping = await asyncio.shield(task)
        except Exception:
            # Let the next caller start a fresh load
            if self._tickers_task is task:
                self._tickers_task = None
            raise

        self._tickers_cache = mapping
        return mapping

    async def _load_company_tickers(self) -> dict[str, CIK]:
        logger.info("Loading SEC ticker mapping")
        raw = await self._http.fetch_json(TICKERS_URL)
        if not isinstance(raw, dict):
            raise PermanentUpstreamError(
                "Unexpected company_tickers.json payload",
                context={"provider": SEC_PROVIDER, "url": TICKERS_URL},
            )

        # SEC format: {"0": {"cik_str": 320193, "ticker": "AAPL", ...}, ...}
        result: dict[str, CIK] = {}
        for entry in raw.values():
            ticker = str(entry["ticker"]).upper()
            result[ticker] = str(entry["cik_str"]).zfill(10)

        logger.info("Loaded %d ticker -> CIK mappings", len(result))
        return result

    async def resolve_ticker(self, ticker: str) -> CIK | None:
        """Resolve a stock ticker to its 10-digit CIK, or None if unknown."""
        tickers = await self.get_company_tickers()
        cik = tickers.get(ticker.strip().upper())
        if cik is None:
            logger.info("Ticker %s not found in SEC ticker mapping", ticker)
        return cik

    # --- Submission Metadata ---

    async def get_submissions(self, cik: CIK) -> dict:
        """Fetch the raw submissions JSON for a company."""
        data = await self._http.fetch_json(SUBMISSIONS_URL.format(cik=cik))
        if not isinstance(data, dict):
            raise PermanentUpstreamError(
                f"Unexpected submissions payload for CIK {cik}",
                context={"provider": SEC_PROVIDER, "cik": cik},
            )
        return data

    async def get_filing_index(self, cik: CIK) -> list[FilingIndexEntry]:
        """Fetch an issuer's recent filings, newest first, capped at max_filings."""
        submissions = await self.get_submissions(cik)
        return parse_filing_index(submissions, self._max_filings)

    # --- Filing Document Retrieval ---

    def document_url(self, cik: CIK, entry: FilingIndexEntry) -> str | None:
        if not entry.accession_number or not entry.primary_document:
            return None
        return document_url(cik, entry.accession_number, entry.primary_document)

    async def get_filing_text(self, url: str) -> str:
        """Download a single filing document (usually HTML)."""
        return await self._http.fetch_text(url)
