"""Tests for stockiq_sync.upstream.edgar (EdgarClient)."""

import asyncio
from datetime import date

import httpx
import pytest
import respx

from stockiq_sync.core.config import RetryConfig
from stockiq_sync.core.exceptions import PermanentUpstreamError
from stockiq_sync.core.models import FilingIndexEntry
from stockiq_sync.upstream.client import RateLimitedClient, RateLimiter
from stockiq_sync.upstream.edgar import (
    SUBMISSIONS_URL,
    TICKERS_URL,
    EdgarClient,
    document_url,
    parse_filing_index,
)

# --- Fixtures ---


@pytest.fixture
def company_tickers_json() -> dict:
    return {
        "0": {"cik_str": 320193, "ticker": "AAPL", "title": "Apple Inc."},
        "1": {"cik_str": 1234567, "ticker": "acme", "title": "Acme Therapeutics, Inc."},
    }


@pytest.fixture
def submissions_json() -> dict:
    return {
        "cik": "1234567",
        "name": "Acme Therapeutics, Inc.",
        "filings": {
            "recent": {
                "accessionNumber": [
                    "0001234567-26-000010",
                    "0001234567-26-000009",
                    "0001234567-26-000008",
                ],
                "filingDate": ["2026-03-02", "not-a-date", "2026-01-15"],
                "form": ["8-K", "10-Q", "S-3"],
                "items": ["2.02,9.01", "", ""],
                "primaryDocument": ["acme-8k.htm", "acme-10q.htm", ""],
            }
        },
    }


@pytest.fixture
async def client(fake_clock):
    async with RateLimitedClient(
        "sec",
        RateLimiter(0.0, clock=fake_clock, sleep=fake_clock.sleep),
        retry=RetryConfig(retries=1),
        sleep=fake_clock.sleep,
    ) as http:
        yield EdgarClient(http, max_filings=100)


# --- Pure helpers ---


class TestDocumentUrl:
    def test_strips_padding_and_dashes(self):
        assert (
            document_url("0001234567", "0001234567-26-000010", "acme-8k.htm")
            == "https://www.sec.gov/Archives/edgar/data/1234567/000123456726000010/acme-8k.htm"
        )

    async def test_client_method_needs_accession_and_document(self, client):
        entry = FilingIndexEntry(form="S-3", filing_date=date(2026, 1, 15))
        assert client.document_url("0001234567", entry) is None


class TestParseFilingIndex:
    def test_zips_parallel_arrays(self, submissions_json):
        entries = parse_filing_index(submissions_json)
        assert [e.form for e in entries] == ["8-K", "S-3"]
        first = entries[0]
        assert first.filing_date == date(2026, 3, 2)
        assert first.item_codes == ["2.02", "9.01"]
        assert first.accession_number == "0001234567-26-000010"
        assert first.primary_document == "acme-8k.htm"

    def test_empty_strings_become_none(self, submissions_json):
        shelf = parse_filing_index(submissions_json)[1]
        assert shelf.primary_document is None
        assert shelf.item_codes == []

    def test_max_filings(self, submissions_json):
        assert len(parse_filing_index(submissions_json, max_filings=1)) == 1

    def test_missing_filings_block(self):
        assert parse_filing_index({}) == []


# --- Ticker mapping ---


class TestGetCompanyTickers:
    @respx.mock
    async def test_fetches_and_pads(self, client, company_tickers_json):
        respx.get(TICKERS_URL).mock(return_value=httpx.Response(200, json=company_tickers_json))
        result = await client.get_company_tickers()
        assert result["AAPL"] == "0000320193"
        assert result["ACME"] == "0001234567"

    @respx.mock
    async def test_caches_in_memory(self, client, company_tickers_json):
        route = respx.get(TICKERS_URL).mock(
            return_value=httpx.Response(200, json=company_tickers_json)
        )
        await client.get_company_tickers()
        await client.get_company_tickers()
        assert route.call_count == 1

    @respx.mock
    async def test_concurrent_callers_share_one_request(self, client, company_tickers_json):
        route = respx.get(TICKERS_URL).mock(
            return_value=httpx.Response(200, json=company_tickers_json)
        )
        results = await asyncio.gather(*(client.resolve_ticker("ACME") for _ in range(5)))
        assert results == ["0001234567"] * 5
        assert route.call_count == 1

    @respx.mock
    async def test_failed_load_not_memoized(self, client, company_tickers_json):
        route = respx.get(TICKERS_URL).mock(
            side_effect=[
                httpx.Response(404),
                httpx.Response(200, json=company_tickers_json),
            ]
        )
        with pytest.raises(PermanentUpstreamError):
            await client.get_company_tickers()
        assert (await client.get_company_tickers())["ACME"] == "0001234567"
        assert route.call_count == 2

    @respx.mock
    async def test_unexpected_payload(self, client):
        respx.get(TICKERS_URL).mock(return_value=httpx.Response(200, json=[1, 2, 3]))
        with pytest.raises(PermanentUpstreamError, match="company_tickers"):
            await client.get_company_tickers()


class TestResolveTicker:
    @respx.mock
    async def test_case_insensitive(self, client, company_tickers_json):
        respx.get(TICKERS_URL).mock(return_value=httpx.Response(200, json=company_tickers_json))
        assert await client.resolve_ticker(" aapl ") == "0000320193"

    @respx.mock
    async def test_unknown_ticker_returns_none(self, client, company_tickers_json):
        respx.get(TICKERS_URL).mock(return_value=httpx.Response(200, json=company_tickers_json))
        assert await client.resolve_ticker("ZZZZ") is None


# --- Filings ---


class TestGetFilingIndex:
    @respx.mock
    async def test_fetches_submissions(self, client, submissions_json):
        respx.get(SUBMISSIONS_URL.format(cik="0001234567")).mock(
            return_value=httpx.Response(200, json=submissions_json)
        )
        entries = await client.get_filing_index("0001234567")
        assert len(entries) == 2
        assert entries[0].is_current_report

    @respx.mock
    async def test_filing_text(self, client):
        url = document_url("0001234567", "0001234567-26-000010", "acme-8k.htm")
        respx.get(url).mock(return_value=httpx.Response(200, text="<html>8-K</html>"))
        assert await client.get_filing_text(url) == "<html>8-K</html>"
