"""Yahoo Finance daily bar source over direct HTTP.

Uses the unauthenticated ``/v8/finance/chart/`` endpoint through the shared
RateLimitedClient. The chart endpoint provides daily OHLCV data without
authentication with full history available.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from pydantic import ValidationError

from stockiq_sync.core.exceptions import PermanentUpstreamError
from stockiq_sync.prices.models import HistoricalBar
from stockiq_sync.upstream.client import RateLimitedClient

logger = logging.getLogger(__name__)

YAHOO_PROVIDER = "yahoo"

_CHART_PATH = "/v8/finance/chart"
USER_AGENT = "Mozilla/5.0 (compatible; stockiq-sync/0.1)"


def _utc_timestamp(day: date) -> int:
    return int(datetime.combine(day, time.min, tzinfo=timezone.utc).timestamp())


class YahooFinanceAdapter:
    """Transforms raw Yahoo Finance chart JSON into HistoricalBar records.

    This adapter understands the ``/v8/finance/chart/`` response format
    and converts it to the canonical HistoricalBar model.
    """

    def adapt(self, raw_data: Any) -> list[HistoricalBar]:
        """Parse a Yahoo Finance chart result into a HistoricalBar list.

        Parameters
        ----------
        raw_data : dict
            The ``chart.result[0]`` object from a Yahoo Finance chart response.

        Returns
        -------
        list[HistoricalBar]
            Sorted by date ascending, one bar per date. Bars with a null
            close are skipped; a missing open/high/low falls back to close.
        """
        timestamps: list[int] = raw_data.get("timestamp") or []
        if not timestamps:
            return []

        quote_list = (raw_data.get("indicators") or {}).get("quote") or [{}]
        quotes = quote_list[0] or {}

        opens: list[float | None] = quotes.get("open") or []
        highs: list[float | None] = quotes.get("high") or []
        lows: list[float | None] = quotes.get("low") or []
        closes: list[float | None] = quotes.get("close") or []
        volumes: list[int | None] = quotes.get("volume") or []

        by_date: dict[date, HistoricalBar] = {}
        for i, ts in enumerate(timestamps):
            c = closes[i] if i < len(closes) else None
            # Holidays and halted sessions come back with null closes
            if c is None:
                continue
            o = opens[i] if i < len(opens) else None
            h = highs[i] if i < len(highs) else None
            lo = lows[i] if i < len(lows) else None
            v = volumes[i] if i < len(volumes) else None

            bar_date = datetime.fromtimestamp(ts, tz=timezone.utc).date()
            try:
                bar = HistoricalBar(
                    date=bar_date,
                    open=float(o if o is not None else c),
                    high=float(h if h is not None else c),
                    low=float(lo if lo is not None else c),
                    close=float(c),
                    volume=int(v) if v is not None else 0,
                )
            except ValidationError as e:
                logger.warning("Skipping malformed bar for %s: %s", bar_date, e)
                continue
            by_date[bar_date] = bar

        return [by_date[d] for d in sorted(by_date)]


class YahooChartClient:
    """Fetches daily bars from Yahoo Finance's chart API.

    Parameters
    ----------
    http : RateLimitedClient
        The quote provider's throttled client.
    base_url : str
        Override base URL (useful for testing).
    adapter : YahooFinanceAdapter | None
        Custom adapter instance. Uses default if None.
    """

    def __init__(
        self,
        http: RateLimitedClient,
        base_url: str = "https://query2.finance.yahoo.com",
        adapter: YahooFinanceAdapter | None = None,
    ) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._adapter = adapter or YahooFinanceAdapter()

    def chart_url(self, symbol: str) -> str:
        return f"{self._base_url}{_CHART_PATH}/{symbol.upper()}"

    async def fetch_chart(self, symbol: str, start: date, end: date) -> dict | None:
        """Fetch the raw ``chart.result[0]`` object for an inclusive range.

        Returns None when Yahoo answers with an empty result set.

        Raises:
            PermanentUpstreamError: Yahoo reported an API-level error.
            TransientUpstreamError / RateLimitError: via RateLimitedClient.
        """
        params = {
            "interval": "1d",
            "period1": str(_utc_timestamp(start)),
            # period2 is exclusive
            "period2": str(_utc_timestamp(end + timedelta(days=1))),
        }
        data = await self._http.fetch_json(
            self.chart_url(symbol),
            params=params,
            headers={"User-Agent": USER_AGENT},
        )

        chart = (data or {}).get("chart") or {}
        if chart.get("error"):
            err = chart["error"]
            raise PermanentUpstreamError(
                f"Yahoo Finance API error for {symbol}: {err.get('code')}",
                context={
                    "provider": YAHOO_PROVIDER,
                    "symbol": symbol,
                    "description": err.get("description"),
                },
            )

        results = chart.get("result")
        if not results:
            logger.warning("Yahoo Finance returned no results for %s", symbol)
            return None
        return results[0]

    async def get_daily_bars(
        self,
        symbol: str,
        start: date,
        end: date,
    ) -> list[HistoricalBar]:
        """Fetch daily bars with ``start <= date <= end``."""
        raw = await self.fetch_chart(symbol, start, end)
        if raw is None:
            return []
        bars = self._adapter.adapt(raw)
        # Filter to exact date range (API may return extra buffer)
        return [b for b in bars if start <= b.date <= end]
