"""Rate-limited clients for the third-party data sources."""

from stockiq_sync.upstream.client import (
    RateLimitedClient,
    RateLimiter,
    classify_failure,
    truncate_body,
)
from stockiq_sync.upstream.edgar import EdgarClient, document_url, parse_filing_index
from stockiq_sync.upstream.trials import ClinicalTrialsClient, parse_study, sponsor_query
from stockiq_sync.upstream.yahoo import YahooChartClient, YahooFinanceAdapter

__all__ = [
    # Transport
    "RateLimitedClient",
    "RateLimiter",
    "classify_failure",
    "truncate_body",
    # SEC EDGAR
    "EdgarClient",
    "document_url",
    "parse_filing_index",
    # ClinicalTrials.gov
    "ClinicalTrialsClient",
    "parse_study",
    "sponsor_query",
    # Yahoo Finance
    "YahooChartClient",
    "YahooFinanceAdapter",
]
