"""Catalyst events: filing extraction, incremental sync, and aggregation.

Key abstractions:

- ``PatternExtractionEngine``: Declarative regex catalog over 8-K text.
- ``CatalystSynchronizer``: Incremental SEC filings sync with a high-water mark.
- ``TrialsSynchronizer``: Daily ClinicalTrials.gov refresh for biotech issuers.
- ``CatalystAggregator``: Runs the sources and de-duplicates across them.
"""

from stockiq_sync.catalysts.aggregate import CatalystAggregator, deduplicate_events
from stockiq_sync.catalysts.codes import ITEM_CODES, is_biotech_industry
from stockiq_sync.catalysts.dates import ParsedDate, parse_date_fragment
from stockiq_sync.catalysts.extraction import (
    CATALOG,
    PatternExtractionEngine,
    PatternRule,
    extract_catalysts,
)
from stockiq_sync.catalysts.records import CatalystRecordStore
from stockiq_sync.catalysts.synchronizer import CatalystSynchronizer
from stockiq_sync.catalysts.text import FilingTextCleaner, filing_to_text
from stockiq_sync.catalysts.trials import TrialsSynchronizer

__all__ = [
    # Extraction
    "CATALOG",
    "ParsedDate",
    "PatternExtractionEngine",
    "PatternRule",
    "extract_catalysts",
    "parse_date_fragment",
    "FilingTextCleaner",
    "filing_to_text",
    # Tables
    "ITEM_CODES",
    "is_biotech_industry",
    # Sync
    "CatalystRecordStore",
    "CatalystSynchronizer",
    "TrialsSynchronizer",
    # Aggregation
    "CatalystAggregator",
    "deduplicate_events",
]
