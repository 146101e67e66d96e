"""Static lookup tables for filing-derived catalysts."""

from __future__ import annotations

from typing import NamedTuple

from stockiq_sync.core.models import CatalystType


class ItemCode(NamedTuple):
    event_type: CatalystType
    title: str


# 8-K item codes worth surfacing as catalysts
ITEM_CODES: dict[str, ItemCode] = {
    "1.01": ItemCode(CatalystType.PARTNERSHIP, "Material Agreement"),
    "1.02": ItemCode(CatalystType.PARTNERSHIP, "Agreement Termination"),
    "2.01": ItemCode(CatalystType.ACQUISITION, "Acquisition/Disposition"),
    "2.02": ItemCode(CatalystType.EARNINGS, "Earnings Results"),
    "3.01": ItemCode(CatalystType.SEC_FILING, "Nasdaq Deficiency Notice"),
    "5.02": ItemCode(CatalystType.EXECUTIVE_CHANGE, "Executive Change"),
    "5.03": ItemCode(CatalystType.STOCK_SPLIT, "Stock Split/Reverse Split"),
}

# "Other Events" and "Regulation FD" items carry FDA and trial announcements
TEXT_BEARING_ITEMS = frozenset({"8.01", "7.01"})

SHELF_TITLE = "S-3 Filing (ATM Offering)"
SHELF_DESCRIPTION = "Shelf registration for at-the-market offering"

_BIOTECH_MARKERS = ("biotech", "pharma", "drug", "therapeutics", "biolog")


def is_biotech_industry(industry: str | None) -> bool:
    """Industry label suggests a biotech/pharma issuer."""
    if not industry:
        return False
    lowered = industry.lower()
    return any(marker in lowered for marker in _BIOTECH_MARKERS)
