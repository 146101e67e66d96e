"""Date fragment parsing for catalyst extraction."""

from __future__ import annotations

import calendar
import re
from datetime import date
from typing import NamedTuple

from stockiq_sync.core.exceptions import ParseError

MONTHS: dict[str, int] = {
    name.lower(): number
    for number, name in enumerate(calendar.month_name)
    if name
}
MONTH_ABBREVIATIONS: dict[str, int] = {
    **{name[:3]: number for name, number in MONTHS.items()},
    "sept": 9,
}

MONTH_NAME_PATTERN = (
    r"(?:Jan(?:uary)?|Feb(?:ruary)?|Mar(?:ch)?|Apr(?:il)?|May|June?|July?"
    r"|Aug(?:ust)?|Sept?(?:ember)?|Oct(?:ober)?|Nov(?:ember)?|Dec(?:ember)?)\.?"
)

# Fragments recognised inside longer text; used by the extraction catalog
DATE_PATTERN = (
    rf"{MONTH_NAME_PATTERN}\s+\d{{1,2}},?\s+\d{{4}}"
    r"|\d{1,2}/\d{1,2}/\d{4}"
    r"|\d{4}-\d{2}-\d{2}"
)
PERIOD_PATTERN = (
    r"Q[1-4]\s+(?:of\s+)?\d{4}"
    r"|(?:the\s+)?(?:first|second)\s+half\s+(?:of\s+)?\d{4}"
    r"|[12]H\s+\d{4}"
)

_MONTH_DAY_YEAR = re.compile(r"([A-Za-z]+)\.?\s+(\d{1,2}),?\s+(\d{4})")
_SLASH = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")
_ISO = re.compile(r"(\d{4})-(\d{2})-(\d{2})")
_QUARTER = re.compile(r"\bQ([1-4])\s+(?:of\s+)?(\d{4})", re.IGNORECASE)
_HALF_WORD = re.compile(r"\b(first|second)\s+half\s+(?:of\s+)?(\d{4})", re.IGNORECASE)
_HALF_SHORT = re.compile(r"\b([12])H\s+(\d{4})", re.IGNORECASE)


class ParsedDate(NamedTuple):
    date: date
    is_estimate: bool


def _month_number(name: str) -> int | None:
    key = name.lower().rstrip(".")
    if key in MONTHS:
        return MONTHS[key]
    return MONTH_ABBREVIATIONS.get(key)


def _build(year: int, month: int, day: int, fragment: str) -> date:
    try:
        return date(year, month, day)
    except ValueError as e:
        raise ParseError(
            f"Invalid calendar date in {fragment!r}",
            context={"fragment": fragment},
        ) from e


def _period_end(year: int, last_month: int) -> date:
    return date(year, last_month, calendar.monthrange(year, last_month)[1])


def parse_date_fragment(fragment: str) -> ParsedDate:
    """Parse a date mention pulled out of filing text.

    Exact dates ("January 15, 2026", "Jan. 15 2026", "01/15/2026",
    "2026-01-15") parse to themselves. Periods resolve to their last day and
    are flagged as estimates: "Q3 2026" -> 2026-09-30, "second half of 2026"
    or "2H 2026" -> 2026-12-31.

    Raises:
        ParseError: Nothing date-like in the fragment, or an impossible date.
    """
    text = fragment.strip()

    m = _MONTH_DAY_YEAR.search(text)
    if m:
        month = _month_number(m.group(1))
        if month is not None:
            return ParsedDate(_build(int(m.group(3)), month, int(m.group(2)), fragment), False)

    m = _SLASH.search(text)
    if m:
        return ParsedDate(
            _build(int(m.group(3)), int(m.group(1)), int(m.group(2)), fragment), False
        )

    m = _ISO.search(text)
    if m:
        return ParsedDate(
            _build(int(m.group(1)), int(m.group(2)), int(m.group(3)), fragment), False
        )

    m = _QUARTER.search(text)
    if m:
        return ParsedDate(_period_end(int(m.group(2)), int(m.group(1)) * 3), True)

    m = _HALF_WORD.search(text)
    if m:
        last_month = 6 if m.group(1).lower() == "first" else 12
        return ParsedDate(_period_end(int(m.group(2)), last_month), True)

    m = _HALF_SHORT.search(text)
    if m:
        last_month = 6 if m.group(1) == "1" else 12
        return ParsedDate(_period_end(int(m.group(2)), last_month), True)

    raise ParseError(f"Unrecognised date fragment {fragment!r}", context={"fragment": fragment})
