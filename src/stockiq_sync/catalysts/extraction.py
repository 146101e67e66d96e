"""Catalyst extraction from 8-K filing text.

A declarative catalog of ``PatternRule`` entries is evaluated by a single
loop in ``PatternExtractionEngine.extract``. Adding a catalyst category means
adding a rule, not code.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date

from stockiq_sync.catalysts.dates import DATE_PATTERN, PERIOD_PATTERN, parse_date_fragment
from stockiq_sync.core.exceptions import ParseError
from stockiq_sync.core.models import CatalystType, ExtractedCatalyst

logger = logging.getLogger(__name__)

_CONTEXT_CHARS = 100
_DESCRIPTION_CHARS = 200
_DEDUP_PREFIX = 80

_FLAGS = re.IGNORECASE

# Date capture group shared by the dated rules
_EXACT_DATE = rf"(?P<date>{DATE_PATTERN})"
_ANY_DATE = rf"(?P<date>{PERIOD_PATTERN}|{DATE_PATTERN})"


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, _FLAGS) for p in patterns)


@dataclass(frozen=True)
class PatternRule:
    """One catalyst category.

    ``captures_date`` rules must expose a ``date`` named group; undated rules
    are stamped with the filing date. ``title_keywords`` are checked in order
    against the matched text, and the first hit replaces ``title``.
    """

    name: str
    event_type: CatalystType
    patterns: tuple[re.Pattern[str], ...]
    title: str
    title_keywords: tuple[tuple[str, str], ...] = ()
    captures_date: bool = False
    forward_looking: bool = False
    excludes: tuple[re.Pattern[str], ...] = ()

    def title_for(self, matched: str) -> str:
        lowered = matched.lower()
        for keyword, title in self.title_keywords:
            if keyword in lowered:
                return title
        return self.title

    def is_excluded(self, matched: str, context: str) -> bool:
        return any(p.search(matched) or p.search(context) for p in self.excludes)


# Signatures, recitals and exhibit references that mention regulatory terms
# without announcing anything. Checked against the whole containing sentence.
BOILERPLATE = _compile(
    r"/s/\s+\w+",
    r"By:\s*$",
    r"\bfiled\s+(?:as\s+)?Exhibit\b",
    r"\bindemnification\s+agreement",
    r"\bform\s+of\s+(?:indemnification|agreement)\b",
    r"\bWITNESSETH\b",
    r"\bWHEREAS\b",
)

# "dated as of March 3, 2026" names a document's date, not an event date.
# Checked against the matched span only.
DATED_REFERENCE = re.compile(
    r"\bdated\s+(?:as\s+of\s+)?(?:January|February|March|April|May|June|July|August"
    r"|September|October|November|December)\b",
    _FLAGS,
)

_SENTENCE_END = re.compile(r"[.!?](?=\s|$)")


def is_boilerplate(text: str) -> bool:
    return any(p.search(text) for p in BOILERPLATE)


def sentence_around(text: str, start: int, end: int) -> str:
    """The sentence(s) containing ``text[start:end]``."""
    begin = 0
    for stop in _SENTENCE_END.finditer(text, 0, start):
        begin = stop.end()
    stop = _SENTENCE_END.search(text, end)
    return text[begin : stop.end() if stop else len(text)].strip()


# Dated rules come first: an undated match of the same event type that
# overlaps a dated match is the same announcement and is skipped.
CATALOG: tuple[PatternRule, ...] = (
    PatternRule(
        name="pdufa",
        event_type=CatalystType.PDUFA_DATE,
        patterns=_compile(
            rf"PDUFA\s+(?:target\s+)?(?:action\s+)?(?:goal\s+)?date\s+(?:of\s+|is\s+|set\s+for\s+)?{_EXACT_DATE}",
            rf"(?:target|goal)\s+action\s+date\s+(?:of\s+|is\s+)?{_EXACT_DATE}",
            rf"FDA[^.]{{0,60}}?action\s+date\s+(?:of\s+|is\s+)?{_EXACT_DATE}",
        ),
        title="PDUFA Target Date",
        captures_date=True,
        forward_looking=True,
    ),
    PatternRule(
        name="fda_decision_expected",
        event_type=CatalystType.PDUFA_DATE,
        patterns=_compile(
            rf"(?:approval|decision)\s+(?:is\s+)?(?:expected|anticipated)\s+(?:by|in)\s+{_ANY_DATE}",
        ),
        title="Expected FDA Decision",
        captures_date=True,
        forward_looking=True,
    ),
    PatternRule(
        name="adcom_dated",
        event_type=CatalystType.ADCOM,
        patterns=_compile(
            rf"Advisory\s+Committee\s+(?:meeting\s+)?(?:on|scheduled\s+for|to\s+be\s+held\s+on)\s+{_EXACT_DATE}",
        ),
        title="FDA Advisory Committee Meeting",
        captures_date=True,
        forward_looking=True,
        excludes=_compile(r"Advisory\s+Committee\s+(?:of|to)\s+the\s+Board"),
    ),
    PatternRule(
        name="readout_expected",
        event_type=CatalystType.CLINICAL_READOUT,
        patterns=_compile(
            rf"(?:topline\s+)?(?:data|results|readout)\s+(?:are\s+|is\s+)?(?:expected|anticipated)\s+(?:in\s+|by\s+)?{_ANY_DATE}",
            rf"(?:trial|study)\s+(?:completion|results)\s+(?:are\s+|is\s+)?(?:expected|anticipated)\s+(?:in\s+|by\s+)?{_ANY_DATE}",
        ),
        title="Expected Clinical Data Readout",
        title_keywords=(("topline", "Expected Topline Data"),),
        captures_date=True,
        forward_looking=True,
    ),
    PatternRule(
        name="adcom",
        event_type=CatalystType.ADCOM,
        patterns=_compile(
            r"Advisory\s+Committee\s+(?:meeting|scheduled|will\s+meet|convene)[^.]{0,150}",
            r"\b(?:ODAC|AMDAC|CRDAC|EMDAC)\b[^.]*(?:meeting|scheduled|date)[^.]{0,100}",
            r"FDA\s+(?:advisory\s+)?panel\s+(?:meeting|scheduled|will)[^.]{0,100}",
        ),
        title="FDA Advisory Committee",
        excludes=_compile(
            r"oDAC®",
            r"Advisory\s+Committee,?\s+starting\s+on",
            r"Advisory\s+Committee\s+(?:of|to)\s+the\s+Board",
        ),
    ),
    PatternRule(
        name="designation",
        event_type=CatalystType.FDA_DESIGNATION,
        patterns=_compile(
            r"(?:granted|received|obtained)\s+(?:a\s+)?Breakthrough\s+Therapy[^.]{0,150}",
            r"Breakthrough\s+Therapy\s+(?:designation|status)[^.]{0,150}",
            r"(?:granted|received|obtained)\s+(?:a\s+)?Fast\s+Track[^.]{0,150}",
            r"Fast\s+Track\s+(?:designation|status)[^.]{0,150}",
            r"(?:granted|received)\s+(?:a\s+)?Priority\s+Review[^.]{0,150}",
            r"Priority\s+Review\s+(?:designation|status|for)[^.]{0,150}",
            r"(?:granted|received|obtained)\s+(?:a\s+)?Orphan\s+Drug[^.]{0,150}",
            r"Orphan\s+Drug\s+(?:designation|status)[^.]{0,150}",
            r"Accelerated\s+Approval\s+(?:pathway|designation|granted)[^.]{0,150}",
            r"RMAT\s+(?:designation|status)[^.]{0,100}",
        ),
        title="FDA Designation",
        title_keywords=(
            ("breakthrough", "Breakthrough Therapy Designation"),
            ("fast track", "Fast Track Designation"),
            ("priority review", "Priority Review"),
            ("orphan", "Orphan Drug Designation"),
            ("accelerated approval", "Accelerated Approval"),
            ("rmat", "RMAT Designation"),
        ),
        excludes=_compile(
            r"risks\s+related\s+to",
            r"no\s+assurance",
            r"may\s+not\s+(?:receive|obtain|be\s+granted)",
        ),
    ),
    PatternRule(
        name="approval",
        event_type=CatalystType.FDA_APPROVAL,
        patterns=_compile(
            r"FDA\s+(?:has\s+)?approved\s+[A-Z][^.]{0,150}",
            r"received\s+(?:FDA\s+)?approval\s+(?:for|of|to)[^.]{0,150}",
            r"approval\s+(?:of|for)\s+(?:the\s+)?(?:NDA|BLA|sNDA|sBLA)\b[^.]{0,100}",
        ),
        title="FDA Approval",
        excludes=_compile(
            r"if\s+(?:the\s+)?FDA\s+(?:has\s+)?approved",
            r"(?:prior\s+to|before)\s+(?:FDA\s+)?approval",
            r"FDA\s+approved\s+treatments?\s+for",
            r"(?:approval|decision)\s+(?:is\s+)?(?:expected|anticipated)",
        ),
    ),
    PatternRule(
        name="rejection",
        event_type=CatalystType.FDA_REJECTION,
        patterns=_compile(
            r"Complete\s+Response\s+Letter[^.]{0,150}",
            r"(?:issued|received)\s+(?:a\s+)?CRL\b[^.]{0,100}",
            r"FDA\s+(?:has\s+)?(?:rejected|declined)[^.]{0,100}",
        ),
        title="Complete Response Letter",
        title_keywords=(
            ("rejected", "FDA Rejection"),
            ("declined", "FDA Rejection"),
        ),
        excludes=_compile(r"no\s+assurance", r"risks\s+related\s+to"),
    ),
    PatternRule(
        name="readout",
        event_type=CatalystType.CLINICAL_READOUT,
        patterns=_compile(
            r"(?:announced|reported|released)\s+(?:positive\s+)?topline\s+(?:data|results)[^.]{0,150}",
            r"topline\s+(?:data|results)\s+(?:from|readout)[^.]{0,150}",
            r"Phase\s+[123][a-b]?\s+(?:topline|interim|final)\s+(?:data|results)[^.]{0,150}",
            r"(?:met|achieved)\s+(?:its\s+)?primary\s+endpoint[^.]{0,150}",
            r"primary\s+endpoint\s+(?:met|achieved|results)[^.]{0,150}",
            r"pivotal\s+(?:trial|study)\s+(?:met|achieved|results|data)[^.]{0,150}",
        ),
        title="Clinical Data Readout",
        title_keywords=(
            ("topline", "Topline Data"),
            ("primary endpoint", "Primary Endpoint Results"),
            ("interim", "Interim Data"),
            ("pivotal", "Pivotal Trial Results"),
        ),
        excludes=_compile(r"^Interim\s+Results\s*(?:announced)?$"),
    ),
    PatternRule(
        name="milestone",
        event_type=CatalystType.CLINICAL_MILESTONE,
        patterns=_compile(
            r"(?:announced|completed|completes)\s+enrollment[^.]{0,150}",
            r"first\s+patient\s+(?:dosed|enrolled|treated|randomized)[^.]{0,150}",
            r"last\s+patient\s+(?:dosed|enrolled|treated|visit)[^.]{0,150}",
            r"(?:initiated|initiates|commenced)\s+(?:a\s+)?(?:Phase|pivotal|registrational)[^.]{0,150}",
            r"(?:initiated|initiates|commenced)\s+dosing[^.]{0,150}",
            r"enrollment\s+(?:completed|complete|closed)[^.]{0,100}",
        ),
        title="Clinical Trial Milestone",
        title_keywords=(
            ("first patient", "First Patient Dosed"),
            ("last patient", "Last Patient Milestone"),
            ("enrollment", "Enrollment Completed"),
            ("dosing", "Dosing Initiated"),
            ("initiat", "Trial Initiated"),
            ("commenced", "Trial Initiated"),
        ),
    ),
    PatternRule(
        name="submission",
        event_type=CatalystType.NDA_BLA_SUBMISSION,
        patterns=_compile(
            r"(?:submitted|filed|submits|files)\s+(?:a\s+|an\s+|its\s+)?(?:NDA|BLA|sNDA|sBLA)\b[^.]{0,150}",
            r"\b(?:NDA|BLA|sNDA|sBLA)\s+(?:submitted|filed|accepted|submission)[^.]{0,150}",
            r"(?:submitted|filed)\s+(?:a\s+)?(?:New\s+Drug\s+Application|Biologics\s+License\s+Application)[^.]{0,150}",
            r"FDA\s+(?:accepted|received)\s+(?:the\s+)?(?:NDA|BLA|sNDA|sBLA)\b[^.]{0,150}",
            r"\b(?:NDA|BLA)\s+(?:acceptance|filing)[^.]{0,100}",
        ),
        title="NDA/BLA Submission",
        title_keywords=(("accept", "NDA/BLA Accepted"),),
        excludes=_compile(
            r"abbreviated\s+new\s+drug\s+application",
            r"\bANDA\b",
            r"form\s+of\s+indemnification",
            r"(?:agreement|proposal)\s+NDA",
        ),
    ),
)


def _normalize(text: str) -> str:
    return " ".join(text.lower().split())


class PatternExtractionEngine:
    """Turns cleaned filing text into ExtractedCatalyst records.

    Pure: no I/O, no state carried between calls.

    Parameters
    ----------
    catalog : tuple[PatternRule, ...]
        Rules to evaluate, in order. Defaults to the built-in catalog.
    """

    def __init__(self, catalog: tuple[PatternRule, ...] = CATALOG) -> None:
        self.catalog = catalog

    def extract(
        self,
        text: str,
        filing_date: date,
        today: date | None = None,
    ) -> list[ExtractedCatalyst]:
        """Extract catalysts mentioned in ``text``.

        Args:
            text: Whitespace-normalized filing text.
            filing_date: Date stamped on undated catalysts.
            today: Reference date for the forward-looking filter.

        Returns:
            One ExtractedCatalyst per distinct (type, date, title), in
            discovery order.
        """
        if not text:
            return []
        today = today or date.today()

        results: list[ExtractedCatalyst] = []
        seen: set[tuple[CatalystType, date, str]] = set()
        claimed: dict[CatalystType, list[tuple[int, int]]] = {}

        for rule in self.catalog:
            for pattern in rule.patterns:
                for match in pattern.finditer(text):
                    catalyst = self._evaluate(rule, match, text, filing_date, today, claimed)
                    if catalyst is None:
                        continue
                    key = (
                        catalyst.event_type,
                        catalyst.date,
                        _normalize(catalyst.title)[:_DEDUP_PREFIX],
                    )
                    if key in seen:
                        continue
                    seen.add(key)
                    results.append(catalyst)

        logger.debug("Extracted %d catalysts from %d chars", len(results), len(text))
        return results

    def _evaluate(
        self,
        rule: PatternRule,
        match: re.Match[str],
        text: str,
        filing_date: date,
        today: date,
        claimed: dict[CatalystType, list[tuple[int, int]]],
    ) -> ExtractedCatalyst | None:
        matched = match.group(0).strip()
        start, end = match.span()
        context = text[max(0, start - _CONTEXT_CHARS) : end + _CONTEXT_CHARS]

        if DATED_REFERENCE.search(matched) or is_boilerplate(sentence_around(text, start, end)):
            return None
        if rule.is_excluded(matched, context):
            return None

        spans = claimed.setdefault(rule.event_type, [])
        if rule.captures_date:
            try:
                parsed = parse_date_fragment(match.group("date"))
            except ParseError as e:
                logger.debug("Skipping %s candidate: %s", rule.name, e)
                return None
            spans.append((start, end))
            if rule.forward_looking and parsed.date < today:
                return None
            event_date, is_estimate = parsed.date, parsed.is_estimate
        else:
            if any(start < s_end and s_start < end for s_start, s_end in spans):
                return None
            event_date, is_estimate = filing_date, False

        description = " ".join(matched.split())
        if len(description) > _DESCRIPTION_CHARS:
            description = description[:_DESCRIPTION_CHARS].rstrip() + "..."

        return ExtractedCatalyst(
            event_type=rule.event_type,
            title=rule.title_for(matched),
            description=description,
            date=event_date,
            is_estimate=is_estimate,
        )


_default_engine = PatternExtractionEngine()


def extract_catalysts(
    text: str,
    filing_date: date,
    today: date | None = None,
) -> list[ExtractedCatalyst]:
    """Module-level shortcut using the built-in catalog."""
    return _default_engine.extract(text, filing_date, today)
