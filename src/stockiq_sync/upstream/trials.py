"""ClinicalTrials.gov v2 registry adapter."""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import date
from typing import Any

from stockiq_sync.core.models import (
    CatalystEvent,
    CatalystSource,
    CatalystType,
    catalyst_id,
)
from stockiq_sync.upstream.client import RateLimitedClient

logger = logging.getLogger(__name__)

TRIALS_PROVIDER = "clinicaltrials"

STUDY_URL = "https://clinicaltrials.gov/study/{nct_id}"

ACTIVE_STATUSES = (
    "RECRUITING",
    "ACTIVE_NOT_RECRUITING",
    "ENROLLING_BY_INVITATION",
    "NOT_YET_RECRUITING",
)
COMPLETED_STATUSES = ("COMPLETED",)

_ACTIVE_PAGE_SIZE = 50
_COMPLETED_PAGE_SIZE = 30

_COMPANY_SUFFIX = re.compile(
    r",?\s*(Inc\.?|Corp\.?|Corporation|Ltd\.?|LLC|PLC|Limited|Co\.?)$",
    re.IGNORECASE,
)


def sponsor_query(company_name: str) -> str:
    """Strip the legal-entity suffix so the sponsor search matches loosely."""
    return _COMPANY_SUFFIX.sub("", company_name.strip()).strip()


def _format_phase(phase: str) -> str:
    # "PHASE2" -> "Phase 2", "EARLY_PHASE1" -> "Early Phase 1"
    return phase.replace("EARLY_PHASE", "Early Phase ").replace("PHASE", "Phase ").strip()


def _completion_date(raw: str) -> date | None:
    """Registry dates are "YYYY-MM" or "YYYY-MM-DD"; month-only means the 1st."""
    parts = raw.split("-")
    if len(parts) == 2:
        raw = f"{raw}-01"
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


def parse_study(study: dict[str, Any], symbol: str) -> CatalystEvent | None:
    """Turn one registry study into a trial-completion event.

    Studies without a phase, an NCT id or a completion date are skipped. The
    primary completion date wins over the study completion date.
    """
    protocol = study.get("protocolSection") or {}
    if not protocol:
        return None

    ident = protocol.get("identificationModule") or {}
    status = protocol.get("statusModule") or {}
    phases: list[str] = (protocol.get("designModule") or {}).get("phases") or []
    nct_id = ident.get("nctId")
    if not phases or not nct_id:
        return None

    primary = status.get("primaryCompletionDateStruct") or {}
    completion = status.get("completionDateStruct") or {}
    raw_date = primary.get("date") or completion.get("date")
    if not raw_date:
        return None
    event_date = _completion_date(raw_date)
    if event_date is None:
        logger.debug("Unparseable completion date %r on %s", raw_date, nct_id)
        return None

    is_estimate = "ESTIMATED" in (primary.get("type"), completion.get("type"))
    phase_label = "/".join(_format_phase(p) for p in phases)

    return CatalystEvent(
        id=catalyst_id(
            CatalystSource.CLINICAL_TRIALS,
            CatalystType.CLINICAL_TRIAL,
            symbol,
            event_date,
            nct_id,
        ),
        symbol=symbol,
        event_type=CatalystType.CLINICAL_TRIAL,
        date=event_date,
        is_estimate=is_estimate,
        title=f"{phase_label} Trial Completion",
        description=ident.get("briefTitle") or ident.get("officialTitle") or "",
        source=CatalystSource.CLINICAL_TRIALS,
        source_url=STUDY_URL.format(nct_id=nct_id),
        metadata={
            "nct_id": nct_id,
            "phases": phases,
            "overall_status": status.get("overallStatus"),
        },
    )


class ClinicalTrialsClient:
    """Queries the registry for a sponsor's active and completed studies."""

    def __init__(
        self,
        http: RateLimitedClient,
        base_url: str = "https://clinicaltrials.gov/api/v2/studies",
    ) -> None:
        self._http = http
        self._base_url = base_url

    async def _search(
        self,
        sponsor: str,
        statuses: tuple[str, ...],
        page_size: int,
        sort: str,
    ) -> list[dict[str, Any]]:
        params = {
            "query.spons": sponsor,
            "filter.overallStatus": ",".join(statuses),
            "pageSize": str(page_size),
            "sort": sort,
        }
        data = await self._http.fetch_json(
            self._base_url,
            params=params,
            headers={"Accept": "application/json"},
        )
        return (data or {}).get("studies") or []

    async def get_studies(
        self, company_name: str
    ) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
        """Return (active studies by ascending completion, completed by descending)."""
        sponsor = sponsor_query(company_name)
        active, completed = await asyncio.gather(
            self._search(
                sponsor, ACTIVE_STATUSES, _ACTIVE_PAGE_SIZE, "PrimaryCompletionDate:asc"
            ),
            self._search(
                sponsor, COMPLETED_STATUSES, _COMPLETED_PAGE_SIZE, "PrimaryCompletionDate:desc"
            ),
        )
        logger.debug(
            "Trials registry: %d active, %d completed studies for %r",
            len(active), len(completed), sponsor,
        )
        return active, completed
