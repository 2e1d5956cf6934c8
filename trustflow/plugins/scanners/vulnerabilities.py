import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import quote, urlencode

import httpx
from pydantic import ValidationError

from trustflow.core.config import TrustFlowConfig
from trustflow.core.interfaces import ScannerBase
from trustflow.core.models import (
    Severity,
    SeveritySummary,
    VulnerabilityDetailState,
    VulnerabilityItem,
    VulnerabilityState,
    WorkloadTarget,
)
from trustflow.core.rounds import RequestGeneration
from trustflow.utils.transport import TransportError, error_from_payload, fetch_json, open_client

logger = logging.getLogger(__name__)

NO_TARGETS = "No workload targets found."
COUNTERS = ("critical", "high", "medium", "low", "unknown")

# (payload, error) per target, exactly one of the two is set
Outcome = Tuple[Optional[Any], Optional[str]]

def as_count(value: Any) -> int:
    """Coerce a backend counter to a non-negative int, garbage counts as zero."""
    if isinstance(value, bool):
        return 0
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError, OverflowError):
        return 0

def aggregate(outcomes: List[Outcome]) -> VulnerabilityState:
    """Merge per-target summaries into one state, computed from scratch.

    Failed targets, and 2xx payloads carrying the error envelope, only
    contribute their error message. The round passes only when at least one
    report exists and every counter is zero.
    """
    totals = dict.fromkeys(COUNTERS, 0)
    report_count = 0
    errors = []
    for data, error in outcomes:
        if error is None:
            error = error_from_payload(data)
        if error is not None:
            errors.append(error)
            continue
        data = data if isinstance(data, dict) else {}
        summary = data.get("summary") if isinstance(data.get("summary"), dict) else {}
        for key in COUNTERS:
            totals[key] += as_count(summary.get(key))
        report_count += as_count(data.get("reportCount"))

    summary = SeveritySummary(**totals)
    return VulnerabilityState(
        loading=False,
        passed=report_count > 0 and summary.is_clean(),
        report_count=report_count,
        summary=summary,
        error=" | ".join(errors),
    )

def empty_state(error: str = NO_TARGETS) -> VulnerabilityState:
    return VulnerabilityState(loading=False, passed=False, report_count=0, error=error)

class VulnerabilityAggregator(ScannerBase):
    def __init__(
        self,
        config: TrustFlowConfig,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.headers = headers or {}
        self.client = client
        self.details = VulnerabilityDetailState()
        self._detail_generation = RequestGeneration()

    def summary_url(self, target: WorkloadTarget) -> str:
        return f"{self.config.base_url}/vulns?{urlencode(target.query(), quote_via=quote)}"

    def details_url(self, target: WorkloadTarget, severity: Severity) -> str:
        query = dict(target.query(), severity=severity.query_value)
        return f"{self.config.base_url}/vulns/details?{urlencode(query, quote_via=quote)}"

    async def _get(self, url: str, client: httpx.AsyncClient, target: WorkloadTarget) -> Outcome:
        try:
            return await fetch_json(url, self.headers, client), None
        except (TransportError, httpx.HTTPError) as e:
            logger.warning(f"{self.config.scanner_name} query for {target} failed: {e}")
            return None, str(e) or "Vulnerability fetch failed."

    async def _fan_out(self, urls: List[Tuple[str, WorkloadTarget]]) -> List[Outcome]:
        if self.client is not None:
            return await asyncio.gather(*(self._get(url, self.client, t) for url, t in urls))
        async with open_client(self.config) as client:
            return await asyncio.gather(*(self._get(url, client, t) for url, t in urls))

    async def summarize(self, targets: List[WorkloadTarget]) -> VulnerabilityState:
        if not targets:
            return empty_state()
        outcomes = await self._fan_out([(self.summary_url(t), t) for t in targets])
        state = aggregate(outcomes)
        logger.debug(
            f"Vulnerability round over {len(targets)} target(s): "
            f"{state.report_count} report(s), pass={state.passed}"
        )
        return state

    async def fetch_details(
        self,
        targets: List[WorkloadTarget],
        severity: Union[Severity, str],
    ) -> Optional[VulnerabilityDetailState]:
        """Open the findings of one severity, or close it if it is already open.

        Every call takes a new request generation. Results are applied only if
        no later call happened meanwhile; a superseded call returns None.
        """
        if not isinstance(severity, Severity):
            severity = Severity.parse(severity)
        token = self._detail_generation.next()

        if self.details.open and self.details.severity == severity:
            self.details = VulnerabilityDetailState(open=False, severity=severity)
            return self.details

        if not targets:
            self.details = VulnerabilityDetailState(open=True, severity=severity, error=NO_TARGETS)
            return self.details

        self.details = VulnerabilityDetailState(open=True, loading=True, severity=severity)
        outcomes = await self._fan_out([(self.details_url(t, severity), t) for t in targets])

        items: List[VulnerabilityItem] = []
        errors = []
        for target, (data, error) in zip(targets, outcomes):
            if error is None:
                error = error_from_payload(data)
            if error is not None:
                errors.append(error)
                continue
            items.extend(self._parse_items(data, target))

        if not self._detail_generation.is_current(token):
            logger.debug(f"Discarding superseded {severity.value} details")
            return None
        self.details = VulnerabilityDetailState(
            open=True,
            loading=False,
            severity=severity,
            items=items,
            error=" | ".join(errors),
        )
        return self.details

    def _parse_items(self, data: Any, target: WorkloadTarget) -> List[VulnerabilityItem]:
        raw_items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(raw_items, list):
            return []
        items = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                continue
            try:
                items.append(VulnerabilityItem.model_validate({**raw, "target": target.model_dump()}))
            except ValidationError as e:
                logger.warning(f"Skipping malformed finding on {target}: {e}")
        return items
