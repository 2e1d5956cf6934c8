import asyncio
import logging
from typing import Dict, List, Optional, Union

import httpx

from trustflow.core.config import TrustFlowConfig, build_headers
from trustflow.core.models import (
    ApplicationDescription,
    ImageVerification,
    InspectionResult,
    ResourceDescription,
    Severity,
    VulnerabilityDetailState,
    VulnerabilityState,
    WorkloadTarget,
)
from trustflow.core.rounds import RequestGeneration
from trustflow.plugins.extractors.images import extract_images, extract_targets
from trustflow.plugins.scanners.vulnerabilities import VulnerabilityAggregator
from trustflow.plugins.verifiers.signature import SignatureVerifier

logger = logging.getLogger(__name__)

class TrustFlowPanel:
    """State of one inspected resource.

    update() starts a verification round and a vulnerability round. A newer
    update() supersedes older rounds: their results are dropped on arrival.
    Every state attribute is replaced as a whole, never mutated in place.
    """

    def __init__(self, config: Optional[TrustFlowConfig] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or TrustFlowConfig.from_env()
        self.client = client
        self.resource: Optional[ResourceDescription] = None
        self.application: Optional[ApplicationDescription] = None
        self.headers: Dict[str, str] = build_headers(None)
        self.images: List[str] = []
        self.targets: List[WorkloadTarget] = []
        self.image_results: Dict[str, ImageVerification] = {}
        self.vulnerabilities = VulnerabilityState()
        self.scanner = VulnerabilityAggregator(self.config, self.headers, client)
        self._image_round = RequestGeneration()
        self._vuln_round = RequestGeneration()

    async def update(
        self,
        resource: Union[ResourceDescription, dict, None],
        application: Union[ApplicationDescription, dict, None] = None,
    ) -> InspectionResult:
        if isinstance(resource, dict):
            resource = ResourceDescription.model_validate(resource)
        if isinstance(application, dict):
            application = ApplicationDescription.model_validate(application)

        self.resource = resource
        self.application = application
        self.headers = build_headers(application)
        self.images = extract_images(resource, application)
        self.targets = extract_targets(resource, application)
        self.scanner = VulnerabilityAggregator(self.config, self.headers, self.client)
        logger.info(f"Inspecting {len(self.images)} image(s) and {len(self.targets)} workload target(s)")

        await asyncio.gather(self.refresh_images(), self.refresh_vulnerabilities())
        return self.result()

    async def refresh_images(self) -> None:
        token = self._image_round.next()
        images = list(self.images)
        self.image_results = {image: ImageVerification(loading=True) for image in images}

        verifier = SignatureVerifier(self.config, self.headers, self.client)
        results = await verifier.verify(images)

        if not self._image_round.is_current(token):
            logger.debug("Discarding verification results of a superseded round")
            return
        self.image_results = results

    async def refresh_vulnerabilities(self) -> None:
        token = self._vuln_round.next()
        targets = list(self.targets)
        scanner = self.scanner
        if targets:
            self.vulnerabilities = self.vulnerabilities.model_copy(update={"loading": True, "error": ""})

        state = await scanner.summarize(targets)

        if not self._vuln_round.is_current(token):
            logger.debug("Discarding vulnerability summary of a superseded round")
            return
        self.vulnerabilities = state

    async def select_severity(self, severity: Union[Severity, str]) -> VulnerabilityDetailState:
        """Toggle the findings list of one severity for the current targets."""
        await self.scanner.fetch_details(self.targets, severity)
        return self.scanner.details

    def result(self) -> InspectionResult:
        resource = self.resource
        return InspectionResult(
            resource_kind=resource.kind if resource else None,
            resource_name=resource.name if resource else None,
            scanner_name=self.config.scanner_name,
            base_url=self.config.base_url,
            images=list(self.images),
            verifications=dict(self.image_results),
            targets=list(self.targets),
            vulnerabilities=self.vulnerabilities,
            details=self.scanner.details,
        )
