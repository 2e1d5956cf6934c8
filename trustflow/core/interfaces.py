from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from .models import (
    ImageVerification,
    InspectionResult,
    Severity,
    VulnerabilityDetailState,
    VulnerabilityState,
    WorkloadTarget,
)

class VerifierBase(ABC):
    @abstractmethod
    async def verify(self, images: List[str]) -> Dict[str, ImageVerification]:
        """Verify signature and SBOM for every image, keyed by image."""
        pass

class ScannerBase(ABC):
    @abstractmethod
    async def summarize(self, targets: List[WorkloadTarget]) -> VulnerabilityState:
        """Merge the vulnerability summaries of all targets into one state."""
        pass

    @abstractmethod
    async def fetch_details(
        self, targets: List[WorkloadTarget], severity: Severity
    ) -> Optional[VulnerabilityDetailState]:
        """Open (or toggle closed) the itemized findings for one severity."""
        pass

class RendererBase(ABC):
    @abstractmethod
    def render(self, result: InspectionResult) -> str:
        """Render the current inspection result."""
        pass
