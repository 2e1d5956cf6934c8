import asyncio
import logging
from typing import Dict, List, Optional
from urllib.parse import quote

import httpx

from trustflow.core.config import TrustFlowConfig
from trustflow.core.interfaces import VerifierBase
from trustflow.core.models import ImageVerification
from trustflow.plugins.extractors.images import has_digest
from trustflow.utils.transport import TransportError, fetch_json, open_client

logger = logging.getLogger(__name__)

NOT_PINNED = "Image is not pinned by digest."

def verification_url(base_url: str, image: str) -> str:
    """Backend URL holding the signature/SBOM (provenance) verdict of an image."""
    return f"{base_url}/verify?image={quote(image, safe='')}"

class SignatureVerifier(VerifierBase):
    def __init__(
        self,
        config: TrustFlowConfig,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.headers = headers or {}
        self.client = client

    async def verify(self, images: List[str]) -> Dict[str, ImageVerification]:
        """Verify every image concurrently.

        The mapping is only returned once every image has settled, each failure
        is recorded on its own image and never aborts the others.
        """
        if not images:
            return {}
        if self.client is not None:
            results = await asyncio.gather(*(self.verify_image(image, self.client) for image in images))
        else:
            async with open_client(self.config) as client:
                results = await asyncio.gather(*(self.verify_image(image, client) for image in images))
        return dict(zip(images, results))

    async def verify_image(self, image: str, client: httpx.AsyncClient) -> ImageVerification:
        if not has_digest(image):
            return ImageVerification(loading=False, errors=[NOT_PINNED])

        try:
            data = await fetch_json(verification_url(self.config.base_url, image), self.headers, client)
        except (TransportError, httpx.HTTPError) as e:
            logger.warning(f"Verification of {image} failed: {e}")
            return ImageVerification(loading=False, errors=[str(e) or "Verification failed."])

        if not isinstance(data, dict):
            data = {}
        errors = data.get("errors")
        return ImageVerification(
            loading=False,
            signed=bool(data.get("signed")),
            sbom=bool(data.get("sbom")),
            errors=[str(e) for e in errors] if isinstance(errors, list) else [],
        )
