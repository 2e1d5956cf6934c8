import os
import logging
from typing import Dict, Optional
from pydantic import BaseModel, field_validator
from trustflow.core.models import ApplicationDescription

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "/extensions/trustflow"
DEFAULT_SCANNER_NAME = "Trivy"
DEFAULT_APP_NAMESPACE = "argocd"
DEFAULT_PROJECT = "default"

class TrustFlowConfig(BaseModel):
    base_url: str = DEFAULT_BASE_URL
    scanner_name: str = DEFAULT_SCANNER_NAME
    # Argo CD server the relative base_url is resolved against
    server: Optional[str] = None
    # None means the core never times a request out
    timeout: Optional[float] = None
    # Argo CD session token, sent as the argocd.token cookie
    token: Optional[str] = None

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/") or DEFAULT_BASE_URL

    @classmethod
    def from_env(cls, **overrides) -> "TrustFlowConfig":
        """Build a config from TRUSTFLOW_* variables, explicit overrides win."""
        values = {}
        if os.environ.get("TRUSTFLOW_BASE_URL"):
            values["base_url"] = os.environ["TRUSTFLOW_BASE_URL"]
        if os.environ.get("TRUSTFLOW_SCANNER_NAME"):
            values["scanner_name"] = os.environ["TRUSTFLOW_SCANNER_NAME"]
        if os.environ.get("TRUSTFLOW_TIMEOUT"):
            try:
                values["timeout"] = float(os.environ["TRUSTFLOW_TIMEOUT"])
            except ValueError:
                logger.warning(f"Ignoring invalid TRUSTFLOW_TIMEOUT: {os.environ['TRUSTFLOW_TIMEOUT']}")
        if os.environ.get("ARGOCD_SERVER"):
            values["server"] = os.environ["ARGOCD_SERVER"]
        if os.environ.get("ARGOCD_TOKEN"):
            values["token"] = os.environ["ARGOCD_TOKEN"]
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def cookies(self) -> Dict[str, str]:
        return {"argocd.token": self.token} if self.token else {}

def build_headers(application: Optional[ApplicationDescription]) -> Dict[str, str]:
    """Headers for the Argo CD proxy extension endpoint.

    The application headers are only sent when an application name is known,
    the proxy uses them to authorize the request against that application.
    """
    headers = {
        "Accept": "application/json",
        "Content-Type": "application/json",
    }
    if application is not None and application.name:
        namespace = application.namespace or DEFAULT_APP_NAMESPACE
        headers["Argocd-Application-Name"] = f"{namespace}:{application.name}"
        headers["Argocd-Project-Name"] = application.project or DEFAULT_PROJECT
    return headers
