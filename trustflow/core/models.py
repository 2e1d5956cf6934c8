from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional, Dict, Any
from enum import Enum

WORKLOAD_KINDS = (
    "Deployment",
    "StatefulSet",
    "DaemonSet",
    "ReplicaSet",
    "Job",
    "CronJob",
    "Pod",
)

class Severity(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: str) -> "Severity":
        """Accept any casing ("critical", "CRITICAL", "Critical")."""
        try:
            return cls(str(value).capitalize())
        except ValueError:
            return cls.UNKNOWN

    @property
    def query_value(self) -> str:
        # The backend expects upper-cased severities in detail queries
        return self.value.upper()

class ResourceDescription(BaseModel):
    """A resource handed over by the host, live_state is the JSON-encoded manifest."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    kind: Optional[str] = None
    name: Optional[str] = None
    namespace: Optional[str] = None
    group: Optional[str] = None
    live_state: Optional[str] = Field(default=None, alias="liveState")

class ApplicationDescription(BaseModel):
    model_config = ConfigDict(extra="ignore")

    metadata: Dict[str, Any] = {}
    spec: Dict[str, Any] = {}
    status: Dict[str, Any] = {}

    @field_validator("metadata", "spec", "status", mode="before")
    @classmethod
    def _mapping_or_empty(cls, value: Any) -> Dict[str, Any]:
        return value if isinstance(value, dict) else {}

    @property
    def name(self) -> str:
        return self.metadata.get("name") or ""

    @property
    def namespace(self) -> Optional[str]:
        return self.metadata.get("namespace")

    @property
    def project(self) -> Optional[str]:
        return self.spec.get("project")

class ImageVerification(BaseModel):
    loading: bool = True
    signed: bool = False
    sbom: bool = False
    errors: List[str] = []

class WorkloadTarget(BaseModel):
    kind: str
    name: Optional[str] = None
    namespace: Optional[str] = None

    def query(self) -> Dict[str, str]:
        return {
            "namespace": self.namespace or "",
            "kind": self.kind,
            "name": self.name or "",
        }

    def __str__(self) -> str:
        prefix = f"{self.namespace}/" if self.namespace else ""
        return f"{prefix}{self.kind}/{self.name or ''}"

class SeveritySummary(BaseModel):
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    unknown: int = 0

    def is_clean(self) -> bool:
        return not any((self.critical, self.high, self.medium, self.low, self.unknown))

class VulnerabilityState(BaseModel):
    loading: bool = True
    passed: bool = Field(default=False, alias="pass")
    report_count: int = Field(default=0, alias="reportCount")
    summary: SeveritySummary = Field(default_factory=SeveritySummary)
    error: str = ""

    model_config = ConfigDict(populate_by_name=True)

class VulnerabilityItem(BaseModel):
    """A finding returned by the details endpoint.

    Only the identifier and severity are guaranteed; everything the backend
    sends beyond the declared fields is kept as extra data.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = Field(default=None, alias="vulnerabilityID")
    title: Optional[str] = None
    severity: Optional[str] = None
    package: Optional[str] = Field(default=None, alias="resource")
    installed_version: Optional[str] = Field(default=None, alias="installedVersion")
    fixed_version: Optional[str] = Field(default=None, alias="fixedVersion")
    description: Optional[str] = None
    primary_link: Optional[str] = Field(default=None, alias="primaryLink")
    links: List[Any] = []
    target: Optional[WorkloadTarget] = None

    @field_validator(
        "id", "title", "severity", "package", "installed_version",
        "fixed_version", "description", "primary_link", mode="before",
    )
    @classmethod
    def _scalar_as_text(cls, value: Any) -> Optional[str]:
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, (int, float, bool)):
            return str(value)
        return None

    @field_validator("links", mode="before")
    @classmethod
    def _links_as_list(cls, value: Any) -> List[Any]:
        if value is None:
            return []
        if isinstance(value, list):
            return value
        return [value]

    @property
    def label(self) -> str:
        return self.id or self.title or "unnamed"

class VulnerabilityDetailState(BaseModel):
    open: bool = False
    loading: bool = False
    severity: Optional[Severity] = None
    items: List[VulnerabilityItem] = []
    error: str = ""

class InspectionResult(BaseModel):
    """The plain result handed back to the host for rendering."""
    resource_kind: Optional[str] = None
    resource_name: Optional[str] = None
    scanner_name: str
    base_url: str
    images: List[str] = []
    verifications: Dict[str, ImageVerification] = {}
    targets: List[WorkloadTarget] = []
    vulnerabilities: VulnerabilityState = Field(default_factory=VulnerabilityState)
    details: VulnerabilityDetailState = Field(default_factory=VulnerabilityDetailState)
