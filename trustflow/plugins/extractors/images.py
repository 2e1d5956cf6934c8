import json
import re
import logging
from typing import Any, Dict, List, Optional
from trustflow.core.models import (
    WORKLOAD_KINDS,
    ApplicationDescription,
    ResourceDescription,
    WorkloadTarget,
)

logger = logging.getLogger(__name__)

APPLICATION_KIND = "Application"
DIGEST_PATTERN = re.compile(r"@sha256:[a-f0-9]{64}\Z", re.IGNORECASE)

def has_digest(image: Optional[str]) -> bool:
    """True when the reference is pinned by a sha256 content digest."""
    return bool(DIGEST_PATTERN.search(image or ""))

def dedupe(images: List[Optional[str]]) -> List[str]:
    """Drop empty entries and duplicates, keeping first-occurrence order."""
    return list(dict.fromkeys(image for image in images if image))

def parse_live_state(raw: Any) -> Optional[Dict[str, Any]]:
    if not raw or not isinstance(raw, str):
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        logger.debug("Live state is not valid JSON, ignoring it")
        return None
    return data if isinstance(data, dict) else None

def _get(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data

def images_from_pod_spec(spec: Any) -> List[str]:
    if not isinstance(spec, dict):
        return []
    images = []
    for field in ("initContainers", "containers", "ephemeralContainers"):
        containers = spec.get(field)
        if not isinstance(containers, list):
            continue
        for container in containers:
            if isinstance(container, dict) and isinstance(container.get("image"), str):
                images.append(container["image"])
    return images

def pod_spec_for(live: Dict[str, Any]) -> Any:
    kind = live.get("kind")
    if kind == "Pod":
        return live.get("spec")
    if kind == "CronJob":
        return _get(live, "spec", "jobTemplate", "spec", "template", "spec")
    return _get(live, "spec", "template", "spec")

def images_from_workload(live: Optional[Dict[str, Any]]) -> List[str]:
    if not live:
        return []
    return images_from_pod_spec(pod_spec_for(live))

def images_from_application(live: Optional[Dict[str, Any]]) -> List[str]:
    images = _get(live, "status", "summary", "images")
    if isinstance(images, list):
        return [image for image in images if isinstance(image, str)]
    return []

def extract_images(
    resource: Optional[ResourceDescription],
    application: Optional[ApplicationDescription] = None,
) -> List[str]:
    """Collect the deduplicated image references a resource runs.

    Workloads are read from their live-state pod spec, an Application from
    its status summary. When the resource yields nothing the application's
    image list is used instead.
    """
    images: List[str] = []
    if resource is not None:
        live = parse_live_state(resource.live_state)
        if resource.kind == APPLICATION_KIND:
            images = images_from_application(live)
        else:
            images = images_from_workload(live)
    if not images and application is not None:
        images = images_from_application(application.model_dump())
    return dedupe(images)

def extract_targets(
    resource: Optional[ResourceDescription],
    application: Optional[ApplicationDescription] = None,
) -> List[WorkloadTarget]:
    """Workload targets to scan for vulnerabilities.

    An Application expands to its member resources of a workload kind, any
    other resource is its own single target.
    """
    if resource is None or not resource.kind:
        return []
    live = parse_live_state(resource.live_state)
    app_namespace = application.namespace if application is not None else None

    if resource.kind == APPLICATION_KIND:
        members = _get(application.model_dump(), "status", "resources") if application is not None else None
        if not members:
            members = _get(live, "status", "resources")
        if not isinstance(members, list):
            return []
        targets = []
        for item in members:
            if not isinstance(item, dict) or item.get("kind") not in WORKLOAD_KINDS:
                continue
            targets.append(WorkloadTarget(
                kind=item["kind"],
                name=item.get("name"),
                namespace=item.get("namespace") or app_namespace,
            ))
        return targets

    return [WorkloadTarget(
        kind=resource.kind,
        name=resource.name or _get(live, "metadata", "name"),
        namespace=resource.namespace or _get(live, "metadata", "namespace"),
    )]
