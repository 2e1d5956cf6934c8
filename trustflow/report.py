import os
import logging
from datetime import datetime
from trustflow.core.interfaces import RendererBase
from trustflow.core.models import InspectionResult, ImageVerification, VulnerabilityState
from trustflow.plugins.extractors.images import has_digest
from trustflow.plugins.verifiers.signature import verification_url

logger = logging.getLogger(__name__)

PASS = "PASS"
FAIL = "FAIL"
PENDING = "PENDING"

def status_label(loading: bool, ok: bool) -> str:
    if loading:
        return PENDING
    return PASS if ok else FAIL

def vulnerability_status(state: VulnerabilityState) -> str:
    return status_label(state.loading, state.passed)

def image_statuses(result: ImageVerification) -> tuple:
    """(signed, sbom) labels for one image."""
    return status_label(result.loading, result.signed), status_label(result.loading, result.sbom)

def is_violation(result: InspectionResult) -> bool:
    """Any settled check that did not pass."""
    if vulnerability_status(result.vulnerabilities) == FAIL:
        return True
    for image in result.images:
        verification = result.verifications.get(image)
        if verification is not None and FAIL in image_statuses(verification):
            return True
    return False

class MarkdownRenderer(RendererBase):
    def render(self, result: InspectionResult) -> str:
        lines = []
        title = f"{result.resource_kind or 'Resource'} {result.resource_name or ''}".strip()
        lines.append(f"# TrustFlow: {title}")
        lines.append(f"Generated at: {datetime.now().isoformat()}")
        lines.append("")

        # Vulnerabilities
        vulns = result.vulnerabilities
        s = vulns.summary
        lines.append(f"## Vulnerabilities ({result.scanner_name})")
        lines.append(f"- Vulns: {vulnerability_status(vulns)}")
        lines.append(f"- reports: {vulns.report_count}")
        lines.append(f"- C:{s.critical} H:{s.high} M:{s.medium} L:{s.low} U:{s.unknown}")
        if vulns.error:
            lines.append(f"- Error: {vulns.error}")
        lines.append("")

        # Images
        lines.append("## Images")
        if not result.images:
            lines.append("No images detected.")
        else:
            lines.append("| Image | Digest | Signed | SBOM | Provenance | Errors |")
            lines.append("|---|---|---|---|---|---|")
            for image in result.images:
                verification = result.verifications.get(image) or ImageVerification()
                signed, sbom = image_statuses(verification)
                digest = "digest pinned" if has_digest(image) else "digest missing"
                link = f"[provenance]({verification_url(result.base_url, image)})"
                errors = " \\| ".join(verification.errors)
                lines.append(f"| `{image}` | {digest} | {signed} | {sbom} | {link} | {errors} |")
        lines.append("")

        # Findings of the selected severity
        details = result.details
        if details.open and details.severity is not None:
            lines.append(f"## {details.severity.value} findings")
            if details.loading:
                lines.append("Loading...")
            elif not details.items:
                lines.append("No findings.")
            else:
                lines.append("| ID | Package | Installed | Fixed | Target | Description |")
                lines.append("|---|---|---|---|---|---|")
                for item in details.items:
                    desc = (item.description[:80] + '...') if item.description and len(item.description) > 80 else (item.description or "")
                    label = f"[{item.label}]({item.primary_link})" if item.primary_link else item.label
                    lines.append(f"| {label} | {item.package or 'N/A'} | {item.installed_version or 'N/A'} | "
                                 f"{item.fixed_version or 'N/A'} | {item.target or ''} | {desc} |")
            if details.error:
                lines.append(f"Error: {details.error}")
            lines.append("")

        return "\n".join(lines)

    def generate(self, result: InspectionResult, output_path: str = "trustflow.md") -> None:
        # Ensure directory exists
        dir_path = os.path.dirname(output_path)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)

        with open(output_path, 'w') as f:
            f.write(self.render(result))
        logger.debug(f"Wrote {output_path}")
