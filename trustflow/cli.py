import argparse
import asyncio
import json
import logging
import sys
from typing import Optional
from trustflow.core.config import TrustFlowConfig
from trustflow.core.models import ApplicationDescription, ResourceDescription, Severity
from trustflow.plugins.hosts.registry import default_registry
from trustflow.report import MarkdownRenderer, is_violation

logger = logging.getLogger("trustflow")

def load_json(path: str) -> dict:
    with open(path, 'r') as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a JSON object")
    return data

def load_resource(path: str, kind: Optional[str], name: Optional[str],
                  namespace: Optional[str]) -> ResourceDescription:
    """Read a resource description, or a bare manifest used as its live state."""
    data = load_json(path)
    if "liveState" in data or "live_state" in data:
        resource = ResourceDescription.model_validate(data)
    else:
        metadata = data.get("metadata") or {}
        api_version = data.get("apiVersion") or ""
        resource = ResourceDescription(
            kind=data.get("kind"),
            name=metadata.get("name"),
            namespace=metadata.get("namespace"),
            group=api_version.split("/")[0] if "/" in api_version else "",
            live_state=json.dumps(data),
        )
    overrides = {k: v for k, v in {"kind": kind, "name": name, "namespace": namespace}.items() if v}
    return resource.model_copy(update=overrides) if overrides else resource

async def run_inspection(args, config: TrustFlowConfig):
    resource = load_resource(args.resource, args.kind, args.name, args.namespace)
    application = ApplicationDescription.model_validate(load_json(args.application)) if args.application else None

    registry = default_registry()
    try:
        factory = registry.handler_for(resource.group or "", resource.kind or "")
    except ValueError:
        # Any workload kind can still be inspected outside the Argo CD UI
        logger.debug(f"{resource.group}/{resource.kind} is not a registered extension kind")
        factory = registry.handler_for("apps", "Deployment")

    panel = factory(config)
    await panel.update(resource, application)
    if args.severity:
        await panel.select_severity(Severity.parse(args.severity))
    return panel.result()

def main():
    parser = argparse.ArgumentParser(description="TrustFlow supply-chain inspection CLI")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Inspect Command
    inspect_parser = subparsers.add_parser("inspect", help="Inspect a workload or application")
    inspect_parser.add_argument("--resource", required=True, help="Path to a resource description or manifest (JSON)")
    inspect_parser.add_argument("--application", help="Path to the owning Argo CD Application (JSON)")
    inspect_parser.add_argument("--kind", help="Override the resource kind")
    inspect_parser.add_argument("--name", help="Override the resource name")
    inspect_parser.add_argument("--namespace", help="Override the resource namespace")
    inspect_parser.add_argument("--base-url", help="Backend base URL. Can also use TRUSTFLOW_BASE_URL env var.")
    inspect_parser.add_argument("--server", help="Argo CD server for a relative base URL. Can also use ARGOCD_SERVER env var.")
    inspect_parser.add_argument("--scanner-name", help="Display name of the vulnerability scanner")
    inspect_parser.add_argument("--severity", choices=[s.value.lower() for s in Severity], help="Also list findings of this severity")
    inspect_parser.add_argument("--format", choices=["md", "json"], default="md", help="Output format")
    inspect_parser.add_argument("--output", help="Write the report to this path instead of stdout")
    inspect_parser.add_argument("--fail-on-violation", action="store_true", help="Exit 2 when any check fails")
    inspect_parser.add_argument("--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()

    if args.command != "inspect":
        parser.print_help()
        return

    # Setup logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )

    config = TrustFlowConfig.from_env(
        base_url=args.base_url,
        server=args.server,
        scanner_name=args.scanner_name,
    )
    logger.info(f"Inspecting {args.resource} against {config.base_url}")

    try:
        result = asyncio.run(run_inspection(args, config))
    except (OSError, ValueError) as e:
        logger.error(f"Cannot read input: {e}")
        sys.exit(1)

    if args.format == "md" and args.output:
        MarkdownRenderer().generate(result, args.output)
        logger.info(f"Markdown report ready: {args.output}")
    elif args.format == "md":
        print(MarkdownRenderer().render(result))
    elif args.output:
        with open(args.output, 'w') as f:
            f.write(result.model_dump_json(indent=2, by_alias=True))
        logger.info(f"JSON report ready: {args.output}")
    else:
        print(result.model_dump_json(indent=2, by_alias=True))

    if args.fail_on_violation and is_violation(result):
        logger.warning("Supply-chain checks failed.")
        sys.exit(2)

if __name__ == "__main__":
    main()
