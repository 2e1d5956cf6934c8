"""Extension registry mapping resource kinds to panel factories."""
import logging
from typing import Callable, Dict, List, Tuple
from trustflow.panel import TrustFlowPanel

logger = logging.getLogger(__name__)

EXTENSION_TITLE = "TrustFlow"


class ExtensionRegistry:
    """Registry of the resource kinds the panel is shown for."""

    def __init__(self):
        self._handlers: Dict[Tuple[str, str], Tuple[str, Callable[..., TrustFlowPanel]]] = {}

    def register(self, group: str, kind: str, title: str = EXTENSION_TITLE,
                 factory: Callable[..., TrustFlowPanel] = TrustFlowPanel) -> None:
        """Register a panel factory as the handler for one group/kind.

        Args:
            group: API group of the resource (e.g. 'apps')
            kind: Resource kind (e.g. 'Deployment')
            title: Tab title the host shows
            factory: Callable building a panel for one inspected resource
        """
        logger.debug(f"Registering {title} for {group}/{kind}")
        self._handlers[(group, kind)] = (title, factory)

    def handler_for(self, group: str, kind: str) -> Callable[..., TrustFlowPanel]:
        """Get the panel factory registered for a group/kind.

        Raises:
            ValueError: If nothing is registered for it
        """
        key = (group or "", kind or "")
        if key not in self._handlers:
            available = ", ".join(f"{g}/{k}" for g, k in self._handlers)
            raise ValueError(f"No extension registered for {group}/{kind}. Available: {available}")
        return self._handlers[key][1]

    def title_for(self, group: str, kind: str) -> str:
        return self._handlers[(group, kind)][0]

    def registered_kinds(self) -> List[str]:
        return [f"{group}/{kind}" for group, kind in self._handlers]


def default_registry() -> ExtensionRegistry:
    registry = ExtensionRegistry()
    registry.register("apps", "Deployment")
    registry.register("argoproj.io", "Application")
    return registry
