"""
Resource Kind Registry - Discovery and registration of resource kinds.

Built-in kinds ship with the package; additional kinds are discovered via
the 'armconverge.resources' entry point group.
"""

import logging
from importlib.metadata import entry_points
from typing import Dict, List, Optional, Type

from resources.base import ResourceKind

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "armconverge.resources"


class ResourceRegistry:
    """
    Central registry for resource kinds.

    Kinds are registered as classes and instantiated lazily; instances hold
    no per-call state and are shared.
    """

    def __init__(self):
        self._kinds: Dict[str, Type[ResourceKind]] = {}
        self._instances: Dict[str, ResourceKind] = {}

    def register(self, kind_class: Type[ResourceKind]) -> None:
        """
        Register a resource kind class.

        Args:
            kind_class: The ResourceKind subclass to register
        """
        instance = kind_class()
        name = instance.name

        if name in self._kinds:
            logger.warning(f"Overwriting existing resource kind: {name}")

        self._kinds[name] = kind_class
        self._instances[name] = instance
        logger.info(f"Registered resource kind: {name} (api-version {instance.api_version})")

    def get(self, name: str) -> ResourceKind:
        """
        Get the resource kind instance for a name.

        Raises:
            ValueError: If the kind is not registered
        """
        if name not in self._kinds:
            available = ", ".join(sorted(self._kinds)) or "none"
            raise ValueError(
                f"Unknown resource kind: {name}. Available kinds: {available}"
            )
        return self._instances[name]

    def has(self, name: str) -> bool:
        return name in self._kinds

    def list_kinds(self) -> List[str]:
        return sorted(self._kinds)


_registry: Optional[ResourceRegistry] = None


def get_registry() -> ResourceRegistry:
    """Get the global resource kind registry singleton."""
    global _registry
    if _registry is None:
        _registry = ResourceRegistry()
    return _registry


def reset_registry() -> None:
    """Reset the global registry (mainly for testing)."""
    global _registry
    _registry = None


def register_builtin_kinds(registry: Optional[ResourceRegistry] = None) -> ResourceRegistry:
    """
    Register the built-in resource kinds and any installed via entry points.

    Args:
        registry: Registry to populate; defaults to the global one.

    Returns:
        The populated registry.
    """
    registry = registry or get_registry()

    from resources.app_service_active_slot import AppServiceActiveSlotKind
    from resources.automation_dsc_nodeconfiguration import (
        AutomationDscNodeConfigurationKind,
    )
    from resources.dns_aaaa_record import DnsAaaaRecordKind

    for kind_class in (
        AppServiceActiveSlotKind,
        AutomationDscNodeConfigurationKind,
        DnsAaaaRecordKind,
    ):
        registry.register(kind_class)

    for ep in entry_points(group=ENTRY_POINT_GROUP):
        try:
            registry.register(ep.load())
        except Exception as e:
            logger.warning(f"Could not load resource kind {ep.name}: {e}")

    return registry
