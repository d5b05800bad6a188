"""
Resource kinds.

Each kind declares its schema and how it maps onto ARM calls. Kinds are
looked up by name through the registry.
"""

from resources.base import ResourceKind, Snapshot
from resources.registry import (
    ResourceRegistry,
    get_registry,
    register_builtin_kinds,
    reset_registry,
)

__all__ = [
    "ResourceKind",
    "Snapshot",
    "ResourceRegistry",
    "get_registry",
    "register_builtin_kinds",
    "reset_registry",
]
