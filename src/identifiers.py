"""
Resource Identifiers - Decode and encode ARM resource IDs.

An ARM resource ID is a slash-delimited path whose segments alternate between
a collection name and an instance name, e.g.

    /subscriptions/S1/resourceGroups/RG1/providers/Microsoft.Web/sites/app1

Decoding produces a ResourceId; everything downstream works with that typed
value instead of re-parsing the string.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

from errors import IdentifierFieldMissing, MalformedIdentifier

logger = logging.getLogger(__name__)

SUBSCRIPTIONS = "subscriptions"
RESOURCE_GROUPS = "resourceGroups"
PROVIDERS = "providers"


@dataclass(frozen=True)
class ResourceId:
    """A decoded ARM resource identifier."""

    subscription_id: str
    resource_group: str
    provider: Optional[str] = None
    path: Dict[str, str] = field(default_factory=dict)

    def __hash__(self) -> int:
        return hash(
            (
                self.subscription_id,
                self.resource_group,
                self.provider,
                frozenset(self.path.items()),
            )
        )

    @classmethod
    def build(
        cls,
        subscription_id: str,
        resource_group: str,
        provider: Optional[str] = None,
        segments: Iterable[Tuple[str, str]] = (),
    ) -> "ResourceId":
        """
        Build an identifier from its parts, applying the same checks as decode.

        Args:
            subscription_id: Subscription scope.
            resource_group: Resource group name.
            provider: Provider namespace (e.g. 'Microsoft.Network').
            segments: Ordered (collection, instance) pairs below the provider.

        Returns:
            A ResourceId.

        Raises:
            MalformedIdentifier: If any part is empty or a collection repeats.
        """
        path: Dict[str, str] = {}
        for collection, name in segments:
            if not collection or not name:
                raise MalformedIdentifier(
                    f"{collection}/{name}", "collection and name must be non-empty"
                )
            if collection in path:
                raise MalformedIdentifier(
                    f"{collection}/{name}", f"collection {collection!r} repeated"
                )
            path[collection] = name

        if not subscription_id:
            raise MalformedIdentifier("", "no subscription ID")
        if not resource_group:
            raise MalformedIdentifier("", "no resource group name")
        if provider is not None and not provider:
            raise MalformedIdentifier("", "empty provider namespace")

        return cls(
            subscription_id=subscription_id,
            resource_group=resource_group,
            provider=provider,
            path=path,
        )

    def lookup(self, collection: str) -> str:
        """
        Return the instance name for a collection.

        Raises:
            IdentifierFieldMissing: If the collection is not in the path.
        """
        try:
            return self.path[collection]
        except KeyError:
            raise IdentifierFieldMissing(collection, self.to_string()) from None

    def to_string(self) -> str:
        """Encode back into the slash-delimited form."""
        parts = [SUBSCRIPTIONS, self.subscription_id, RESOURCE_GROUPS, self.resource_group]
        if self.provider is not None:
            parts.extend([PROVIDERS, self.provider])
        for collection, name in self.path.items():
            parts.extend([collection, name])
        return "/" + "/".join(parts)

    def __str__(self) -> str:
        return self.to_string()


def parse_resource_id(identifier: str) -> ResourceId:
    """
    Decode an ARM resource ID.

    The first 'subscriptions' segment is the subscription scope; a later one
    (as in Service Bus topic subscriptions) is an ordinary collection.
    'resourceGroups' is matched case-sensitively with a fallback to the
    lower-case spelling some APIs return. An extension resource repeats
    'providers'; the last provider names the resource.

    Args:
        identifier: The identifier string.

    Returns:
        The decoded ResourceId.

    Raises:
        MalformedIdentifier: On odd segment counts, empty segments, or a missing
            subscription or resource group.
    """
    if not isinstance(identifier, str) or not identifier.strip():
        raise MalformedIdentifier(str(identifier), "identifier is empty")

    path = identifier.strip().strip("/")
    components = path.split("/")

    if len(components) % 2 != 0:
        raise MalformedIdentifier(
            identifier, "the number of path segments is not divisible by 2"
        )

    subscription_id = ""
    component_map: Dict[str, str] = {}
    for index in range(0, len(components), 2):
        key = components[index]
        value = components[index + 1]

        if not key or not value:
            raise MalformedIdentifier(
                identifier, f"key/value cannot be empty (key={key!r}, value={value!r})"
            )

        if key == SUBSCRIPTIONS and not subscription_id:
            subscription_id = value
            continue

        # Extension resources nest a second provider; the innermost one wins
        if key == PROVIDERS:
            component_map[key] = value
            continue

        if key in component_map:
            raise MalformedIdentifier(identifier, f"collection {key!r} repeated")
        component_map[key] = value

    if not subscription_id:
        raise MalformedIdentifier(identifier, "no subscription ID found")

    if RESOURCE_GROUPS in component_map:
        resource_group = component_map.pop(RESOURCE_GROUPS)
    elif RESOURCE_GROUPS.lower() in component_map:
        resource_group = component_map.pop(RESOURCE_GROUPS.lower())
    else:
        raise MalformedIdentifier(identifier, "no resource group name found")

    # A resource group ID has no provider
    provider = component_map.pop(PROVIDERS, None)

    return ResourceId(
        subscription_id=subscription_id,
        resource_group=resource_group,
        provider=provider,
        path=component_map,
    )
