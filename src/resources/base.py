"""
Resource Kind Base - Abstract interface for reconcilable resource kinds.

A resource kind bundles three things: the attribute schema, the remote
accessor (get / create_or_update / delete against ARM), and the projections
between declared state and the remote representation. The engine drives every
kind through the same upsert / read / delete / import flow.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from identifiers import ResourceId
from operations import OperationHandle
from schema import ResourceSchema
from transport import ArmTransport

logger = logging.getLogger(__name__)


@dataclass
class Snapshot:
    """A point-in-time read of one remote object."""

    body: Dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> Optional[str]:
        return self.body.get("id")

    @property
    def name(self) -> Optional[str]:
        return self.body.get("name")

    @property
    def properties(self) -> Dict[str, Any]:
        return self.body.get("properties") or {}


class ResourceKind(ABC):
    """
    Abstract base class for resource kinds.

    Subclasses provide the schema, the identifier layout and the payload
    projections; the default accessor issues plain ARM GET/PUT/DELETE calls
    on the resource's own path.
    """

    # The remote object exists independently and must be removed on delete
    tracks_remote_object: bool = True

    # The mutation response does not carry the final identifier
    read_after_write: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique kind name (e.g. 'azurerm_dns_aaaa_record')."""
        pass

    @property
    @abstractmethod
    def api_version(self) -> str:
        """ARM api-version used for this kind's calls."""
        pass

    @property
    @abstractmethod
    def provider(self) -> str:
        """Provider namespace (e.g. 'Microsoft.Network')."""
        pass

    @property
    @abstractmethod
    def id_collections(self) -> Tuple[str, ...]:
        """Collections below the provider, in path order."""
        pass

    @property
    @abstractmethod
    def schema(self) -> ResourceSchema:
        """Attribute declarations."""
        pass

    @abstractmethod
    def instance_names(self, declared: Dict[str, Any]) -> Tuple[str, ...]:
        """Instance names for id_collections, taken from declared state."""
        pass

    @abstractmethod
    def expand(self, declared: Dict[str, Any]) -> Dict[str, Any]:
        """Build the mutation payload from declared state."""
        pass

    @abstractmethod
    def flatten(self, resource_id: ResourceId, snapshot: Snapshot) -> Dict[str, Any]:
        """Project a snapshot onto declared-state attributes."""
        pass

    def display_name(self, declared: Dict[str, Any]) -> str:
        return "/".join(self.instance_names(declared))

    def scope(self, declared: Dict[str, Any], subscription_id: str) -> ResourceId:
        """The identifier of the object the declared state describes."""
        return ResourceId.build(
            subscription_id,
            declared["resource_group_name"],
            self.provider,
            zip(self.id_collections, self.instance_names(declared)),
        )

    def scope_from_id(self, resource_id: ResourceId) -> ResourceId:
        """
        Narrow a decoded identifier to this kind's collections.

        Raises:
            IdentifierFieldMissing: If one of the kind's collections is absent.
        """
        return ResourceId.build(
            resource_id.subscription_id,
            resource_id.resource_group,
            self.provider,
            [(c, resource_id.lookup(c)) for c in self.id_collections],
        )

    def preconditions(
        self, declared: Dict[str, Any], subscription_id: str
    ) -> List[Tuple[str, ResourceId]]:
        """Sibling objects that must exist before mutating, as (label, id)."""
        return []

    # Remote accessor

    async def get(self, transport: ArmTransport, scope: ResourceId) -> Snapshot:
        """Read one object. Raises RemoteNotFound when it does not exist."""
        response = await transport.get(scope.to_string(), self.api_version)
        return Snapshot(body=response.body)

    async def create_or_update(
        self, transport: ArmTransport, scope: ResourceId, payload: Dict[str, Any]
    ) -> Union[Snapshot, OperationHandle]:
        """Issue the idempotent mutating call."""
        response = await transport.put(scope.to_string(), self.api_version, payload)
        handle = transport.operation_handle(response)
        if handle is not None:
            return handle
        return Snapshot(body=response.body)

    async def delete(
        self, transport: ArmTransport, scope: ResourceId
    ) -> Optional[OperationHandle]:
        """Delete one object. Raises RemoteNotFound when it does not exist."""
        response = await transport.delete(scope.to_string(), self.api_version)
        return transport.operation_handle(response)
