"""
App Service Active Slot - Which deployment slot is swapped into production.

This is an assertion about an existing App Service rather than an object of
its own: applying it swaps the named slot with production, reading it reports
the slot last swapped in, and deleting it has nothing remote to remove.
"""

import logging
from typing import Any, Dict, List, Tuple, Union

from identifiers import ResourceId
from operations import OperationHandle
from resources.base import ResourceKind, Snapshot
from schema import ResourceSchema, resource_group_name_attribute, string_attribute
from transport import ArmTransport

logger = logging.getLogger(__name__)


class AppServiceActiveSlotKind(ResourceKind):
    """Active slot of an App Service; identified by the App Service itself."""

    tracks_remote_object = False
    read_after_write = True

    @property
    def name(self) -> str:
        return "azurerm_app_service_active_slot"

    @property
    def api_version(self) -> str:
        return "2018-02-01"

    @property
    def provider(self) -> str:
        return "Microsoft.Web"

    @property
    def id_collections(self) -> Tuple[str, ...]:
        return ("sites",)

    @property
    def schema(self) -> ResourceSchema:
        return ResourceSchema(
            [
                resource_group_name_attribute(),
                string_attribute("app_service_name", required=True, force_new=True),
                string_attribute("app_service_slot_name", required=True),
            ]
        )

    def instance_names(self, declared: Dict[str, Any]) -> Tuple[str, ...]:
        return (declared["app_service_name"],)

    def display_name(self, declared: Dict[str, Any]) -> str:
        return f"{declared['app_service_name']}/{declared['app_service_slot_name']}"

    def slot_scope(self, declared: Dict[str, Any], subscription_id: str) -> ResourceId:
        return ResourceId.build(
            subscription_id,
            declared["resource_group_name"],
            self.provider,
            [
                ("sites", declared["app_service_name"]),
                ("slots", declared["app_service_slot_name"]),
            ],
        )

    def preconditions(
        self, declared: Dict[str, Any], subscription_id: str
    ) -> List[Tuple[str, ResourceId]]:
        app = declared["app_service_name"]
        slot = declared["app_service_slot_name"]
        group = declared["resource_group_name"]
        return [
            (
                f"App Service {app!r} (resource group {group!r})",
                self.scope(declared, subscription_id),
            ),
            (
                f"App Service Target Active Slot {app!r}/{slot!r} "
                f"(resource group {group!r})",
                self.slot_scope(declared, subscription_id),
            ),
        ]

    def expand(self, declared: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "targetSlot": declared["app_service_slot_name"],
            "preserveVnet": True,
        }

    def flatten(self, resource_id: ResourceId, snapshot: Snapshot) -> Dict[str, Any]:
        swap_status = snapshot.properties.get("slotSwapStatus") or {}
        return {
            "app_service_name": snapshot.name or resource_id.lookup("sites"),
            "resource_group_name": snapshot.properties.get(
                "resourceGroup", resource_id.resource_group
            ),
            "app_service_slot_name": swap_status.get("sourceSlotName"),
        }

    async def create_or_update(
        self, transport: ArmTransport, scope: ResourceId, payload: Dict[str, Any]
    ) -> Union[Snapshot, OperationHandle]:
        """Swap the target slot into production (a POST on the site)."""
        response = await transport.post(
            f"{scope.to_string()}/slotsswap", self.api_version, payload
        )
        handle = transport.operation_handle(response)
        if handle is not None:
            return handle
        return Snapshot(body=response.body)
