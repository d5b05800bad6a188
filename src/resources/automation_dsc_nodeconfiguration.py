"""
Automation DSC Node Configuration - Compiled DSC node configurations in an
Azure Automation account.

The embedded content is accepted by the create call but never returned by
reads, so it is declared write-only.
"""

import logging
from typing import Any, Dict, Tuple

from engine import derive_parent_key
from identifiers import ResourceId
from resources.base import ResourceKind, Snapshot
from schema import (
    Attribute,
    ResourceSchema,
    resource_group_name_attribute,
    string_attribute,
)

logger = logging.getLogger(__name__)


class AutomationDscNodeConfigurationKind(ResourceKind):
    """DSC node configuration; the PUT response is re-read for its ID."""

    read_after_write = True

    @property
    def name(self) -> str:
        return "azurerm_automation_dsc_nodeconfiguration"

    @property
    def api_version(self) -> str:
        return "2015-10-31"

    @property
    def provider(self) -> str:
        return "Microsoft.Automation"

    @property
    def id_collections(self) -> Tuple[str, ...]:
        return ("automationAccounts", "nodeConfigurations")

    @property
    def schema(self) -> ResourceSchema:
        return ResourceSchema(
            [
                string_attribute("name", required=True, force_new=True),
                string_attribute(
                    "automation_account_name", required=True, force_new=True
                ),
                resource_group_name_attribute(),
                string_attribute("content_embedded", required=True, write_only=True),
                Attribute(
                    name="configuration_name",
                    json_schema={"type": "string"},
                    computed=True,
                ),
            ]
        )

    def instance_names(self, declared: Dict[str, Any]) -> Tuple[str, ...]:
        return (declared["automation_account_name"], declared["name"])

    def expand(self, declared: Dict[str, Any]) -> Dict[str, Any]:
        name = declared["name"]
        # webserver.prod and webserver.local both belong to configuration webserver
        configuration_name = derive_parent_key(name)
        logger.info(
            f"Preparing DSC node configuration {name!r} "
            f"(configuration {configuration_name!r})"
        )
        return {
            "name": name,
            "properties": {
                "source": {
                    "type": "embeddedContent",
                    "value": declared["content_embedded"],
                },
                "configuration": {"name": configuration_name},
            },
        }

    def flatten(self, resource_id: ResourceId, snapshot: Snapshot) -> Dict[str, Any]:
        configuration = snapshot.properties.get("configuration") or {}
        return {
            "name": snapshot.name or resource_id.lookup("nodeConfigurations"),
            "resource_group_name": resource_id.resource_group,
            "automation_account_name": resource_id.lookup("automationAccounts"),
            "configuration_name": configuration.get("name"),
        }
