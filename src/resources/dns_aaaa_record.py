"""
DNS AAAA Record - Record sets of IPv6 addresses in an Azure DNS zone.
"""

import logging
from typing import Any, Dict, List, Tuple

from identifiers import ResourceId
from resources.base import ResourceKind, Snapshot
from schema import (
    Attribute,
    ResourceSchema,
    resource_group_name_attribute,
    string_attribute,
    tags_attribute,
)
from tags import expand_tags, flatten_tags

logger = logging.getLogger(__name__)


def expand_aaaa_records(records: List[str]) -> List[Dict[str, str]]:
    return [{"ipv6Address": address} for address in sorted(set(records))]


def flatten_aaaa_records(records: List[Dict[str, Any]]) -> List[str]:
    return sorted(
        record["ipv6Address"] for record in records or [] if record.get("ipv6Address")
    )


class DnsAaaaRecordKind(ResourceKind):
    """DNS AAAA record set; the PUT response carries the final object."""

    @property
    def name(self) -> str:
        return "azurerm_dns_aaaa_record"

    @property
    def api_version(self) -> str:
        return "2018-03-01-preview"

    @property
    def provider(self) -> str:
        return "Microsoft.Network"

    @property
    def id_collections(self) -> Tuple[str, ...]:
        return ("dnszones", "AAAA")

    @property
    def schema(self) -> ResourceSchema:
        return ResourceSchema(
            [
                string_attribute("name", required=True, force_new=True),
                resource_group_name_attribute(),
                string_attribute("zone_name", required=True),
                Attribute(
                    name="records",
                    json_schema={
                        "type": "array",
                        "minItems": 1,
                        "uniqueItems": True,
                        "items": {"type": "string", "format": "ipv6"},
                    },
                    required=True,
                    unordered=True,
                ),
                Attribute(
                    name="ttl",
                    json_schema={"type": "integer", "minimum": 0},
                    required=True,
                ),
                tags_attribute(),
            ]
        )

    def instance_names(self, declared: Dict[str, Any]) -> Tuple[str, ...]:
        return (declared["zone_name"], declared["name"])

    def expand(self, declared: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "name": declared["name"],
            "properties": {
                "metadata": expand_tags(declared.get("tags")),
                "TTL": declared["ttl"],
                "AAAARecords": expand_aaaa_records(declared["records"]),
            },
        }

    def flatten(self, resource_id: ResourceId, snapshot: Snapshot) -> Dict[str, Any]:
        properties = snapshot.properties
        return {
            "name": resource_id.lookup("AAAA"),
            "resource_group_name": resource_id.resource_group,
            "zone_name": resource_id.lookup("dnszones"),
            "ttl": properties.get("TTL"),
            "records": flatten_aaaa_records(properties.get("AAAARecords")),
            "tags": flatten_tags(properties.get("metadata")),
        }
