"""Unit tests for the built-in resource kinds."""

import pytest

from errors import IdentifierFieldMissing
from identifiers import parse_resource_id
from resources.base import Snapshot
from resources.dns_aaaa_record import expand_aaaa_records, flatten_aaaa_records

SUB = "s1"


class TestSnapshot:
    """Tests for Snapshot."""

    def test_accessors(self):
        snapshot = Snapshot({"id": "/x", "name": "x", "properties": {"a": 1}})
        assert snapshot.id == "/x"
        assert snapshot.name == "x"
        assert snapshot.properties == {"a": 1}

    def test_empty(self):
        snapshot = Snapshot({"properties": None})
        assert snapshot.id is None
        assert snapshot.properties == {}


class TestDnsAaaaRecordKind:
    """Tests for DnsAaaaRecordKind."""

    def test_scope(self, dns_kind, dns_declared):
        scope = dns_kind.scope(dns_declared, SUB)

        assert scope.to_string() == (
            "/subscriptions/s1/resourceGroups/rg-dns/providers/Microsoft.Network/"
            "dnszones/example.com/AAAA/www"
        )
        assert dns_kind.display_name(dns_declared) == "example.com/www"

    def test_expand(self, dns_kind, dns_declared):
        payload = dns_kind.expand(dns_declared)

        assert payload == {
            "name": "www",
            "properties": {
                "metadata": {"env": "prod"},
                "TTL": 300,
                "AAAARecords": [
                    {"ipv6Address": "2001:db8::1"},
                    {"ipv6Address": "2001:db8::2"},
                ],
            },
        }

    def test_flatten_without_metadata(self, dns_kind, dns_path):
        snapshot = Snapshot(
            {"id": dns_path, "properties": {"TTL": 60, "AAAARecords": None}}
        )

        state = dns_kind.flatten(parse_resource_id(dns_path), snapshot)

        assert state["ttl"] == 60
        assert state["records"] == []
        assert state["tags"] == {}

    def test_record_helpers(self):
        assert expand_aaaa_records(["b", "a", "a"]) == [
            {"ipv6Address": "a"},
            {"ipv6Address": "b"},
        ]
        assert flatten_aaaa_records([{"ipv6Address": "b"}, {}, {"ipv6Address": "a"}]) == [
            "a",
            "b",
        ]

    def test_schema_validates_declared(self, dns_kind, dns_declared):
        assert dns_kind.schema.validate(dns_declared) == (True, None)

    def test_schema_rejects_ipv4(self, dns_kind, dns_declared):
        is_valid, error = dns_kind.schema.validate(
            dict(dns_declared, records=["10.0.0.1"])
        )
        assert is_valid is False
        assert "records.0" in error


class TestAutomationDscNodeConfigurationKind:
    """Tests for AutomationDscNodeConfigurationKind."""

    def test_expand(self, dsc_kind, dsc_declared):
        payload = dsc_kind.expand(dsc_declared)

        assert payload["name"] == "webserver.prod"
        assert payload["properties"]["configuration"] == {"name": "webserver"}
        assert payload["properties"]["source"] == {
            "type": "embeddedContent",
            "value": dsc_declared["content_embedded"],
        }

    def test_write_only_and_computed(self, dsc_kind):
        assert dsc_kind.schema.write_only == ["content_embedded"]
        assert dsc_kind.schema.computed == ["configuration_name"]
        assert dsc_kind.read_after_write is True

    def test_flatten_falls_back_to_identifier_name(self, dsc_kind, dsc_path):
        state = dsc_kind.flatten(parse_resource_id(dsc_path), Snapshot({"id": dsc_path}))

        assert state["name"] == "webserver.prod"
        assert state["configuration_name"] is None

    def test_scope_from_id_requires_collections(self, dsc_kind, dns_path):
        with pytest.raises(IdentifierFieldMissing):
            dsc_kind.scope_from_id(parse_resource_id(dns_path))


class TestAppServiceActiveSlotKind:
    """Tests for AppServiceActiveSlotKind."""

    def test_preconditions_in_order(self, slot_kind, slot_declared):
        preconditions = slot_kind.preconditions(slot_declared, SUB)

        labels = [label for label, _ in preconditions]
        paths = [reference.to_string() for _, reference in preconditions]
        assert labels[0].startswith("App Service 'app1'")
        assert labels[1].startswith("App Service Target Active Slot 'app1'/'staging'")
        assert paths[1] == paths[0] + "/slots/staging"

    def test_expand(self, slot_kind, slot_declared):
        assert slot_kind.expand(slot_declared) == {
            "targetSlot": "staging",
            "preserveVnet": True,
        }

    def test_no_remote_object(self, slot_kind):
        assert slot_kind.tracks_remote_object is False

    def test_flatten_without_swap(self, slot_kind, site_path):
        state = slot_kind.flatten(
            parse_resource_id(site_path), Snapshot({"id": site_path, "properties": {}})
        )

        assert state == {
            "app_service_name": "app1",
            "resource_group_name": "rg-web",
            "app_service_slot_name": None,
        }

    def test_scope_from_slot_identifier(self, slot_kind, site_path):
        scope = slot_kind.scope_from_id(parse_resource_id(f"{site_path}/slots/staging"))

        assert scope.to_string() == site_path
