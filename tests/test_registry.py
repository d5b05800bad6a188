"""Unit tests for resources/registry.py - Resource kind registry."""

from unittest.mock import MagicMock, patch

import pytest

from resources.dns_aaaa_record import DnsAaaaRecordKind
from resources.registry import (
    ENTRY_POINT_GROUP,
    ResourceRegistry,
    get_registry,
    register_builtin_kinds,
    reset_registry,
)

BUILTIN_KINDS = [
    "azurerm_app_service_active_slot",
    "azurerm_automation_dsc_nodeconfiguration",
    "azurerm_dns_aaaa_record",
]


@pytest.fixture(autouse=True)
def clean_registry():
    reset_registry()
    yield
    reset_registry()


class TestResourceRegistry:
    """Tests for ResourceRegistry."""

    def test_register_and_get(self):
        registry = ResourceRegistry()
        registry.register(DnsAaaaRecordKind)

        kind = registry.get("azurerm_dns_aaaa_record")

        assert isinstance(kind, DnsAaaaRecordKind)
        assert registry.get("azurerm_dns_aaaa_record") is kind
        assert registry.has("azurerm_dns_aaaa_record") is True

    def test_unknown_kind(self):
        registry = ResourceRegistry()
        registry.register(DnsAaaaRecordKind)

        with pytest.raises(ValueError) as exc_info:
            registry.get("azurerm_nothing")

        assert "Available kinds: azurerm_dns_aaaa_record" in str(exc_info.value)

    def test_overwrite_warns(self, caplog):
        registry = ResourceRegistry()
        registry.register(DnsAaaaRecordKind)

        registry.register(DnsAaaaRecordKind)

        assert "Overwriting existing resource kind" in caplog.text
        assert registry.list_kinds() == ["azurerm_dns_aaaa_record"]


class TestGlobalRegistry:
    """Tests for the module-level registry helpers."""

    def test_singleton(self):
        assert get_registry() is get_registry()

    def test_reset(self):
        first = get_registry()
        reset_registry()
        assert get_registry() is not first

    def test_register_builtin_kinds(self):
        registry = register_builtin_kinds()

        assert registry is get_registry()
        assert registry.list_kinds() == BUILTIN_KINDS

    def test_entry_point_kinds_loaded(self):
        entry_point = MagicMock()
        entry_point.load.return_value = DnsAaaaRecordKind

        with patch("resources.registry.entry_points", return_value=[entry_point]) as eps:
            register_builtin_kinds(ResourceRegistry())

        eps.assert_called_once_with(group=ENTRY_POINT_GROUP)
        entry_point.load.assert_called_once()

    def test_broken_entry_point_skipped(self, caplog):
        entry_point = MagicMock()
        entry_point.name = "broken"
        entry_point.load.side_effect = ImportError("no module")

        with patch("resources.registry.entry_points", return_value=[entry_point]):
            registry = register_builtin_kinds(ResourceRegistry())

        assert registry.list_kinds() == BUILTIN_KINDS
        assert "Could not load resource kind broken" in caplog.text
