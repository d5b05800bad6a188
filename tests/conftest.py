"""Pytest configuration and fixtures."""

import copy
from typing import Any, Dict, List, Optional, Tuple

import pytest

from engine import ReconcileContext
from errors import RemoteNotFound, TransportError
from operations import OperationState, OperationStatus, OperationWaiter
from resources.app_service_active_slot import AppServiceActiveSlotKind
from resources.automation_dsc_nodeconfiguration import (
    AutomationDscNodeConfigurationKind,
)
from resources.dns_aaaa_record import DnsAaaaRecordKind
from resources.registry import ResourceRegistry
from transport import ArmTransport, TransportResponse

SUBSCRIPTION = "00000000-0000-0000-0000-000000000001"


class FakeArm:
    """
    In-memory stand-in for ARM.

    Objects are stored by resource path. Paths listed in async_paths answer
    mutations with an Azure-AsyncOperation handle; queued poll_states are
    consumed by poll() (defaulting to Succeeded); queued poll_failures are
    raised by poll() first.
    """

    operation_handle = staticmethod(ArmTransport.operation_handle)

    def __init__(self):
        self.objects: Dict[str, Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str]] = []
        self.async_paths: set = set()
        self.poll_states: List[str] = []
        self.poll_count = 0
        self.omit_id = False
        self.failures: List[TransportError] = []
        self.poll_failures: List[TransportError] = []

    def add(self, path: str, properties: Optional[Dict[str, Any]] = None, **extra):
        self.objects[path] = {
            "id": path,
            "name": path.rsplit("/", 1)[-1],
            "properties": properties or {},
            **extra,
        }

    @property
    def mutating_calls(self) -> List[Tuple[str, str]]:
        return [c for c in self.calls if c[0] in ("PUT", "POST", "DELETE")]

    def _record(self, method: str, path: str) -> None:
        self.calls.append((method, path))
        if self.failures:
            raise self.failures.pop(0)

    def _accepted(self, path: str) -> TransportResponse:
        return TransportResponse(
            status=202,
            headers={"Azure-AsyncOperation": f"https://status.invalid{path}"},
        )

    async def get(self, path: str, api_version: str) -> TransportResponse:
        self._record("GET", path)
        if path not in self.objects:
            raise RemoteNotFound(path)
        body = copy.deepcopy(self.objects[path])
        if self.omit_id:
            body.pop("id", None)
        return TransportResponse(status=200, body=body)

    async def put(self, path: str, api_version: str, body: Dict[str, Any]):
        self._record("PUT", path)
        self.add(path, copy.deepcopy(body.get("properties", {})))
        if body.get("name"):
            self.objects[path]["name"] = body["name"]
        if path in self.async_paths:
            return self._accepted(path)
        response = copy.deepcopy(self.objects[path])
        if self.omit_id:
            response.pop("id", None)
        return TransportResponse(status=200, body=response)

    async def post(self, path: str, api_version: str, body=None):
        self._record("POST", path)
        site, action = path.rsplit("/", 1)
        if action == "slotsswap":
            self.objects[site]["properties"]["slotSwapStatus"] = {
                "sourceSlotName": body["targetSlot"]
            }
        if site in self.async_paths:
            return self._accepted(site)
        return TransportResponse(status=200)

    async def delete(self, path: str, api_version: str) -> TransportResponse:
        self._record("DELETE", path)
        if path not in self.objects:
            raise RemoteNotFound(path)
        del self.objects[path]
        if path in self.async_paths:
            return self._accepted(path)
        return TransportResponse(status=200)

    async def poll(self, handle) -> OperationStatus:
        self.poll_count += 1
        if self.poll_failures:
            raise self.poll_failures.pop(0)
        state = self.poll_states.pop(0) if self.poll_states else "Succeeded"
        return OperationStatus(state=OperationState.from_remote(state))


@pytest.fixture
def fake_arm():
    return FakeArm()


@pytest.fixture
def ctx(fake_arm):
    return ReconcileContext(
        transport=fake_arm,
        subscription_id=SUBSCRIPTION,
        waiter=OperationWaiter(poll_interval=0, timeout=5),
    )


@pytest.fixture
def registry():
    registry = ResourceRegistry()
    registry.register(AppServiceActiveSlotKind)
    registry.register(AutomationDscNodeConfigurationKind)
    registry.register(DnsAaaaRecordKind)
    return registry


@pytest.fixture
def dns_kind():
    return DnsAaaaRecordKind()


@pytest.fixture
def dsc_kind():
    return AutomationDscNodeConfigurationKind()


@pytest.fixture
def slot_kind():
    return AppServiceActiveSlotKind()


@pytest.fixture
def dns_declared():
    return {
        "name": "www",
        "resource_group_name": "rg-dns",
        "zone_name": "example.com",
        "ttl": 300,
        "records": ["2001:db8::2", "2001:db8::1"],
        "tags": {"env": "prod"},
    }


@pytest.fixture
def dns_path():
    return (
        f"/subscriptions/{SUBSCRIPTION}/resourceGroups/rg-dns/providers/"
        "Microsoft.Network/dnszones/example.com/AAAA/www"
    )


@pytest.fixture
def dsc_declared():
    return {
        "name": "webserver.prod",
        "automation_account_name": "automation1",
        "resource_group_name": "rg-auto",
        "content_embedded": "instance of MSFT_FileDirectoryConfiguration {};",
    }


@pytest.fixture
def dsc_path():
    return (
        f"/subscriptions/{SUBSCRIPTION}/resourceGroups/rg-auto/providers/"
        "Microsoft.Automation/automationAccounts/automation1/"
        "nodeConfigurations/webserver.prod"
    )


@pytest.fixture
def slot_declared():
    return {
        "resource_group_name": "rg-web",
        "app_service_name": "app1",
        "app_service_slot_name": "staging",
    }


@pytest.fixture
def site_path():
    return (
        f"/subscriptions/{SUBSCRIPTION}/resourceGroups/rg-web/providers/"
        "Microsoft.Web/sites/app1"
    )
