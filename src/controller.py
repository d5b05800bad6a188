"""
Controller - Resource lifecycle orchestration on top of the engine.

The controller owns the persisted handles: it decides whether a declared
resource needs creating, updating or replacing, runs the engine, and keeps
the handle store in step with what the engine reports. Retry with backoff is
its policy; the engine itself never retries.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import engine
from config import ControllerConfig
from engine import DriftResult, ReconcileContext
from errors import RemoteNotFound, SchemaValidationError, TransportError
from resources.registry import ResourceRegistry, get_registry
from state import HandleStore, ResourceRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ApplyAction(Enum):
    """What apply did for one resource."""

    CREATED = "created"
    UPDATED = "updated"
    REPLACED = "replaced"
    UNCHANGED = "unchanged"


@dataclass
class ApplyResult:
    """Outcome of applying one declared resource."""

    address: str
    kind: str
    action: ApplyAction
    identifier: str
    state: Dict[str, Any] = field(default_factory=dict)
    duration_seconds: float = 0.0


@dataclass
class ManifestEntry:
    """One declared resource: its address, kind and attributes."""

    address: str
    kind: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManifestEntry":
        missing = [key for key in ("address", "kind") if not data.get(key)]
        if missing:
            raise ValueError(f"Manifest entry must contain fields: {', '.join(missing)}")
        return cls(
            address=data["address"],
            kind=data["kind"],
            attributes=data.get("attributes") or {},
        )


def is_retryable(error: Exception) -> bool:
    """
    Connection failures, throttling and server errors are worth retrying,
    unless they happened after the mutating call was accepted.
    """
    if not isinstance(error, TransportError) or isinstance(error, RemoteNotFound):
        return False
    if error.mutation_issued:
        return False
    return error.status is None or error.status == 429 or error.status >= 500


class Controller:
    """
    Applies, refreshes, destroys and imports resources by address.

    Calls for the same address are serialized; different addresses run
    concurrently up to max_concurrent_reconciles.
    """

    def __init__(
        self,
        store: HandleStore,
        ctx: ReconcileContext,
        registry: Optional[ResourceRegistry] = None,
        config: Optional[ControllerConfig] = None,
    ):
        self.store = store
        self.ctx = ctx
        self.registry = registry or get_registry()
        self.config = config or ControllerConfig()
        self.semaphore = asyncio.Semaphore(self.config.max_concurrent_reconciles)
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, address: str) -> asyncio.Lock:
        if address not in self._locks:
            self._locks[address] = asyncio.Lock()
        return self._locks[address]

    def calculate_backoff(self, attempt: int) -> float:
        """Delay before retry number attempt (0-based), with ±jitter."""
        delay = min(
            self.config.backoff_base_delay * (2 ** min(attempt, 10)),
            self.config.backoff_max_delay,
        )
        jitter = (random.random() * 2 - 1) * self.config.backoff_jitter_factor
        return max(delay * (1 + jitter), 0.0)

    async def _with_retries(
        self, description: str, call: Callable[[], Awaitable[T]]
    ) -> T:
        attempt = 0
        while True:
            try:
                return await call()
            except TransportError as e:
                if not is_retryable(e) or attempt >= self.config.max_retries:
                    raise
                delay = self.calculate_backoff(attempt)
                attempt += 1
                logger.warning(
                    f"{description} failed ({e}); retry {attempt}/"
                    f"{self.config.max_retries} in {delay:.1f}s"
                )
                await asyncio.sleep(delay)

    def _validate(self, kind_name: str, attributes: Dict[str, Any]) -> None:
        kind = self.registry.get(kind_name)
        is_valid, error = kind.schema.validate(attributes)
        if not is_valid:
            raise SchemaValidationError(kind_name, error)

    async def apply(
        self, address: str, kind_name: str, attributes: Dict[str, Any]
    ) -> ApplyResult:
        """
        Converge one declared resource.

        Creates it when no handle exists (or the remote object is gone),
        replaces it when a force-new attribute changed, updates it when the
        declaration or the remote state differs, and otherwise leaves it alone.
        """
        self._validate(kind_name, attributes)
        kind = self.registry.get(kind_name)

        async with self.semaphore, self._lock_for(address):
            start_time = time.monotonic()
            record = await self.store.get(address)
            action = ApplyAction.CREATED

            if record is not None and record.kind != kind_name:
                raise ValueError(
                    f"{address} is tracked as {record.kind}, not {kind_name}; "
                    f"destroy it before changing its kind"
                )

            if record is not None:
                drift = await self._with_retries(
                    f"Read {address}",
                    lambda: engine.read(kind, record.identifier, self.ctx, record.attributes),
                )
                changed_force_new = kind.schema.changed_force_new(
                    record.attributes, attributes
                )

                if not drift.exists:
                    logger.info(f"{address} no longer exists remotely; recreating")
                    await self.store.remove(address)
                elif changed_force_new:
                    logger.info(
                        f"{address} must be replaced "
                        f"(changed: {', '.join(changed_force_new)})"
                    )
                    await self._with_retries(
                        f"Delete {address}",
                        lambda: engine.delete(kind, record.identifier, self.ctx),
                    )
                    await self.store.remove(address)
                    action = ApplyAction.REPLACED
                elif record.attributes == attributes and not drift.has_drift:
                    logger.info(f"No changes needed for {address}")
                    return ApplyResult(
                        address=address,
                        kind=kind_name,
                        action=ApplyAction.UNCHANGED,
                        identifier=record.identifier,
                        state=drift.state,
                        duration_seconds=time.monotonic() - start_time,
                    )
                else:
                    action = ApplyAction.UPDATED

            result = await self._with_retries(
                f"Upsert {address}", lambda: engine.upsert(kind, attributes, self.ctx)
            )
            await self.store.put(
                ResourceRecord(
                    address=address,
                    kind=kind_name,
                    identifier=result.identifier,
                    attributes=dict(attributes),
                )
            )

            drift = await self._with_retries(
                f"Read {address}",
                lambda: engine.read(kind, result.identifier, self.ctx, attributes),
            )
            duration_seconds = time.monotonic() - start_time
            logger.info(
                f"{address} {action.value} as {result.identifier} "
                f"in {duration_seconds:.1f}s"
            )
            return ApplyResult(
                address=address,
                kind=kind_name,
                action=action,
                identifier=result.identifier,
                state=drift.state,
                duration_seconds=duration_seconds,
            )

    async def apply_all(self, entries: List[ManifestEntry]) -> List[Any]:
        """
        Apply several resources concurrently.

        Returns:
            One ApplyResult or exception per entry, in input order.
        """
        tasks = [self.apply(e.address, e.kind, e.attributes) for e in entries]
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for entry, result in zip(entries, results):
            if isinstance(result, Exception):
                logger.error(f"Failed to apply {entry.address}: {result}")
        return results

    async def refresh(self, address: str) -> DriftResult:
        """
        Re-read a tracked resource.

        An absent remote object clears the persisted handle.

        Raises:
            KeyError: If the address is not tracked.
        """
        async with self.semaphore, self._lock_for(address):
            record = await self._require(address)
            kind = self.registry.get(record.kind)
            drift = await self._with_retries(
                f"Read {address}",
                lambda: engine.read(kind, record.identifier, self.ctx, record.attributes),
            )
            if not drift.exists:
                await self.store.remove(address)
                logger.info(f"Removed {address} from state: deleted out-of-band")
            return drift

    async def destroy(self, address: str) -> None:
        """
        Delete a tracked resource and drop its handle.

        Raises:
            KeyError: If the address is not tracked.
        """
        async with self.semaphore, self._lock_for(address):
            record = await self._require(address)
            kind = self.registry.get(record.kind)
            await self._with_retries(
                f"Delete {address}",
                lambda: engine.delete(kind, record.identifier, self.ctx),
            )
            await self.store.remove(address)
            logger.info(f"Destroyed {address}")

    async def import_resource(
        self, address: str, kind_name: str, identifier: str
    ) -> engine.ImportResult:
        """
        Start tracking an existing remote object under address.

        Raises:
            ValueError: If the address is already tracked.
        """
        kind = self.registry.get(kind_name)
        async with self.semaphore, self._lock_for(address):
            if await self.store.get(address) is not None:
                raise ValueError(f"{address} is already tracked; destroy or forget it first")

            result = await self._with_retries(
                f"Import {address}",
                lambda: engine.import_resource(kind, identifier, self.ctx),
            )
            await self.store.put(
                ResourceRecord(
                    address=address,
                    kind=kind_name,
                    identifier=result.identifier,
                    attributes=result.state,
                )
            )
            logger.info(f"Imported {identifier} as {address}")
            return result

    async def _require(self, address: str) -> ResourceRecord:
        record = await self.store.get(address)
        if record is None:
            raise KeyError(f"{address} is not tracked")
        return record
