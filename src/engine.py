"""
Reconciliation Engine - Upsert, drift read, delete and import for any
resource kind.

The engine is a stateless transform over (declared state, remote state).
Everything it needs for one call arrives in a ReconcileContext; nothing is
kept between calls. Not-found handling lives here and nowhere else: a
missing object is success for delete, a first-class Absent result for read,
and a failure for import and for upsert preconditions.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from errors import (
    EngineError,
    IdentifierNotReturned,
    PreconditionNotFound,
    RemoteNotFound,
    ResourceAbsent,
)
from identifiers import parse_resource_id
from operations import OperationHandle, OperationWaiter

if TYPE_CHECKING:
    from resources.base import ResourceKind, Snapshot
    from transport import ArmTransport

logger = logging.getLogger(__name__)

PARENT_DELIMITER = "."


def derive_parent_key(name: str, delimiter: str = PARENT_DELIMITER) -> str:
    """
    Derive a parent key from a compound name.

    Splits on the first delimiter and keeps the head: 'webserver.prod' and
    'webserver.prod.eu' both give 'webserver'; a name without the delimiter
    is returned unchanged.
    """
    return name.split(delimiter, 1)[0]


class UpsertPhase(Enum):
    """States of one upsert."""

    VALIDATING_PRECONDITIONS = "validating_preconditions"
    MUTATING = "mutating"
    AWAITING_COMPLETION = "awaiting_completion"
    RECONCILED = "reconciled"
    FAILED = "failed"


@dataclass
class ReconcileContext:
    """Per-run collaborators, passed explicitly to every engine call."""

    transport: "ArmTransport"
    subscription_id: str
    waiter: OperationWaiter = field(default_factory=OperationWaiter)


@dataclass
class UpsertResult:
    """Outcome of a successful upsert."""

    identifier: str
    snapshot: Optional["Snapshot"] = None
    phases: List[UpsertPhase] = field(default_factory=list)

    @property
    def phase(self) -> UpsertPhase:
        return self.phases[-1] if self.phases else UpsertPhase.VALIDATING_PRECONDITIONS


@dataclass
class DriftResult:
    """
    Outcome of a drift read.

    exists=False is the Absent signal: the object was removed out-of-band and
    the caller should drop it from its state.
    """

    identifier: str
    exists: bool = True
    state: Dict[str, Any] = field(default_factory=dict)
    drifted_attributes: List[str] = field(default_factory=list)

    @property
    def has_drift(self) -> bool:
        return not self.exists or bool(self.drifted_attributes)

    @classmethod
    def absent(cls, identifier: str) -> "DriftResult":
        return cls(identifier=identifier, exists=False)


@dataclass
class ImportResult:
    """Initial declared state for an imported object."""

    identifier: str
    state: Dict[str, Any] = field(default_factory=dict)
    # Required attributes the remote API never returns; the caller must supply them
    unset_attributes: List[str] = field(default_factory=list)


async def upsert(
    kind: "ResourceKind", declared: Dict[str, Any], ctx: ReconcileContext
) -> UpsertResult:
    """
    Create or update the object described by declared state.

    Safe to repeat with identical input: update reuses the create path.

    Raises:
        PreconditionNotFound: A referenced sibling does not exist; no mutating
            call has been issued.
        IdentifierNotReturned: The final object carries no identifier.
        OperationFailed, OperationTimeout, OperationCancelled: From the waiter.
        TransportError: From any remote call.

        Errors raised once the mutating call has been accepted carry
        mutation_issued=True; repeating the upsert would repeat the mutation.
    """
    display = kind.display_name(declared)
    result = UpsertResult(identifier="")
    phase = UpsertPhase.VALIDATING_PRECONDITIONS
    result.phases.append(phase)
    mutated = False

    try:
        for which, reference in kind.preconditions(declared, ctx.subscription_id):
            try:
                await kind.get(ctx.transport, reference)
            except RemoteNotFound:
                raise PreconditionNotFound(which, reference.to_string()) from None

        phase = UpsertPhase.MUTATING
        result.phases.append(phase)
        scope = kind.scope(declared, ctx.subscription_id)
        payload = kind.expand(declared)
        logger.info(f"Creating or updating {kind.name} {display!r}")
        outcome = await kind.create_or_update(ctx.transport, scope, payload)
        mutated = True

        snapshot = None
        if isinstance(outcome, OperationHandle):
            phase = UpsertPhase.AWAITING_COMPLETION
            result.phases.append(phase)
            await ctx.waiter.wait(ctx.transport, outcome)
        else:
            snapshot = outcome

        if snapshot is None or kind.read_after_write:
            snapshot = await kind.get(ctx.transport, scope)

        if not snapshot.id:
            raise IdentifierNotReturned(kind.name, display)

    except EngineError as e:
        e.mutation_issued = mutated
        result.phases.append(UpsertPhase.FAILED)
        logger.error(
            f"Upsert of {kind.name} {display!r} failed during {phase.value}: {e}"
        )
        raise

    result.identifier = snapshot.id
    result.snapshot = snapshot
    result.phases.append(UpsertPhase.RECONCILED)
    logger.info(f"Reconciled {kind.name} {display!r} as {snapshot.id}")
    return result


async def read(
    kind: "ResourceKind",
    identifier: str,
    ctx: ReconcileContext,
    declared: Optional[Dict[str, Any]] = None,
) -> DriftResult:
    """
    Re-read the remote object and project it onto declared state.

    Attributes the remote read never returns keep their declared value.

    Raises:
        MalformedIdentifier, IdentifierFieldMissing: Bad identifier.
        TransportError: The read failed for any reason other than not-found.
    """
    resource_id = parse_resource_id(identifier)
    scope = kind.scope_from_id(resource_id)

    try:
        snapshot = await kind.get(ctx.transport, scope)
    except RemoteNotFound:
        logger.info(f"{kind.name} {identifier} was not found - removing from state")
        return DriftResult.absent(identifier)

    remote = kind.flatten(resource_id, snapshot)
    declared = declared or {}
    schema = kind.schema

    state = {name: declared[name] for name in schema.write_only if name in declared}
    state.update(remote)

    drifted = [
        name
        for name, value in remote.items()
        if name in declared
        and name not in schema.computed
        and not schema.values_equal(name, declared[name], value)
    ]
    if drifted:
        logger.info(
            f"Drift detected for {kind.name} {identifier}: {', '.join(drifted)}"
        )

    return DriftResult(identifier=identifier, state=state, drifted_attributes=drifted)


async def delete(kind: "ResourceKind", identifier: str, ctx: ReconcileContext) -> None:
    """
    Delete the remote object; an already-absent object counts as deleted.

    Raises:
        MalformedIdentifier, IdentifierFieldMissing: Bad identifier.
        TransportError: The delete failed for any reason other than not-found.
    """
    resource_id = parse_resource_id(identifier)
    scope = kind.scope_from_id(resource_id)

    if not kind.tracks_remote_object:
        logger.debug(f"{kind.name} {identifier} has nothing remote to delete")
        return

    try:
        handle = await kind.delete(ctx.transport, scope)
    except RemoteNotFound:
        logger.info(f"{kind.name} {identifier} already deleted")
        return

    if handle is not None:
        await ctx.waiter.wait(ctx.transport, handle)
    logger.info(f"Deleted {kind.name} {identifier}")


async def import_resource(
    kind: "ResourceKind", identifier: str, ctx: ReconcileContext
) -> ImportResult:
    """
    Attach to an existing remote object from its identifier alone.

    Raises:
        MalformedIdentifier: The identifier cannot be decoded.
        ResourceAbsent: Nothing exists at the identifier.
    """
    result = await read(kind, identifier, ctx)
    if not result.exists:
        raise ResourceAbsent(identifier)

    unset = [
        attribute.name
        for attribute in kind.schema.attributes
        if attribute.required and attribute.write_only
    ]
    if unset:
        logger.warning(
            f"Imported {kind.name} {identifier}; "
            f"attributes that cannot be read back must be supplied: {', '.join(unset)}"
        )
    return ImportResult(identifier=identifier, state=result.state, unset_attributes=unset)
