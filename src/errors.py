"""
Engine errors.

Every failure raised by the reconciliation engine derives from EngineError.
Identifier and precondition errors indicate a configuration defect and are
never recovered locally; transport and operation failures are surfaced as-is
so the caller can decide on retry policy.
"""

from typing import Any, Dict, Optional


class EngineError(Exception):
    """Base class for all reconciliation engine errors."""

    # Set by upsert when the error was raised after the mutating call was accepted
    mutation_issued: bool = False


class MalformedIdentifier(EngineError):
    """The identifier is not a well-formed resource path."""

    def __init__(self, identifier: str, reason: str):
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"Malformed resource identifier {identifier!r}: {reason}")


class IdentifierFieldMissing(EngineError):
    """A well-formed identifier lacks a collection the caller needs."""

    def __init__(self, collection: str, identifier: str = ""):
        self.collection = collection
        self.identifier = identifier
        super().__init__(
            f"Collection {collection!r} not present in identifier {identifier!r}"
        )


class PreconditionNotFound(EngineError):
    """A referenced sibling object does not exist remotely."""

    def __init__(self, which: str, identifier: str = ""):
        self.which = which
        self.identifier = identifier
        super().__init__(f"{which} was not found ({identifier})")


class IdentifierNotReturned(EngineError):
    """The remote side did not hand back an identifier for the object."""

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f"Cannot read {kind} {name!r} ID")


class OperationFailed(EngineError):
    """A long-running operation reached a failed terminal state."""

    def __init__(self, cause: Any, status_url: str = ""):
        self.cause = cause
        self.status_url = status_url
        super().__init__(f"Long-running operation failed: {cause}")


class OperationTimeout(EngineError):
    """A long-running operation did not finish within the timeout."""

    def __init__(self, timeout: float, status_url: str = ""):
        self.timeout = timeout
        self.status_url = status_url
        super().__init__(f"Long-running operation timed out after {timeout}s")


class OperationCancelled(EngineError):
    """Waiting on a long-running operation was cancelled by the caller."""


class TransportError(EngineError):
    """An HTTP call to the remote API failed."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: Optional[Dict[str, Any]] = None,
    ):
        self.status = status
        self.body = body or {}
        super().__init__(message)


class RemoteNotFound(TransportError):
    """The remote API reported that the object does not exist (HTTP 404)."""

    def __init__(self, url: str, body: Optional[Dict[str, Any]] = None):
        self.url = url
        super().__init__(f"Not found: {url}", status=404, body=body)


class ResourceAbsent(EngineError):
    """Import target does not exist remotely."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Cannot import non-existent remote object {identifier!r}")


class SchemaValidationError(EngineError):
    """Declared state does not satisfy the resource kind's schema."""

    def __init__(self, kind: str, message: str):
        self.kind = kind
        super().__init__(f"Invalid attributes for {kind}: {message}")
