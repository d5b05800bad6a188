"""
Long-Running Operations - Poll asynchronous remote operations to completion.

ARM answers some mutating calls with 201/202 and a status URL instead of the
final object. The waiter owns that handle for the duration of one call and
polls it until the operation succeeds, fails, times out or is cancelled.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from errors import OperationCancelled, OperationFailed, OperationTimeout

logger = logging.getLogger(__name__)


class HandleStyle(Enum):
    """Which response header the status URL came from."""

    ASYNC_OPERATION = "azure-asyncoperation"
    LOCATION = "location"


class OperationState(Enum):
    """State of a long-running operation."""

    IN_PROGRESS = "InProgress"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELED = "Canceled"

    @property
    def is_terminal(self) -> bool:
        return self is not OperationState.IN_PROGRESS

    @classmethod
    def from_remote(cls, value: Optional[str]) -> "OperationState":
        """Map a remote status string onto a state; unknown values are in progress."""
        for state in cls:
            if value and state.value.lower() == value.lower():
                return state
        return cls.IN_PROGRESS


@dataclass(frozen=True)
class OperationHandle:
    """Continuation token for a long-running operation."""

    status_url: str
    style: HandleStyle = HandleStyle.ASYNC_OPERATION
    retry_after: Optional[float] = None


@dataclass
class OperationStatus:
    """One poll result."""

    state: OperationState = OperationState.IN_PROGRESS
    error: Optional[Dict[str, Any]] = None
    retry_after: Optional[float] = None
    body: Dict[str, Any] = field(default_factory=dict)


class StatusPoller(Protocol):
    """Anything that can check an operation's status (ArmTransport does)."""

    async def poll(self, handle: OperationHandle) -> OperationStatus: ...


class OperationWaiter:
    """
    Polls a long-running operation until it reaches a terminal state.

    Failed and canceled remote states are surfaced as OperationFailed and
    never retried here.
    """

    def __init__(
        self,
        poll_interval: float = 10,
        timeout: float = 3600,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.cancel_event = cancel_event

    async def wait(
        self, poller: StatusPoller, handle: OperationHandle
    ) -> OperationStatus:
        """
        Wait for the operation behind handle to finish.

        Args:
            poller: Status-check collaborator (the transport).
            handle: The operation handle returned by the mutating call.

        Returns:
            The terminal OperationStatus on success.

        Raises:
            OperationFailed: The remote operation failed or was canceled remotely.
            OperationTimeout: The timeout elapsed first.
            OperationCancelled: The cancel event was set.
            TransportError: A status poll could not reach the service.
        """
        logger.info(f"Waiting for long-running operation: {handle.status_url}")
        try:
            return await asyncio.wait_for(
                self._poll_until_terminal(poller, handle), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Operation {handle.status_url} timed out after {self.timeout}s"
            )
            raise OperationTimeout(self.timeout, handle.status_url) from None

    async def _poll_until_terminal(
        self, poller: StatusPoller, handle: OperationHandle
    ) -> OperationStatus:
        polls = 0
        delay = handle.retry_after
        if delay is not None:
            await self._sleep(delay, handle)

        while True:
            self._check_cancelled(handle)
            status = await poller.poll(handle)
            polls += 1

            if status.state is OperationState.SUCCEEDED:
                logger.info(
                    f"Operation {handle.status_url} succeeded after {polls} poll(s)"
                )
                return status

            if status.state.is_terminal:
                cause = status.error or {"status": status.state.value}
                logger.error(f"Operation {handle.status_url} ended with {cause}")
                raise OperationFailed(cause, handle.status_url)

            delay = (
                status.retry_after
                if status.retry_after is not None
                else self.poll_interval
            )
            logger.debug(
                f"Operation {handle.status_url} still {status.state.value}, "
                f"waiting {delay}s..."
            )
            await self._sleep(delay, handle)

    def _check_cancelled(self, handle: OperationHandle) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            logger.warning(f"Stopped waiting on {handle.status_url}: cancelled")
            raise OperationCancelled(
                f"Waiting on operation {handle.status_url} was cancelled"
            )

    async def _sleep(self, delay: float, handle: OperationHandle) -> None:
        """Sleep between polls, waking early if the cancel event fires."""
        if self.cancel_event is None:
            await asyncio.sleep(delay)
            return

        try:
            await asyncio.wait_for(self.cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        self._check_cancelled(handle)
