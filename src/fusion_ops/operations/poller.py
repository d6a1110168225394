"""
Operation poller.

Drives an Operation handle to a terminal state by re-fetching it by id,
sleeping for the server's advisory retry_in hint between fetches. The hint
is clamped to [min_interval, max_interval]: a zero or missing hint must not
busy-loop, and a huge one must not make a single sleep unresponsive.

Polling duration itself is unbounded; legitimate operations can take
minutes. Callers bound it with a cancel event or a timeout.

Outcomes:
    - Succeeded: WaitResult(succeeded=True) (result reference required)
    - Failed: WaitResult(succeeded=False, error=<classified error>)
    - 404 while polling: OperationVanishedError (ambiguous, never coerced)
    - Other transport errors: propagated unchanged, not retried here
    - Cancel event / timeout: OperationCancelledError
"""

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

import structlog

from fusion_ops.client.exceptions import FusionClientError, FusionNotFoundError
from fusion_ops.models.operation import AnyOperation, Operation, SyntheticOperation
from fusion_ops.monitoring.metrics import operation_polls_total, operation_wait_seconds
from fusion_ops.operations.classifier import classify_operation
from fusion_ops.operations.exceptions import (
    MissingOperationResultError,
    OperationCancelledError,
    OperationError,
    OperationFailedError,
    OperationVanishedError,
)

if TYPE_CHECKING:
    from fusion_ops.client.base_client import BaseFusionClient
    from fusion_ops.config import Settings

logger = structlog.get_logger(__name__)

DEFAULT_MIN_INTERVAL = 0.1
DEFAULT_MAX_INTERVAL = 10.0


@dataclass(frozen=True)
class WaitResult:
    """
    Terminal outcome of waiting on an operation.

    Attributes:
        succeeded: True only for status Succeeded (or a synthetic operation)
        operation: The final snapshot observed
        error: Classified error for a Failed operation, else None
        polls: Number of re-fetches performed
    """

    succeeded: bool
    operation: AnyOperation
    error: Optional[OperationFailedError] = None
    polls: int = 0

    @property
    def resource_id(self) -> str:
        return self.operation.resource_id

    def raise_for_status(self) -> AnyOperation:
        """Return the operation if it succeeded, otherwise raise its error."""
        if self.error is not None:
            raise self.error
        return self.operation


class OperationPoller:
    """
    Waits for operations to reach a terminal state.

    Stateless apart from its configuration: one poller can serve any number
    of concurrent waits. Each poll yields a fresh, immutable snapshot.
    """

    def __init__(
        self,
        client: "BaseFusionClient",
        min_interval: float = DEFAULT_MIN_INTERVAL,
        max_interval: float = DEFAULT_MAX_INTERVAL,
    ):
        """
        Args:
            client: Collaborator providing get_operation()
            min_interval: Floor for a single sleep, in seconds (must be > 0)
            max_interval: Ceiling for a single sleep, in seconds
        """
        if min_interval <= 0:
            raise ValueError("min_interval must be > 0")
        if max_interval < min_interval:
            raise ValueError("max_interval must be >= min_interval")
        self.client = client
        self.min_interval = min_interval
        self.max_interval = max_interval

    @classmethod
    def from_settings(cls, client: "BaseFusionClient", settings: "Settings") -> "OperationPoller":
        return cls(
            client,
            min_interval=settings.OPERATION_POLL_MIN_INTERVAL,
            max_interval=settings.OPERATION_POLL_MAX_INTERVAL,
        )

    def clamp_delay(self, operation: Operation) -> float:
        """Seconds to sleep before the next fetch of `operation`."""
        hint = operation.retry_delay_seconds
        if hint is None:
            return self.min_interval
        return min(max(hint, self.min_interval), self.max_interval)

    async def wait(
        self,
        operation: AnyOperation,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
    ) -> WaitResult:
        """
        Block until `operation` is terminal.

        Only the status field decides terminality; a result reference on a
        Running operation does not count as completion.

        Args:
            operation: Handle returned by a mutating call
            cancel_event: Setting it aborts the wait promptly
            timeout: Overall deadline for the wait, in seconds

        Returns:
            WaitResult describing the terminal snapshot

        Raises:
            OperationVanishedError: The operation returned 404 mid-poll
            OperationCancelledError: Cancel event set or timeout elapsed
            MissingOperationResultError: Succeeded without a result reference
            FusionClientError: Re-fetch failed for any other reason
        """
        if isinstance(operation, SyntheticOperation):
            return WaitResult(succeeded=True, operation=operation)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout if timeout is not None else None
        start = time.monotonic()
        log = logger.bind(operation_id=operation.id, request_type=operation.request_type)

        current = operation
        polls = 0
        try:
            while not current.is_terminal:
                self._check_cancelled(current, cancel_event, deadline)
                await self._sleep(self.clamp_delay(current), current, cancel_event, deadline)
                self._check_cancelled(current, cancel_event, deadline)

                try:
                    fetched = await self.client.get_operation(current.id)
                except FusionNotFoundError as e:
                    raise OperationVanishedError(current.id, current.status.value) from e

                polls += 1
                operation_polls_total.labels(request_type=current.request_type or "unknown").inc()
                log.debug(
                    "Polled operation",
                    status=fetched.status.value,
                    retry_in=fetched.retry_in,
                    poll=polls,
                )
                current = fetched

            result = self._settle(current, polls)
        except OperationError as e:
            self._observe(_outcome_for(e), start)
            log.warning("Waiting on operation failed", error=str(e), error_type=type(e).__name__)
            raise
        except FusionClientError as e:
            self._observe("error", start)
            log.warning("Transport error while polling operation", error=str(e))
            raise

        self._observe("succeeded" if result.succeeded else "failed", start)
        if result.succeeded:
            log.debug("Operation succeeded", resource_id=result.resource_id, polls=polls)
        else:
            log.error(
                "Operation failed",
                pure_code=result.error.pure_code,
                http_code=result.error.http_code,
                error_message=result.error.server_message,
            )
        return result

    async def wait_for_success(
        self,
        operation: AnyOperation,
        *,
        cancel_event: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
    ) -> AnyOperation:
        """Wait and return the succeeded operation, or raise its classified error."""
        result = await self.wait(operation, cancel_event=cancel_event, timeout=timeout)
        return result.raise_for_status()

    def _settle(self, operation: Operation, polls: int) -> WaitResult:
        if operation.succeeded:
            if not operation.resource_id:
                raise MissingOperationResultError(operation.id, operation.request_type)
            return WaitResult(succeeded=True, operation=operation, polls=polls)
        return WaitResult(
            succeeded=False,
            operation=operation,
            error=classify_operation(operation),
            polls=polls,
        )

    @staticmethod
    def _check_cancelled(
        operation: Operation,
        cancel_event: Optional[asyncio.Event],
        deadline: Optional[float],
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError(operation.id)
        if deadline is not None and asyncio.get_running_loop().time() >= deadline:
            raise OperationCancelledError(operation.id, reason="deadline exceeded")

    @staticmethod
    async def _sleep(
        delay: float,
        operation: Operation,
        cancel_event: Optional[asyncio.Event],
        deadline: Optional[float],
    ) -> None:
        if deadline is not None:
            delay = max(0.0, min(delay, deadline - asyncio.get_running_loop().time()))

        if cancel_event is None:
            await asyncio.sleep(delay)
            return

        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise OperationCancelledError(operation.id)

    @staticmethod
    def _observe(outcome: str, start: float) -> None:
        operation_wait_seconds.labels(outcome=outcome).observe(time.monotonic() - start)


def _outcome_for(error: OperationError) -> str:
    if isinstance(error, OperationVanishedError):
        return "vanished"
    if isinstance(error, OperationCancelledError):
        return "cancelled"
    return "error"
