"""
Operation-level exceptions.

Raised once the control plane has accepted a request and returned an
Operation: the operation failed, vanished, was cancelled while waiting, or
a multi-step mutation built from several operations was aborted.
Transport failures live in fusion_ops.client.exceptions instead.
"""

from typing import TYPE_CHECKING, Any, Optional, Sequence

if TYPE_CHECKING:
    from fusion_ops.models.operation import AnyOperation
    from fusion_ops.operations.orchestrator import MutationResult


class OperationError(Exception):
    """Base exception for everything that goes wrong with an accepted operation."""

    def __init__(self, message: str, operation_id: str = ""):
        super().__init__(message)
        self.message = message
        self.operation_id = operation_id


class OperationFailedError(OperationError):
    """
    A terminal Failed operation, with the server-authored diagnostics.

    Attributes:
        operation_type: Request type, e.g. "DeletePlacementGroup"
        pure_code: Pure diagnostic code, e.g. "FAILED_PRECONDITION"
        http_code: HTTP status the server attached to the failure
        server_message: The server's message, verbatim
        details: Key/value diagnostics
    """

    def __init__(
        self,
        operation_id: str,
        operation_type: str,
        pure_code: str,
        http_code: int,
        server_message: str,
        details: Optional[dict[str, str]] = None,
    ):
        self.operation_type = operation_type
        self.pure_code = pure_code
        self.http_code = http_code
        self.server_message = server_message
        self.details = dict(details or {})
        http = str(http_code) if http_code else "unknown"
        super().__init__(
            f"operation '{operation_type}' failed: {server_message} "
            f"(Pure '{pure_code}', Http {http})",
            operation_id=operation_id,
        )


class DeletionRaceError(OperationFailedError):
    """
    A delete failed because a dependent is itself still being deleted.

    The control plane cannot strictly serialize dependent deletions, so this
    failure is expected contention: retry the delete for a bounded time.
    """
    pass


class OperationVanishedError(OperationError):
    """
    The operation returned 404 before a terminal status was observed.

    It may have been garbage-collected after completing, or it may have
    failed; the outcome is unknown and is never coerced into either.
    """

    def __init__(self, operation_id: str, last_status: str = ""):
        self.last_status = last_status
        super().__init__(
            f"operation '{operation_id}' disappeared before reaching a terminal "
            f"state (last observed status: {last_status or 'unknown'})",
            operation_id=operation_id,
        )


class OperationCancelledError(OperationError):
    """
    Waiting was cancelled (cancel event set or deadline passed).

    Also raised by multi-step work that notices the cancel event between
    requests; `target` then names that work and operation_id may be empty.
    """

    def __init__(self, operation_id: str = "", reason: str = "cancelled", target: str = ""):
        self.reason = reason
        self.target = target
        if operation_id:
            subject = f"waiting for operation '{operation_id}'"
        else:
            subject = f"'{target or 'mutation'}'"
        super().__init__(f"{subject} was {reason}", operation_id=operation_id)


class UnsupportedResourceOperationError(OperationError):
    """A resource kind was asked for an operation it does not offer."""

    def __init__(self, kind: str, operation: str):
        self.kind = kind
        self.operation = operation
        super().__init__(f"resource kind '{kind or 'unknown'}' does not support {operation}")


class MissingOperationResultError(OperationError):
    """A Succeeded operation carried no result reference."""

    def __init__(self, operation_id: str, operation_type: str = ""):
        self.operation_type = operation_type
        super().__init__(
            f"operation '{operation_id}' ({operation_type or 'unknown type'}) "
            "succeeded without a result reference",
            operation_id=operation_id,
        )


class ImmutableFieldChangedError(OperationError):
    """
    An update tried to change a field that cannot change after creation.

    Raised locally before any request is sent.
    """

    def __init__(self, field_names: Sequence[str], resource_id: str = ""):
        self.field_names = list(field_names)
        self.resource_id = resource_id
        super().__init__(
            "attempt to update an immutable field: " + ", ".join(self.field_names)
        )


class CompoundMutationError(OperationError):
    """
    A step of a compound mutation failed; remaining steps were not run.

    Already-applied steps are not rolled back. `result` holds the partial
    result, including the last operation observed.
    """

    def __init__(
        self,
        mutation: str,
        step: str,
        cause: BaseException,
        result: "MutationResult",
    ):
        self.mutation = mutation
        self.step = step
        self.cause = cause
        self.result = result
        last = result.last_operation
        super().__init__(
            f"mutation '{mutation}' aborted at step '{step}': {cause}",
            operation_id=last.id if last is not None else "",
        )

    @property
    def last_operation(self) -> Optional["AnyOperation"]:
        return self.result.last_operation


class TeardownError(OperationError):
    """
    The parent delete of a teardown failed.

    Attributes:
        parent_error: Why the parent delete failed
        dependent_errors: Errors from best-effort dependent deletions
    """

    def __init__(
        self,
        parent: str,
        parent_error: BaseException,
        dependent_errors: Optional[dict[str, BaseException]] = None,
    ):
        self.parent = parent
        self.parent_error = parent_error
        self.dependent_errors = dict(dependent_errors or {})
        message = f"failed to delete '{parent}': {parent_error}"
        if self.dependent_errors:
            message += f" ({len(self.dependent_errors)} dependent deletion(s) also failed)"
        super().__init__(message)


class BulkOperationError(OperationError):
    """One or more workers of a fan-out failed; raised after all finished."""

    def __init__(self, name: str, errors: dict[str, BaseException]):
        self.name = name
        self.errors = dict(errors)
        failed = ", ".join(sorted(self.errors))
        super().__init__(f"{name}: {len(self.errors)} item(s) failed: {failed}")


def describe_error(error: BaseException) -> dict[str, Any]:
    """Flatten an error into log-friendly key/value pairs."""
    info: dict[str, Any] = {"error": str(error), "error_type": type(error).__name__}
    if isinstance(error, OperationFailedError):
        info.update(
            operation_id=error.operation_id,
            pure_code=error.pure_code,
            http_code=error.http_code,
        )
    elif isinstance(error, OperationError) and error.operation_id:
        info["operation_id"] = error.operation_id
    return info
