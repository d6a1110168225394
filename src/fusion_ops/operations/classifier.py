"""Error classifier for terminal Failed operations.

Converts a Failed operation into a structured OperationFailedError carrying
the server-authored diagnostics verbatim, and recognizes the one failure
signature that is expected contention rather than a real error. Transport
failures are classified on the client side, see
fusion_ops.client.exceptions.classify_http_error().

Key Functions:
- classify_operation(): Failed Operation -> OperationFailedError (or DeletionRaceError)
- is_deletion_race(): recognize the dependent-teardown race signature

Usage:
    result = await poller.wait(operation)
    if not result.succeeded:
        raise classify_operation(result.operation)
"""

from typing import Union

from fusion_ops.models.enums import PureCode
from fusion_ops.models.operation import Operation
from fusion_ops.operations.exceptions import DeletionRaceError, OperationFailedError

DELETION_RACE_MESSAGE = "deletion not allowed while resource is in use"

# Fallbacks for a Failed operation without an error payload
UNKNOWN_CODE = "unknown"
UNKNOWN_REASON = "reason unknown"


def is_deletion_race(subject: Union[Operation, OperationFailedError, None]) -> bool:
    """Check for the dependent-teardown race signature.

    Deleting a parent right after its children frequently fails with
    FAILED_PRECONDITION, a fixed message and no details while the child
    deletion is still settling server-side. Only this exact signature
    counts; any detail entry makes it a genuine failure.

    Args:
        subject: A Failed operation or an already classified error

    Returns:
        True if the failure is the retryable race
    """
    if subject is None:
        return False
    if isinstance(subject, OperationFailedError):
        code, message, details = subject.pure_code, subject.server_message, subject.details
    else:
        if subject.error is None:
            return False
        code, message, details = subject.error.pure_code, subject.error.message, subject.error.details
    return (
        code == PureCode.FAILED_PRECONDITION.value
        and message == DELETION_RACE_MESSAGE
        and len(details) == 0
    )


def classify_operation(operation: Operation) -> OperationFailedError:
    """Build the structured error for a terminal Failed operation.

    Code, message and HTTP status are carried over verbatim. A Failed
    operation without an error payload yields code "unknown" and message
    "reason unknown".

    Args:
        operation: Operation in status Failed

    Returns:
        DeletionRaceError for the teardown race signature, otherwise
        OperationFailedError
    """
    payload = operation.error
    if payload is None:
        return OperationFailedError(
            operation_id=operation.id,
            operation_type=operation.request_type,
            pure_code=UNKNOWN_CODE,
            http_code=0,
            server_message=UNKNOWN_REASON,
        )

    error_class = DeletionRaceError if is_deletion_race(operation) else OperationFailedError
    return error_class(
        operation_id=operation.id,
        operation_type=operation.request_type,
        pure_code=payload.pure_code or UNKNOWN_CODE,
        http_code=payload.http_code,
        server_message=payload.message or UNKNOWN_REASON,
        details=payload.details,
    )
