"""
Enumerations for Fusion operation models.

Operation status is a closed set reported by the control plane; only
Succeeded and Failed are terminal.
"""

from enum import Enum


class OperationStatus(str, Enum):
    """
    Status of an asynchronous control-plane operation.

    Waiting (Pending), active (Running, Aborting) or complete
    (Succeeded, Failed). Transitions only move toward a terminal state.
    """

    PENDING = "Pending"
    RUNNING = "Running"
    ABORTING = "Aborting"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationStatus.SUCCEEDED, OperationStatus.FAILED)


class PureCode(str, Enum):
    """
    Pure diagnostic codes carried by operation errors.

    May be more specific than the HTTP code of the failed request.
    """

    INTERNAL = "INTERNAL"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"
    FAILED_PRECONDITION = "FAILED_PRECONDITION"
    CONFLICT = "CONFLICT"
    FAILED_TRANSACTION = "FAILED_TRANSACTION"
    CANCELED = "CANCELED"
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"
    UNAVAILABLE = "UNAVAILABLE"
    EXHAUSTED = "EXHAUSTED"


class MutationState(str, Enum):
    """
    States of a compound mutation.

    NotStarted -> StepRunning -> StepPolling -> StepSucceeded (next step)
    or StepFailed -> Aborted. AllStepsSucceeded and Aborted are terminal.
    """

    NOT_STARTED = "NotStarted"
    STEP_RUNNING = "StepRunning"
    STEP_POLLING = "StepPolling"
    STEP_SUCCEEDED = "StepSucceeded"
    STEP_FAILED = "StepFailed"
    ALL_STEPS_SUCCEEDED = "AllStepsSucceeded"
    ABORTED = "Aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (MutationState.ALL_STEPS_SUCCEEDED, MutationState.ABORTED)
