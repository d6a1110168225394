"""
Operation handling: waiting, classifying and orchestrating.

Main Components:
    - OperationPoller: Waits for an Operation to reach Succeeded or Failed
    - classify_operation: Turns a Failed operation into a typed error
    - CompoundMutation: Ordered write/read steps, aborting on first failure
    - create_then_enrich / teardown_with_dependents / delete_with_race_retry
    - run_all: Fail-after-all-complete concurrent fan-out

Usage:
    >>> from fusion_ops.operations import OperationPoller, create_then_enrich
    >>> poller = OperationPoller.from_settings(client, settings)
    >>> result = await create_then_enrich(poller, "create_array", create, enrich)
"""

from fusion_ops.operations.bulk import (
    ErrorCollector,
    await_all_operations,
    delete_snapshots_concurrently,
    purge_tenant_space,
    run_all,
)
from fusion_ops.operations.classifier import classify_operation, is_deletion_race
from fusion_ops.operations.exceptions import (
    BulkOperationError,
    CompoundMutationError,
    DeletionRaceError,
    ImmutableFieldChangedError,
    MissingOperationResultError,
    OperationCancelledError,
    OperationError,
    OperationFailedError,
    OperationVanishedError,
    TeardownError,
    UnsupportedResourceOperationError,
)
from fusion_ops.operations.orchestrator import (
    CompoundMutation,
    MutationResult,
    TeardownResult,
    create_then_enrich,
    delete_with_race_retry,
    destroy_then_delete_snapshot,
    teardown_with_dependents,
)
from fusion_ops.operations.poller import OperationPoller, WaitResult

__all__ = [
    "OperationPoller",
    "WaitResult",
    "classify_operation",
    "is_deletion_race",
    "CompoundMutation",
    "MutationResult",
    "TeardownResult",
    "create_then_enrich",
    "delete_with_race_retry",
    "destroy_then_delete_snapshot",
    "teardown_with_dependents",
    "ErrorCollector",
    "run_all",
    "await_all_operations",
    "delete_snapshots_concurrently",
    "purge_tenant_space",
    "OperationError",
    "OperationFailedError",
    "DeletionRaceError",
    "OperationVanishedError",
    "OperationCancelledError",
    "MissingOperationResultError",
    "ImmutableFieldChangedError",
    "CompoundMutationError",
    "TeardownError",
    "BulkOperationError",
    "UnsupportedResourceOperationError",
]
