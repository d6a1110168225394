"""
Compound mutation orchestrator.

Runs ordered, dependent steps against the control plane. A write step
submits a request and waits for its Operation via the poller; a read step
just awaits a value. The first failing step aborts the sequence and nothing
already applied is undone: the partial result is handed back inside the
raised CompoundMutationError.

Canonical shapes built on top of CompoundMutation:
- create_then_enrich: create, then PATCH the fields creation does not accept
- teardown_with_dependents: best-effort delete of children, then the parent
- delete_with_race_retry: repeat a delete that races a dependent deletion
"""

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Sequence, TypeVar

import structlog

from fusion_ops.client.exceptions import FusionClientError, FusionNotFoundError
from fusion_ops.models.enums import MutationState
from fusion_ops.models.operation import AnyOperation
from fusion_ops.models.resources import NullableBoolean, Snapshot, SnapshotPatch
from fusion_ops.monitoring.metrics import compound_mutations_total, dependent_deletions_total
from fusion_ops.operations.exceptions import (
    CompoundMutationError,
    DeletionRaceError,
    OperationCancelledError,
    OperationError,
    TeardownError,
    describe_error,
)

if TYPE_CHECKING:
    from fusion_ops.client.rest_client import FusionClient
    from fusion_ops.operations.poller import OperationPoller

logger = structlog.get_logger(__name__)

T = TypeVar("T")

WriteCall = Callable[[], Awaitable[AnyOperation]]
ReadCall = Callable[[], Awaitable[Any]]
EnrichPlan = Callable[[str], Awaitable[Sequence[tuple[str, WriteCall]]]]

DEFAULT_RACE_BUDGET = 300.0
DEFAULT_RACE_INTERVAL = 5.0

_ALLOWED_TRANSITIONS = {
    MutationState.NOT_STARTED: {MutationState.STEP_RUNNING, MutationState.ALL_STEPS_SUCCEEDED},
    MutationState.STEP_RUNNING: {
        MutationState.STEP_POLLING,
        MutationState.STEP_SUCCEEDED,
        MutationState.STEP_FAILED,
    },
    MutationState.STEP_POLLING: {MutationState.STEP_SUCCEEDED, MutationState.STEP_FAILED},
    MutationState.STEP_SUCCEEDED: {MutationState.STEP_RUNNING, MutationState.ALL_STEPS_SUCCEEDED},
    MutationState.STEP_FAILED: {MutationState.ABORTED},
    MutationState.ALL_STEPS_SUCCEEDED: set(),
    MutationState.ABORTED: set(),
}


def raise_if_cancelled(cancel_event: Optional[asyncio.Event], target: str) -> None:
    """Raise OperationCancelledError if `cancel_event` is set."""
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelledError(target=target)


async def pause(interval: float, cancel_event: Optional[asyncio.Event], target: str) -> None:
    """Sleep `interval` seconds, returning early with OperationCancelledError on cancel."""
    if cancel_event is None:
        await asyncio.sleep(interval)
        return

    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=interval)
    except asyncio.TimeoutError:
        return
    raise OperationCancelledError(target=target)


@dataclass
class MutationStep:
    name: str
    call: Callable[[], Awaitable[Any]]
    polls: bool


@dataclass
class MutationResult:
    """
    Progress of a compound mutation.

    Attributes:
        name: Mutation name
        state: Current state
        history: Every state entered, in order
        completed_steps: Names of steps that succeeded
        values: Step name -> value (the settled operation for write steps)
        last_operation: Last operation observed, from whichever step
    """

    name: str
    state: MutationState = MutationState.NOT_STARTED
    history: list[MutationState] = field(default_factory=lambda: [MutationState.NOT_STARTED])
    completed_steps: list[str] = field(default_factory=list)
    values: dict[str, Any] = field(default_factory=dict)
    last_operation: Optional[AnyOperation] = None

    @property
    def succeeded(self) -> bool:
        return self.state == MutationState.ALL_STEPS_SUCCEEDED

    @property
    def resource_id(self) -> str:
        if self.last_operation is None:
            return ""
        return self.last_operation.resource_id

    def transition(self, state: MutationState) -> None:
        if state not in _ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(
                f"mutation '{self.name}' cannot move from {self.state.value} to {state.value}"
            )
        self.state = state
        self.history.append(state)


class CompoundMutation:
    """
    Ordered list of dependent steps.

    Steps may be appended while the mutation runs (a read step can plan
    follow-up writes once an earlier step has produced an id); they run
    after the steps already queued.

    Usage:
        mutation = CompoundMutation("create_volume", poller)
        mutation.add_write("create", lambda: client.create_volume(body, t, ts))
        result = await mutation.run()
    """

    def __init__(self, name: str, poller: "OperationPoller"):
        self.name = name
        self.poller = poller
        self._steps: list[MutationStep] = []
        self.result = MutationResult(name)

    @property
    def steps(self) -> list[str]:
        return [step.name for step in self._steps]

    def add_write(self, name: str, call: WriteCall) -> "CompoundMutation":
        """Queue a step whose operation is polled to success."""
        self._steps.append(MutationStep(name, call, polls=True))
        return self

    def add_read(self, name: str, call: ReadCall) -> "CompoundMutation":
        """Queue a step whose value is used as-is."""
        self._steps.append(MutationStep(name, call, polls=False))
        return self

    async def run(self, cancel_event: Optional[asyncio.Event] = None) -> MutationResult:
        """
        Run all steps in order.

        Returns:
            MutationResult in state AllStepsSucceeded

        Raises:
            CompoundMutationError: A step failed; remaining steps were skipped.
                Cancellation, noticed before a step starts or while it polls,
                is reported the same way with an OperationCancelledError cause.
        """
        if self.result.state != MutationState.NOT_STARTED:
            raise RuntimeError(f"mutation '{self.name}' has already run")

        result = self.result
        log = logger.bind(mutation=self.name)
        index = 0

        while index < len(self._steps):
            step = self._steps[index]
            index += 1
            result.transition(MutationState.STEP_RUNNING)
            log.debug("Running step", step=step.name)

            try:
                value = await self._run_step(step, result, cancel_event)
            except Exception as e:
                result.transition(MutationState.STEP_FAILED)
                result.transition(MutationState.ABORTED)
                compound_mutations_total.labels(mutation=self.name, outcome="aborted").inc()
                log.error(
                    "Mutation aborted",
                    step=step.name,
                    completed_steps=result.completed_steps,
                    **describe_error(e),
                )
                raise CompoundMutationError(self.name, step.name, e, result) from e

            result.values[step.name] = value
            result.completed_steps.append(step.name)
            result.transition(MutationState.STEP_SUCCEEDED)

        result.transition(MutationState.ALL_STEPS_SUCCEEDED)
        compound_mutations_total.labels(mutation=self.name, outcome="succeeded").inc()
        log.debug("Mutation succeeded", steps=result.completed_steps)
        return result

    async def _run_step(
        self,
        step: MutationStep,
        result: MutationResult,
        cancel_event: Optional[asyncio.Event],
    ) -> Any:
        raise_if_cancelled(cancel_event, f"{self.name}/{step.name}")
        if not step.polls:
            return await step.call()

        operation = await step.call()
        result.last_operation = operation
        result.transition(MutationState.STEP_POLLING)
        waited = await self.poller.wait(operation, cancel_event=cancel_event)
        result.last_operation = waited.operation
        return waited.raise_for_status()


async def create_then_enrich(
    poller: "OperationPoller",
    name: str,
    create: WriteCall,
    enrich: Optional[EnrichPlan] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> MutationResult:
    """
    Create a resource, then apply follow-up patches that need its id.

    Args:
        poller: Operation poller
        name: Mutation name for logs and metrics
        create: Submits the create request
        enrich: Given the new resource id, resolves to (step name, write call)
            pairs; each is polled to success in order
        cancel_event: Aborts any wait when set

    Returns:
        MutationResult; result.values["create"] is the create operation and
        result.last_operation the last operation observed

    Raises:
        CompoundMutationError: Creation or a follow-up failed. The resource
            may exist even though the mutation failed.
    """
    mutation = CompoundMutation(name, poller)
    mutation.add_write("create", create)

    if enrich is not None:

        async def plan_enrichment() -> list[str]:
            resource_id = mutation.result.values["create"].resource_id
            follow_ups = list(await enrich(resource_id))
            for step_name, call in follow_ups:
                mutation.add_write(step_name, call)
            return [step_name for step_name, _ in follow_ups]

        mutation.add_read("plan_enrichment", plan_enrichment)

    return await mutation.run(cancel_event=cancel_event)


@dataclass
class TeardownResult:
    """
    Outcome of a teardown whose parent delete succeeded.

    Attributes:
        parent_operation: Settled parent delete (None if it was already gone)
        removed: Keys of dependents deleted
        dependent_errors: Keys of dependents that could not be deleted
    """

    parent_operation: Optional[AnyOperation]
    removed: list[str] = field(default_factory=list)
    dependent_errors: dict[str, BaseException] = field(default_factory=dict)

    @property
    def clean(self) -> bool:
        return not self.dependent_errors


async def delete_with_race_retry(
    poller: "OperationPoller",
    delete: WriteCall,
    budget: float = DEFAULT_RACE_BUDGET,
    interval: float = DEFAULT_RACE_INTERVAL,
    cancel_event: Optional[asyncio.Event] = None,
    name: str = "delete",
) -> Optional[AnyOperation]:
    """
    Delete, retrying while the delete fails with the dependent-deletion race.

    Args:
        poller: Operation poller
        delete: Submits the delete request
        budget: Wall-clock seconds during which the race is retried
        interval: Seconds between attempts
        cancel_event: Checked before every attempt; also ends the wait and
            the pause between attempts
        name: Label for logs

    Returns:
        The settled delete operation, or None if the resource was already gone

    Raises:
        DeletionRaceError: The race persisted for the whole budget
        OperationFailedError: Any other failure, immediately
        OperationCancelledError: The cancel event was set; no further delete
            is submitted
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + budget
    log = logger.bind(target=name)
    attempt = 0

    while True:
        raise_if_cancelled(cancel_event, name)
        attempt += 1
        try:
            operation = await delete()
        except FusionNotFoundError:
            log.debug("Resource already removed", attempt=attempt)
            return None

        waited = await poller.wait(operation, cancel_event=cancel_event)
        if waited.succeeded:
            return waited.operation

        error = waited.error
        if not isinstance(error, DeletionRaceError):
            raise error
        if loop.time() + interval > deadline:
            log.warning("Deletion race persisted beyond budget", attempts=attempt, budget=budget)
            raise error

        log.info("Deletion raced a dependent deletion, retrying", attempt=attempt, interval=interval)
        await pause(interval, cancel_event, name)


async def destroy_then_delete_snapshot(
    client: "FusionClient",
    poller: "OperationPoller",
    snapshot: Snapshot,
    cancel_event: Optional[asyncio.Event] = None,
) -> Optional[AnyOperation]:
    """
    Mark a snapshot destroyed (unless it already is), then delete it.

    Returns:
        The settled delete operation, or None if the snapshot was already gone
    """
    tenant = snapshot.tenant_name
    tenant_space = snapshot.tenant_space_name
    target = f"snapshot/{snapshot.name}"

    try:
        if not snapshot.destroyed:
            raise_if_cancelled(cancel_event, target)
            patch = SnapshotPatch(destroyed=NullableBoolean(value=True))
            operation = await client.update_snapshot(patch, tenant, tenant_space, snapshot.name)
            await poller.wait_for_success(operation, cancel_event=cancel_event)

        raise_if_cancelled(cancel_event, target)
        operation = await client.delete_snapshot(tenant, tenant_space, snapshot.name)
    except FusionNotFoundError:
        logger.debug("Snapshot already removed", snapshot=snapshot.name)
        return None

    return await poller.wait_for_success(operation, cancel_event=cancel_event)


async def teardown_with_dependents(
    poller: "OperationPoller",
    name: str,
    list_dependents: Callable[[], Awaitable[Sequence[T]]],
    delete_dependent: Callable[[T], Awaitable[Any]],
    delete_parent: WriteCall,
    key: Callable[[T], str] = lambda dependent: getattr(dependent, "name", str(dependent)),
    race_budget: float = DEFAULT_RACE_BUDGET,
    race_interval: float = DEFAULT_RACE_INTERVAL,
    cancel_event: Optional[asyncio.Event] = None,
) -> TeardownResult:
    """
    Delete every dependent best-effort, then delete the parent.

    Dependent failures are logged and collected but do not stop sibling
    deletions. Only the parent delete is fatal; it is retried while it races
    a dependent that is still being deleted.

    Cancellation is not a dependent failure: once the cancel event is set no
    further dependent or parent request is submitted and the cancellation
    propagates as is.

    Raises:
        TeardownError: The parent delete failed; carries dependent errors too
        OperationCancelledError: The cancel event was set
        FusionClientError: Dependents could not be listed
    """
    log = logger.bind(parent=name)
    dependents = await list_dependents()
    result = TeardownResult(parent_operation=None)
    log.debug("Tearing down dependents", count=len(dependents))

    for dependent in dependents:
        dependent_key = key(dependent)
        try:
            raise_if_cancelled(cancel_event, name)
            await delete_dependent(dependent)
        except OperationCancelledError:
            _teardown_cancelled(log, result)
            raise
        except (OperationError, FusionClientError) as e:
            result.dependent_errors[dependent_key] = e
            dependent_deletions_total.labels(outcome="failed").inc()
            log.warning("Failed to delete dependent", dependent=dependent_key, **describe_error(e))
            continue
        result.removed.append(dependent_key)
        dependent_deletions_total.labels(outcome="removed").inc()

    try:
        result.parent_operation = await delete_with_race_retry(
            poller,
            delete_parent,
            budget=race_budget,
            interval=race_interval,
            cancel_event=cancel_event,
            name=name,
        )
    except OperationCancelledError:
        _teardown_cancelled(log, result)
        raise
    except (OperationError, FusionClientError) as e:
        compound_mutations_total.labels(mutation="teardown", outcome="aborted").inc()
        log.error("Parent delete failed", dependent_failures=len(result.dependent_errors), **describe_error(e))
        raise TeardownError(name, e, result.dependent_errors) from e

    compound_mutations_total.labels(mutation="teardown", outcome="succeeded").inc()
    if result.dependent_errors:
        log.warning(
            "Teardown finished with dependent errors",
            removed=len(result.removed),
            failed=sorted(result.dependent_errors),
        )
    return result


def _teardown_cancelled(log: Any, result: TeardownResult) -> None:
    compound_mutations_total.labels(mutation="teardown", outcome="cancelled").inc()
    log.warning("Teardown cancelled", removed=len(result.removed), failed=sorted(result.dependent_errors))
