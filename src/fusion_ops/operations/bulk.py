"""
Concurrent fan-out for bulk cleanup.

One task per independent item, a barrier on all of them, and only then a
look at the errors: fail-after-all-complete, never fail-fast. Workers share
the client (read-only) and the poller (stateless).
"""

import asyncio
import threading
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Optional, TypeVar

import structlog

from fusion_ops.client.exceptions import FusionNotFoundError
from fusion_ops.models.operation import Operation
from fusion_ops.models.resources import NullableBoolean, PlacementGroup, Snapshot, Volume, VolumePatch
from fusion_ops.operations.exceptions import (
    BulkOperationError,
    OperationCancelledError,
    OperationVanishedError,
    describe_error,
)
from fusion_ops.operations.orchestrator import (
    DEFAULT_RACE_BUDGET,
    DEFAULT_RACE_INTERVAL,
    delete_with_race_retry,
    destroy_then_delete_snapshot,
)

if TYPE_CHECKING:
    from fusion_ops.client.rest_client import FusionClient
    from fusion_ops.operations.poller import OperationPoller

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ErrorCollector:
    """Thread-safe set of per-item errors, inspected after the barrier."""

    def __init__(self):
        self._lock = threading.Lock()
        self._errors: dict[str, BaseException] = {}

    def add(self, key: str, error: BaseException) -> None:
        with self._lock:
            self._errors[key] = error

    @property
    def errors(self) -> dict[str, BaseException]:
        with self._lock:
            return dict(self._errors)

    def __len__(self) -> int:
        with self._lock:
            return len(self._errors)

    def raise_if_any(self, name: str) -> None:
        errors = self.errors
        if errors:
            raise BulkOperationError(name, errors)


def _default_key(item: Any) -> str:
    return getattr(item, "name", None) or str(item)


async def run_all(
    name: str,
    items: Iterable[T],
    worker: Callable[[T], Awaitable[Any]],
    key: Callable[[T], str] = _default_key,
    limit: Optional[int] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> dict[str, Any]:
    """
    Run `worker` for every item concurrently and wait for all of them.

    Args:
        name: Label for logs and the aggregated error
        items: Independent items
        worker: Async callable handling one item
        key: Identifies an item in results and errors
        limit: Maximum number of workers running at once (None: unbounded)
        cancel_event: Once set, workers that have not started are skipped

    Returns:
        key -> worker result, for the items that succeeded

    Raises:
        OperationCancelledError: After every started worker finished, if the
            cancel event was set
        BulkOperationError: After every worker finished, if any of them failed
    """
    collector = ErrorCollector()
    results: dict[str, Any] = {}
    skipped: list[str] = []
    semaphore = asyncio.Semaphore(limit) if limit else None
    log = logger.bind(bulk=name)

    async def call(item: T, item_key: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            skipped.append(item_key)
            return
        results[item_key] = await worker(item)

    async def run_one(item: T) -> None:
        item_key = key(item)
        try:
            if semaphore is None:
                await call(item, item_key)
            else:
                async with semaphore:
                    await call(item, item_key)
        except Exception as e:
            collector.add(item_key, e)
            log.warning("Worker failed", item=item_key, **describe_error(e))

    items = list(items)
    log.debug("Fanning out", count=len(items))
    await asyncio.gather(*(run_one(item) for item in items))

    if cancel_event is not None and cancel_event.is_set():
        log.warning("Fan-out cancelled", completed=len(results), failed=len(collector), skipped=len(skipped))
        raise OperationCancelledError(target=name)
    collector.raise_if_any(name)
    return results


async def delete_snapshots_concurrently(
    client: "FusionClient",
    poller: "OperationPoller",
    snapshots: Iterable[Snapshot],
    cancel_event: Optional[asyncio.Event] = None,
) -> list[str]:
    """Destroy and delete every snapshot; returns the names removed."""

    async def delete(snapshot: Snapshot):
        return await destroy_then_delete_snapshot(client, poller, snapshot, cancel_event=cancel_event)

    results = await run_all("delete_snapshots", snapshots, delete, cancel_event=cancel_event)
    return sorted(results)


async def await_all_operations(
    client: "FusionClient",
    poller: "OperationPoller",
    cancel_event: Optional[asyncio.Event] = None,
) -> int:
    """
    Wait until every operation the control plane lists has settled.

    Failed operations and operations that vanish while being polled both
    count as settled.

    Returns:
        Number of operations that were still in flight
    """
    listed = await client.list_operations()
    pending = [op for op in listed.items if not op.is_terminal]

    async def settle(operation: Operation) -> None:
        try:
            await poller.wait(operation, cancel_event=cancel_event)
        except OperationVanishedError:
            pass

    await run_all("await_operations", pending, settle, key=lambda op: op.id, cancel_event=cancel_event)
    return len(pending)


async def purge_tenant_space(
    client: "FusionClient",
    poller: "OperationPoller",
    tenant: str,
    tenant_space: str,
    budget: float = DEFAULT_RACE_BUDGET,
    interval: float = DEFAULT_RACE_INTERVAL,
    cancel_event: Optional[asyncio.Event] = None,
) -> dict[str, list[str]]:
    """
    Delete every volume, then every placement group, in a tenant space.

    Deletes that race a dependent's deletion are retried within `budget`.

    Returns:
        {"volumes": [...], "placement_groups": [...]} names removed
    """
    log = logger.bind(tenant=tenant, tenant_space=tenant_space)

    async def purge_volume(volume: Volume):
        if not volume.destroyed:
            patch = VolumePatch(destroyed=NullableBoolean(value=True))
            try:
                operation = await client.update_volume(patch, tenant, tenant_space, volume.name)
            except FusionNotFoundError:
                return None
            await poller.wait_for_success(operation, cancel_event=cancel_event)
        return await delete_with_race_retry(
            poller,
            lambda: client.delete_volume(tenant, tenant_space, volume.name),
            budget=budget,
            interval=interval,
            cancel_event=cancel_event,
            name=f"volume/{volume.name}",
        )

    async def purge_placement_group(placement_group: PlacementGroup):
        return await delete_with_race_retry(
            poller,
            lambda: client.delete_placement_group(tenant, tenant_space, placement_group.name),
            budget=budget,
            interval=interval,
            cancel_event=cancel_event,
            name=f"placement_group/{placement_group.name}",
        )

    volumes = await client.list_volumes(tenant, tenant_space)
    removed_volumes = await run_all("purge_volumes", volumes.items, purge_volume, cancel_event=cancel_event)
    log.info("Purged volumes", count=len(removed_volumes))

    placement_groups = await client.list_placement_groups(tenant, tenant_space)
    removed_groups = await run_all(
        "purge_placement_groups",
        placement_groups.items,
        purge_placement_group,
        cancel_event=cancel_event,
    )
    log.info("Purged placement groups", count=len(removed_groups))

    return {"volumes": sorted(removed_volumes), "placement_groups": sorted(removed_groups)}
