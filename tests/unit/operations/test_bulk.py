"""
Unit tests for concurrent bulk cleanup.

Fan-out must wait for every worker before reporting failures, and the
cleanup helpers must delete volumes before placement groups.
"""

import asyncio

import pytest

from fusion_ops.client.exceptions import FusionConnectionError, FusionNotFoundError
from fusion_ops.models.resources import ItemList, PlacementGroup, Snapshot, Volume
from fusion_ops.operations.bulk import (
    ErrorCollector,
    await_all_operations,
    delete_snapshots_concurrently,
    purge_tenant_space,
    run_all,
)
from fusion_ops.operations.exceptions import BulkOperationError, OperationCancelledError


# ============================================================================
# ErrorCollector
# ============================================================================


def test_error_collector_empty_does_not_raise():
    collector = ErrorCollector()

    collector.raise_if_any("cleanup")

    assert len(collector) == 0


def test_error_collector_raises_aggregate():
    collector = ErrorCollector()
    collector.add("b", ValueError("b failed"))
    collector.add("a", ValueError("a failed"))

    with pytest.raises(BulkOperationError) as exc_info:
        collector.raise_if_any("cleanup")

    assert set(exc_info.value.errors) == {"a", "b"}
    assert "a, b" in str(exc_info.value)


# ============================================================================
# run_all
# ============================================================================


@pytest.mark.asyncio
async def test_run_all_returns_results_by_key():
    async def double(item):
        return item * 2

    results = await run_all("double", [1, 2, 3], double, key=str)

    assert results == {"1": 2, "2": 4, "3": 6}


@pytest.mark.asyncio
async def test_run_all_waits_for_every_worker_before_raising():
    """A fast failure must not abandon slower siblings."""
    finished = []

    async def worker(item):
        if item == "fail":
            raise RuntimeError("boom")
        await asyncio.sleep(0.01)
        finished.append(item)

    with pytest.raises(BulkOperationError) as exc_info:
        await run_all("mixed", ["fail", "slow-1", "slow-2"], worker, key=str)

    assert sorted(finished) == ["slow-1", "slow-2"]
    assert list(exc_info.value.errors) == ["fail"]


@pytest.mark.asyncio
async def test_run_all_respects_concurrency_limit():
    running = 0
    peak = 0

    async def worker(item):
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.005)
        running -= 1

    await run_all("limited", range(8), worker, key=str, limit=2)

    assert peak <= 2


@pytest.mark.asyncio
async def test_run_all_cancel_skips_workers_not_yet_started():
    cancel_event = asyncio.Event()
    started = []

    async def worker(item):
        started.append(item)
        cancel_event.set()

    with pytest.raises(OperationCancelledError) as exc_info:
        await run_all("cancelled", range(4), worker, key=str, limit=1, cancel_event=cancel_event)

    assert started == [0]
    assert exc_info.value.target == "cancelled"


# ============================================================================
# Cleanup helpers
# ============================================================================


@pytest.mark.asyncio
async def test_delete_snapshots_concurrently(poller, scripted_client, make_operation, mock_fusion_client):
    snapshots = [
        Snapshot(name=name, tenant={"name": "t"}, tenant_space={"name": "ts"}, destroyed=True)
        for name in ("s2", "s1")
    ]

    async def delete_snapshot(tenant, tenant_space, name):
        scripted_client.script(f"del-{name}", make_operation(op_id=f"del-{name}", status="Succeeded", resource_id=name))
        return make_operation(op_id=f"del-{name}")

    mock_fusion_client.delete_snapshot.side_effect = delete_snapshot

    removed = await delete_snapshots_concurrently(mock_fusion_client, poller, snapshots)

    assert removed == ["s1", "s2"]


@pytest.mark.asyncio
async def test_await_all_operations_skips_terminal_and_tolerates_vanished(
    poller, scripted_client, make_operation, mock_fusion_client
):
    mock_fusion_client.list_operations.return_value = ItemList(
        items=[
            make_operation(op_id="done", status="Succeeded", resource_id="x"),
            make_operation(op_id="running"),
            make_operation(op_id="gone"),
        ]
    )
    scripted_client.script("running", make_operation(op_id="running", status="Failed"))
    scripted_client.script("gone", FusionNotFoundError("gone", status_code=404))

    pending = await await_all_operations(mock_fusion_client, poller)

    assert pending == 2
    assert sorted(scripted_client.calls) == ["gone", "running"]


@pytest.mark.asyncio
async def test_await_all_operations_reports_transport_errors(
    poller, scripted_client, make_operation, mock_fusion_client
):
    mock_fusion_client.list_operations.return_value = ItemList(items=[make_operation(op_id="running")])
    scripted_client.script("running", FusionConnectionError("reset"))

    with pytest.raises(BulkOperationError) as exc_info:
        await await_all_operations(mock_fusion_client, poller)

    assert list(exc_info.value.errors) == ["running"]


@pytest.mark.asyncio
async def test_purge_tenant_space_deletes_volumes_before_placement_groups(
    poller, scripted_client, make_operation, mock_fusion_client
):
    calls = []

    def settled(op_id):
        scripted_client.script(op_id, make_operation(op_id=op_id, status="Succeeded", resource_id=op_id))
        return make_operation(op_id=op_id)

    async def update_volume(patch, tenant, tenant_space, name):
        calls.append(f"destroy {name}")
        return settled(f"destroy-{name}")

    async def delete_volume(tenant, tenant_space, name):
        calls.append(f"delete volume {name}")
        return settled(f"delete-{name}")

    async def delete_placement_group(tenant, tenant_space, name):
        calls.append(f"delete pg {name}")
        return settled(f"delete-pg-{name}")

    mock_fusion_client.list_volumes.return_value = ItemList(
        items=[Volume(name="v1"), Volume(name="v2", destroyed=True)]
    )
    mock_fusion_client.list_placement_groups.return_value = ItemList(items=[PlacementGroup(name="pg1")])
    mock_fusion_client.update_volume.side_effect = update_volume
    mock_fusion_client.delete_volume.side_effect = delete_volume
    mock_fusion_client.delete_placement_group.side_effect = delete_placement_group

    removed = await purge_tenant_space(mock_fusion_client, poller, "t", "ts", interval=0.001)

    assert removed == {"volumes": ["v1", "v2"], "placement_groups": ["pg1"]}
    assert "destroy v2" not in calls
    assert calls.index("delete pg pg1") > calls.index("delete volume v1")
    assert calls.index("delete pg pg1") > calls.index("delete volume v2")


@pytest.mark.asyncio
async def test_purge_tenant_space_empty(poller, mock_fusion_client):
    mock_fusion_client.list_volumes.return_value = ItemList()
    mock_fusion_client.list_placement_groups.return_value = ItemList()

    removed = await purge_tenant_space(mock_fusion_client, poller, "t", "ts")

    assert removed == {"volumes": [], "placement_groups": []}
    mock_fusion_client.delete_placement_group.assert_not_called()


@pytest.mark.asyncio
async def test_purge_tenant_space_cancel_stops_before_deletes(
    poller, scripted_client, make_operation, mock_fusion_client
):
    cancel_event = asyncio.Event()

    async def update_volume(patch, tenant, tenant_space, name):
        cancel_event.set()
        scripted_client.script("destroy", make_operation(op_id="destroy", status="Succeeded", resource_id=name))
        return make_operation(op_id="destroy")

    mock_fusion_client.list_volumes.return_value = ItemList(items=[Volume(name="v1")])
    mock_fusion_client.update_volume.side_effect = update_volume

    with pytest.raises(OperationCancelledError):
        await purge_tenant_space(mock_fusion_client, poller, "t", "ts", cancel_event=cancel_event)

    mock_fusion_client.delete_volume.assert_not_called()
    mock_fusion_client.list_placement_groups.assert_not_called()
    mock_fusion_client.delete_placement_group.assert_not_called()
