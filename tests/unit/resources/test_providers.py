"""
Unit tests for the per-kind resource providers.

Checks request bodies, patch planning and the kind-specific rules
(volume sizes and host moves, policy periods, synthetic API client ops).
"""

import asyncio

import pytest

from fusion_ops.client.exceptions import FusionNotFoundError
from fusion_ops.models.operation import SyntheticOperation
from fusion_ops.models.resources import Array, ItemList, Snapshot
from fusion_ops.operations.exceptions import (
    ImmutableFieldChangedError,
    OperationCancelledError,
    UnsupportedResourceOperationError,
)
from fusion_ops.resources import (
    ApiClientProvider,
    ArrayProvider,
    ProtectionPolicyProvider,
    ResourceData,
    VolumeProvider,
    VolumeSizeError,
    build_objectives,
)
from fusion_ops.utils.time_periods import TimePeriodFormatError

VOLUME_STATE = {
    "name": "vol1",
    "tenant_name": "t",
    "tenant_space_name": "ts",
    "display_name": "vol1",
    "size": 1024**3,
    "storage_class_name": "sc",
    "placement_group_name": "pg1",
    "protection_policy_name": "",
    "host_names": ["h1", "h2"],
}


def planned_volume(**changes):
    config = dict(VOLUME_STATE, size="1G")
    config.update(changes)
    return ResourceData(config, state=VOLUME_STATE, resource_id="vol-1")


# ============================================================================
# Array
# ============================================================================


@pytest.mark.asyncio
async def test_array_create_body_defaults_display_name():
    data = ResourceData(
        {
            "name": "array1",
            "region_name": "r1",
            "availability_zone_name": "az1",
            "appliance_id": "app-1",
            "host_name": "host1",
            "hardware_type_name": "flash-array-x",
        }
    )

    invoke, body = ArrayProvider().prepare_create(data)

    assert body.display_name == "array1"
    assert body.hardware_type == "flash-array-x"


@pytest.mark.asyncio
async def test_array_enrichment_patches_only_differing_modes(mock_fusion_client):
    mock_fusion_client.get_array_by_id.return_value = Array(
        name="array1", maintenance_mode=False, unavailable_mode=True
    )
    data = ResourceData(
        {
            "name": "array1",
            "region_name": "r1",
            "availability_zone_name": "az1",
            "maintenance_mode": True,
            "unavailable_mode": True,
        }
    )

    follow_ups = await ArrayProvider().plan_enrichment(mock_fusion_client, data, "array-id")

    assert [step for step, _ in follow_ups] == ["maintenance_mode"]
    await follow_ups[0][1]()
    patch, region, availability_zone, name = mock_fusion_client.update_array.call_args.args
    assert patch.to_body() == {"maintenance_mode": {"value": True}}
    assert (region, availability_zone, name) == ("r1", "az1", "array1")


@pytest.mark.asyncio
async def test_array_enrichment_sets_unavailable_mode_field(mock_fusion_client):
    mock_fusion_client.get_array_by_id.return_value = Array(name="array1")
    data = ResourceData({"name": "array1", "unavailable_mode": True})

    follow_ups = await ArrayProvider().plan_enrichment(mock_fusion_client, data, "array-id")
    await follow_ups[0][1]()

    patch = mock_fusion_client.update_array.call_args.args[0]
    assert patch.to_body() == {"unavailable_mode": {"value": True}}


def test_array_hardware_type_is_immutable(mock_fusion_client):
    data = ResourceData(
        {"name": "array1", "hardware_type_name": "flash-array-c"},
        state={"name": "array1", "hardware_type_name": "flash-array-x"},
    )

    with pytest.raises(ImmutableFieldChangedError):
        ArrayProvider().prepare_update(mock_fusion_client, data)


@pytest.mark.asyncio
async def test_array_has_no_deletable_dependents(mock_fusion_client, poller):
    with pytest.raises(UnsupportedResourceOperationError) as exc_info:
        await ArrayProvider().delete_dependent(mock_fusion_client, poller, object())

    assert exc_info.value.kind == "array"


# ============================================================================
# Volume
# ============================================================================


def test_volume_create_converts_size():
    _, body = VolumeProvider().prepare_create(planned_volume(size="10G", protection_policy_name=""))

    assert body.size == 10 * 1024**3
    assert body.protection_policy is None


def test_volume_no_changes_means_no_patches(mock_fusion_client):
    _, patches = VolumeProvider().prepare_update(mock_fusion_client, planned_volume())

    assert patches == []


def test_volume_host_order_is_not_a_change(mock_fusion_client):
    _, patches = VolumeProvider().prepare_update(mock_fusion_client, planned_volume(host_names=["h2", "h1"]))

    assert patches == []


def test_volume_move_detaches_and_reattaches_hosts(mock_fusion_client):
    _, patches = VolumeProvider().prepare_update(
        mock_fusion_client, planned_volume(placement_group_name="pg2", size="2G")
    )

    assert [p.to_body() for p in patches] == [
        {"host_access_policies": {"value": ""}},
        {"placement_group": {"value": "pg2"}},
        {"host_access_policies": {"value": "h1,h2"}},
        {"size": {"value": 2 * 1024**3}},
    ]


def test_volume_shrink_rejected(mock_fusion_client):
    with pytest.raises(VolumeSizeError):
        VolumeProvider().prepare_update(mock_fusion_client, planned_volume(size="512M"))


def test_volume_tenant_is_immutable(mock_fusion_client):
    with pytest.raises(ImmutableFieldChangedError) as exc_info:
        VolumeProvider().prepare_update(mock_fusion_client, planned_volume(tenant_name="other"))

    assert exc_info.value.field_names == ["tenant_name"]


@pytest.mark.asyncio
async def test_volume_delete_without_eradicate_only_destroys(mock_fusion_client):
    invoke = VolumeProvider().prepare_delete(mock_fusion_client, planned_volume())

    await invoke(mock_fusion_client, None)

    patch = mock_fusion_client.update_volume.call_args.args[0]
    assert patch.to_body() == {"destroyed": {"value": True}}
    mock_fusion_client.delete_volume.assert_not_called()


@pytest.mark.asyncio
async def test_volume_before_delete_clears_hosts_then_destroys(
    mock_fusion_client, poller, scripted_client, make_operation
):
    scripted_client.script("clear", make_operation(op_id="clear", status="Succeeded", resource_id="vol-1"))
    scripted_client.script("destroy", make_operation(op_id="destroy", status="Succeeded", resource_id="vol-1"))
    mock_fusion_client.update_volume.side_effect = [
        make_operation(op_id="clear"),
        make_operation(op_id="destroy"),
    ]
    data = planned_volume(eradicate_on_delete=True)

    await VolumeProvider().before_delete(mock_fusion_client, poller, data)
    invoke = VolumeProvider().prepare_delete(mock_fusion_client, data)
    await invoke(mock_fusion_client, None)

    bodies = [c.args[0].to_body() for c in mock_fusion_client.update_volume.call_args_list]
    assert bodies == [{"host_access_policies": {"value": ""}}, {"destroyed": {"value": True}}]
    mock_fusion_client.delete_volume.assert_awaited_once_with("t", "ts", "vol1")


@pytest.mark.asyncio
async def test_volume_before_delete_tolerates_already_removed_volume(mock_fusion_client, poller):
    mock_fusion_client.update_volume.side_effect = FusionNotFoundError("gone", status_code=404)

    await VolumeProvider().before_delete(mock_fusion_client, poller, planned_volume(eradicate_on_delete=True))

    assert mock_fusion_client.update_volume.await_count == 1


@pytest.mark.asyncio
async def test_volume_before_delete_honors_cancel_event(mock_fusion_client, poller):
    cancel_event = asyncio.Event()
    cancel_event.set()

    with pytest.raises(OperationCancelledError):
        await VolumeProvider().before_delete(mock_fusion_client, poller, planned_volume(), cancel_event)

    mock_fusion_client.update_volume.assert_not_called()


# ============================================================================
# Protection policy
# ============================================================================


def test_build_objectives():
    assert build_objectives("1h", "2d") == [
        {"type": "RPO", "rpo": "PT60M"},
        {"type": "Retention", "after": "PT2880M"},
    ]


@pytest.mark.parametrize("rpo,retention", [("5", "1h"), ("1h", "9m")])
def test_build_objectives_enforces_minimum(rpo, retention):
    with pytest.raises(TimePeriodFormatError):
        build_objectives(rpo, retention)


def test_protection_policy_equivalent_period_is_not_a_change(mock_fusion_client):
    data = ResourceData(
        {"name": "pp", "local_rpo": "1h", "local_retention": "1d"},
        state={"name": "pp", "local_rpo": 60, "local_retention": "1440"},
    )

    _, patches = ProtectionPolicyProvider().prepare_update(mock_fusion_client, data)

    assert patches == []


def test_protection_policy_is_immutable(mock_fusion_client):
    data = ResourceData(
        {"name": "pp", "local_rpo": "2h"},
        state={"name": "pp", "local_rpo": 60},
    )

    with pytest.raises(ImmutableFieldChangedError):
        ProtectionPolicyProvider().prepare_update(mock_fusion_client, data)


@pytest.mark.asyncio
async def test_protection_policy_lists_snapshots_by_policy_id(mock_fusion_client):
    mock_fusion_client.query_snapshots.return_value = ItemList(items=[Snapshot(name="s1")])
    data = ResourceData({"name": "pp", "destroy_snapshots_on_delete": True}, resource_id="pp-1")

    dependents = await ProtectionPolicyProvider().list_dependents(mock_fusion_client, data)

    assert [s.name for s in dependents] == ["s1"]
    mock_fusion_client.query_snapshots.assert_awaited_once_with(protection_policy_id="pp-1")


# ============================================================================
# API client
# ============================================================================


@pytest.mark.asyncio
async def test_api_client_create_wraps_synthetic_operation(mock_fusion_client):
    mock_fusion_client.create_api_client.return_value.id = "ac-1"
    invoke, body = ApiClientProvider().prepare_create(ResourceData({"display_name": "ci", "public_key": "pem"}))

    operation = await invoke(mock_fusion_client, body)

    assert isinstance(operation, SyntheticOperation)
    assert operation.resource_id == "ac-1"
    assert body.display_name == "ci"


@pytest.mark.asyncio
async def test_api_client_delete_wraps_synthetic_operation(mock_fusion_client):
    invoke = ApiClientProvider().prepare_delete(mock_fusion_client, ResourceData(resource_id="ac-1"))

    operation = await invoke(mock_fusion_client, None)

    assert operation.succeeded is True
    mock_fusion_client.delete_api_client.assert_awaited_once_with("ac-1")


def test_api_client_cannot_be_updated(mock_fusion_client):
    data = ResourceData({"display_name": "new"}, state={"display_name": "old"}, resource_id="ac-1")

    with pytest.raises(ImmutableFieldChangedError):
        ApiClientProvider().prepare_update(mock_fusion_client, data)
