"""
Placement group resource kind.

The array a placement group lives on can only be chosen by patching after
creation. Deleting a placement group that still holds snapshots fails, so
with destroy_snapshots_on_delete set its snapshots are torn down first.
"""

import functools
from typing import TYPE_CHECKING, Any

import structlog

from fusion_ops.models.resources import NullableString, PlacementGroup, PlacementGroupPatch, PlacementGroupPost
from fusion_ops.operations.orchestrator import destroy_then_delete_snapshot
from fusion_ops.resources.base import ResourceProvider
from fusion_ops.resources.data import ResourceData

if TYPE_CHECKING:
    from fusion_ops.client.rest_client import FusionClient

logger = structlog.get_logger(__name__)

MUTABLE_FIELDS = ("display_name", "array_name", "destroy_snapshots_on_delete")


class PlacementGroupProvider(ResourceProvider):
    kind = "placement_group"
    import_groups = ("tenants", "tenant-spaces", "placement-groups")

    def prepare_create(self, data):
        name = data.get_str("name")
        tenant = data.get_str("tenant_name")
        tenant_space = data.get_str("tenant_space_name")

        body = PlacementGroupPost(
            name=name,
            display_name=data.get_str("display_name", name),
            region=data.get_str("region_name"),
            availability_zone=data.get_str("availability_zone_name"),
            storage_service=data.get_str("storage_service_name"),
        )

        async def invoke(client: "FusionClient", body: PlacementGroupPost):
            return await client.create_placement_group(body, tenant, tenant_space)

        return invoke, body

    async def plan_enrichment(self, client, data, resource_id):
        array = data.get_str("array_name")
        if not array:
            return []
        patch = PlacementGroupPatch(array=NullableString(value=array))
        return [
            (
                "array",
                functools.partial(
                    client.update_placement_group,
                    patch,
                    data.get_str("tenant_name"),
                    data.get_str("tenant_space_name"),
                    data.get_str("name"),
                ),
            )
        ]

    async def read_resource(self, client, data):
        placement_group = await client.get_placement_group_by_id(data.id)
        self.load(placement_group, data)

    @staticmethod
    def load(placement_group: PlacementGroup, data: ResourceData) -> None:
        data.set("name", placement_group.name)
        data.set("display_name", placement_group.display_name)
        data.set("tenant_name", placement_group.tenant.name if placement_group.tenant else "")
        data.set(
            "tenant_space_name",
            placement_group.tenant_space.name if placement_group.tenant_space else "",
        )
        data.set(
            "availability_zone_name",
            placement_group.availability_zone.name if placement_group.availability_zone else "",
        )
        data.set(
            "storage_service_name",
            placement_group.storage_service.name if placement_group.storage_service else "",
        )
        data.set("array_name", placement_group.array.name if placement_group.array else "")

    def field_changed(self, data, key):
        # region is not reported back; the availability zone pins it
        if key == "region_name":
            return False
        return super().field_changed(data, key)

    def prepare_update(self, client, data):
        self.check_immutable_fields_except(data, *MUTABLE_FIELDS)

        name = data.get_str("name")
        tenant = data.get_str("tenant_name")
        tenant_space = data.get_str("tenant_space_name")

        patches: list[PlacementGroupPatch] = []
        if data.has_change("display_name"):
            patches.append(
                PlacementGroupPatch(display_name=NullableString(value=data.get_str("display_name", name)))
            )
        if data.has_change("array_name"):
            patches.append(PlacementGroupPatch(array=NullableString(value=data.get_str("array_name"))))

        async def invoke(client: "FusionClient", patch: PlacementGroupPatch):
            return await client.update_placement_group(patch, tenant, tenant_space, name)

        return invoke, patches

    def prepare_delete(self, client, data):
        name = data.get_str("name")
        tenant = data.get_str("tenant_name")
        tenant_space = data.get_str("tenant_space_name")

        async def invoke(client: "FusionClient", body: Any):
            return await client.delete_placement_group(tenant, tenant_space, name)

        return invoke

    async def list_dependents(self, client, data):
        if not data.get("destroy_snapshots_on_delete", False):
            return []
        snapshots = await client.list_snapshots(
            data.get_str("tenant_name"),
            data.get_str("tenant_space_name"),
            placement_group=data.get_str("name"),
        )
        if snapshots.items:
            logger.info(
                "Deleting snapshots in order to delete placement group",
                placement_group=data.get_str("name"),
                count=len(snapshots.items),
            )
        return snapshots.items

    async def delete_dependent(self, client, poller, dependent, cancel_event=None):
        return await destroy_then_delete_snapshot(client, poller, dependent, cancel_event=cancel_event)

    async def resolve_import(self, client, fields):
        placement_group = await client.get_placement_group(
            fields["tenants"], fields["tenant-spaces"], fields["placement-groups"]
        )
        return placement_group.id
