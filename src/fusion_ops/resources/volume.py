"""
Volume resource kind.

Deleting a volume is a sequence: clear its host access, mark it destroyed,
and only when eradicate_on_delete is set actually delete it. A destroyed
volume stays recoverable until the control plane eradicates it.

Only growing a volume is supported; shrinking could lose data.
"""

import asyncio
import functools
from typing import TYPE_CHECKING, Any, Optional

import structlog

from fusion_ops.client.exceptions import FusionNotFoundError
from fusion_ops.models.resources import (
    NullableBoolean,
    NullableSize,
    NullableString,
    Volume,
    VolumePatch,
    VolumePost,
)
from fusion_ops.operations.orchestrator import raise_if_cancelled
from fusion_ops.resources.base import ResourceProvider
from fusion_ops.resources.data import ResourceData
from fusion_ops.utils.data_units import convert_data_units

if TYPE_CHECKING:
    from fusion_ops.client.rest_client import FusionClient
    from fusion_ops.operations.poller import OperationPoller

logger = structlog.get_logger(__name__)

MUTABLE_FIELDS = (
    "display_name",
    "size",
    "storage_class_name",
    "placement_group_name",
    "protection_policy_name",
    "host_names",
    "eradicate_on_delete",
    "source_link",
)


class VolumeSizeError(ValueError):
    """Raised when an update would shrink a volume."""


def _hosts(value: Any) -> list[str]:
    return sorted(value or [])


def _size(value: Any) -> int:
    return convert_data_units(value) if value not in (None, "") else 0


class VolumeProvider(ResourceProvider):
    kind = "volume"
    import_groups = ("tenants", "tenant-spaces", "volumes")

    def prepare_create(self, data):
        name = data.get_str("name")
        tenant = data.get_str("tenant_name")
        tenant_space = data.get_str("tenant_space_name")

        body = VolumePost(
            name=name,
            display_name=data.get_str("display_name", name),
            size=_size(data.get("size")),
            storage_class=data.get_str("storage_class_name"),
            placement_group=data.get_str("placement_group_name"),
            protection_policy=data.get("protection_policy_name") or None,
            source_link=data.get("source_link") or None,
        )

        async def invoke(client: "FusionClient", body: VolumePost):
            return await client.create_volume(body, tenant, tenant_space)

        return invoke, body

    async def plan_enrichment(self, client, data, resource_id):
        hosts = _hosts(data.get("host_names"))
        if not hosts:
            return []
        patch = VolumePatch(host_access_policies=NullableString(value=",".join(hosts)))
        return [
            (
                "host_names",
                functools.partial(
                    client.update_volume,
                    patch,
                    data.get_str("tenant_name"),
                    data.get_str("tenant_space_name"),
                    data.get_str("name"),
                ),
            )
        ]

    async def read_resource(self, client, data):
        volume = await client.get_volume_by_id(data.id)
        self.load(volume, data)

    @staticmethod
    def load(volume: Volume, data: ResourceData) -> None:
        data.set("name", volume.name)
        data.set("display_name", volume.display_name)
        data.set("size", volume.size)
        data.set("tenant_name", volume.tenant.name if volume.tenant else "")
        data.set("tenant_space_name", volume.tenant_space.name if volume.tenant_space else "")
        data.set("storage_class_name", volume.storage_class.name if volume.storage_class else "")
        data.set("placement_group_name", volume.placement_group.name if volume.placement_group else "")
        data.set(
            "protection_policy_name",
            volume.protection_policy.name if volume.protection_policy else "",
        )
        data.set("host_names", _hosts(policy.name for policy in volume.host_access_policies))

    def field_changed(self, data, key):
        if key == "host_names":
            return _hosts(data.config.get(key)) != _hosts(data.state.get(key))
        if key == "size":
            return _size(data.config.get(key)) != _size(data.state.get(key))
        if key == "protection_policy_name":
            return (data.config.get(key) or "") != (data.state.get(key) or "")
        return super().field_changed(data, key)

    def prepare_update(self, client, data):
        self.check_immutable_fields_except(data, *MUTABLE_FIELDS)

        name = data.get_str("name")
        tenant = data.get_str("tenant_name")
        tenant_space = data.get_str("tenant_space_name")

        patches: list[VolumePatch] = []
        if self.field_changed(data, "display_name"):
            patches.append(VolumePatch(display_name=NullableString(value=data.get_str("display_name", name))))

        if self.field_changed(data, "protection_policy_name"):
            patches.append(
                VolumePatch(protection_policy=NullableString(value=data.get_str("protection_policy_name")))
            )

        # Hosts must be detached while the volume moves between placement groups
        moving = self.field_changed(data, "placement_group_name")
        if moving:
            patches.append(VolumePatch(host_access_policies=NullableString(value="")))

        if self.field_changed(data, "storage_class_name") or moving:
            patch = VolumePatch()
            if self.field_changed(data, "storage_class_name"):
                patch = patch.model_copy(
                    update={"storage_class": NullableString(value=data.get_str("storage_class_name"))}
                )
            if moving:
                patch = patch.model_copy(
                    update={"placement_group": NullableString(value=data.get_str("placement_group_name"))}
                )
            patches.append(patch)

        if self.field_changed(data, "host_names") or moving:
            hosts = ",".join(_hosts(data.config.get("host_names")))
            patches.append(VolumePatch(host_access_policies=NullableString(value=hosts)))

        if self.field_changed(data, "size"):
            new_size = _size(data.config.get("size"))
            current_size = _size(data.state.get("size"))
            if new_size < current_size:
                raise VolumeSizeError(
                    f"volume '{name}' cannot shrink from {current_size} to {new_size} bytes"
                )
            patches.append(VolumePatch(size=NullableSize(value=new_size)))

        if data.get("source_link") and self.field_changed(data, "source_link"):
            patches.append(VolumePatch(source_link=NullableString(value=data.get_str("source_link"))))

        async def invoke(client: "FusionClient", patch: VolumePatch):
            return await client.update_volume(patch, tenant, tenant_space, name)

        return invoke, patches

    async def before_delete(
        self,
        client: "FusionClient",
        poller: "OperationPoller",
        data: ResourceData,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        name = data.get_str("name")
        tenant = data.get_str("tenant_name")
        tenant_space = data.get_str("tenant_space_name")
        target = f"volume/{name}"

        patches = [
            (
                "Removing host assignments before deleting volume",
                VolumePatch(host_access_policies=NullableString(value="")),
            )
        ]
        if data.get("eradicate_on_delete", False):
            patches.append(
                (
                    "Destroying volume before eradication",
                    VolumePatch(destroyed=NullableBoolean(value=True)),
                )
            )

        for message, patch in patches:
            raise_if_cancelled(cancel_event, target)
            logger.debug(message, volume=name)
            try:
                operation = await client.update_volume(patch, tenant, tenant_space, name)
            except FusionNotFoundError:
                # the delete itself then sees the same 404 and settles as removed
                logger.debug("Volume already removed", volume=name)
                return
            await poller.wait_for_success(operation, cancel_event=cancel_event)

    def prepare_delete(self, client, data):
        name = data.get_str("name")
        tenant = data.get_str("tenant_name")
        tenant_space = data.get_str("tenant_space_name")

        if data.get("eradicate_on_delete", False):

            async def eradicate(client: "FusionClient", body: Any):
                return await client.delete_volume(tenant, tenant_space, name)

            return eradicate

        async def destroy(client: "FusionClient", body: Any):
            patch = VolumePatch(destroyed=NullableBoolean(value=True))
            return await client.update_volume(patch, tenant, tenant_space, name)

        return destroy

    async def resolve_import(self, client, fields):
        volume = await client.get_volume(fields["tenants"], fields["tenant-spaces"], fields["volumes"])
        return volume.id
