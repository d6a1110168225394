"""
Array resource kind.

The create endpoint does not accept maintenance or unavailable mode, so
both are applied as follow-up patches once the array exists.
"""

import functools
from typing import TYPE_CHECKING, Any

from fusion_ops.models.resources import Array, ArrayPatch, ArrayPost, NullableBoolean, NullableString
from fusion_ops.resources.base import InvokeWrite, ResourceProvider
from fusion_ops.resources.data import ResourceData

if TYPE_CHECKING:
    from fusion_ops.client.rest_client import FusionClient

MUTABLE_FIELDS = ("display_name", "host_name", "maintenance_mode", "unavailable_mode")


def _ref_name(reference: Any) -> str:
    return reference.name if reference is not None else ""


class ArrayProvider(ResourceProvider):
    kind = "array"
    import_groups = ("regions", "availability-zones", "arrays")

    def prepare_create(self, data: ResourceData) -> tuple[InvokeWrite, ArrayPost]:
        name = data.get_str("name")
        region = data.get_str("region_name")
        availability_zone = data.get_str("availability_zone_name")

        body = ArrayPost(
            name=name,
            display_name=data.get_str("display_name", name),
            apartment_id=data.get_str("apartment_id"),
            host_name=data.get_str("host_name"),
            hardware_type=data.get_str("hardware_type_name"),
            appliance_id=data.get_str("appliance_id"),
        )

        async def invoke(client: "FusionClient", body: ArrayPost):
            return await client.create_array(body, region, availability_zone)

        return invoke, body

    async def plan_enrichment(self, client, data, resource_id):
        array = await client.get_array_by_id(resource_id)
        region = data.get_str("region_name")
        availability_zone = data.get_str("availability_zone_name")

        patches = []
        maintenance_mode = bool(data.get("maintenance_mode", False))
        if array.maintenance_mode != maintenance_mode:
            patches.append(
                ("maintenance_mode", ArrayPatch(maintenance_mode=NullableBoolean(value=maintenance_mode)))
            )
        unavailable_mode = bool(data.get("unavailable_mode", False))
        if array.unavailable_mode != unavailable_mode:
            patches.append(
                ("unavailable_mode", ArrayPatch(unavailable_mode=NullableBoolean(value=unavailable_mode)))
            )

        return [
            (step, functools.partial(client.update_array, patch, region, availability_zone, array.name))
            for step, patch in patches
        ]

    async def read_resource(self, client, data):
        array = await client.get_array_by_id(data.id)
        self.load(array, data)

    @staticmethod
    def load(array: Array, data: ResourceData) -> None:
        data.set("name", array.name)
        data.set("display_name", array.display_name)
        data.set("region_name", _ref_name(array.region))
        data.set("availability_zone_name", _ref_name(array.availability_zone))
        data.set("hardware_type_name", _ref_name(array.hardware_type))
        data.set("appliance_id", array.appliance_id)
        data.set("apartment_id", array.apartment_id)
        data.set("host_name", array.host_name)
        data.set("maintenance_mode", array.maintenance_mode)
        data.set("unavailable_mode", array.unavailable_mode)

    def prepare_update(self, client, data):
        self.check_immutable_fields_except(data, *MUTABLE_FIELDS)

        name = data.get_str("name")
        region = data.get_str("region_name")
        availability_zone = data.get_str("availability_zone_name")

        patches: list[ArrayPatch] = []
        if data.has_change("display_name"):
            patches.append(ArrayPatch(display_name=NullableString(value=data.get_str("display_name", name))))
        if data.has_change("host_name"):
            patches.append(ArrayPatch(host_name=NullableString(value=data.get_str("host_name"))))
        if data.has_change("maintenance_mode"):
            patches.append(ArrayPatch(maintenance_mode=NullableBoolean(value=bool(data.get("maintenance_mode")))))
        if data.has_change("unavailable_mode"):
            patches.append(ArrayPatch(unavailable_mode=NullableBoolean(value=bool(data.get("unavailable_mode")))))

        async def invoke(client: "FusionClient", patch: ArrayPatch):
            return await client.update_array(patch, region, availability_zone, name)

        return invoke, patches

    def prepare_delete(self, client, data):
        name = data.get_str("name")
        region = data.get_str("region_name")
        availability_zone = data.get_str("availability_zone_name")

        async def invoke(client: "FusionClient", body: Any):
            return await client.delete_array(region, availability_zone, name)

        return invoke

    async def resolve_import(self, client, fields):
        array = await client.get_array(
            fields["regions"], fields["availability-zones"], fields["arrays"]
        )
        return array.id
