"""
API client resource kind.

The API clients endpoint completes synchronously and returns the object
itself rather than an Operation; create and delete are wrapped in
synthetic operations so the lifecycle stays uniform.
"""

from typing import TYPE_CHECKING, Any

from fusion_ops.models.operation import SyntheticOperation
from fusion_ops.models.resources import ApiClient, ApiClientPost
from fusion_ops.resources.base import ResourceProvider
from fusion_ops.resources.data import ResourceData

if TYPE_CHECKING:
    from fusion_ops.client.rest_client import FusionClient


class ApiClientProvider(ResourceProvider):
    kind = "api_client"
    import_groups = ("api-clients",)

    def prepare_create(self, data):
        body = ApiClientPost(
            display_name=data.get_str("display_name"),
            public_key=data.get_str("public_key"),
        )

        async def invoke(client: "FusionClient", body: ApiClientPost):
            api_client = await client.create_api_client(body)
            return SyntheticOperation.for_resource(api_client.id, "CreateApiClient")

        return invoke, body

    async def read_resource(self, client, data):
        api_client = await client.get_api_client_by_id(data.id)
        self.load(api_client, data)

    @staticmethod
    def load(api_client: ApiClient, data: ResourceData) -> None:
        data.set("display_name", api_client.display_name)
        data.set("public_key", api_client.public_key)
        data.set("name", api_client.name)
        data.set("issuer", api_client.issuer)
        data.set("creator_id", api_client.creator_id)
        data.set("last_key_update", api_client.last_key_update)
        data.set("last_used", api_client.last_used)

    def prepare_update(self, client, data):
        self.check_immutable_fields_except(data)

        async def invoke(client: "FusionClient", patch: Any):
            return SyntheticOperation.for_resource(data.id, "UpdateApiClient")

        return invoke, []

    def prepare_delete(self, client, data):
        resource_id = data.id

        async def invoke(client: "FusionClient", body: Any):
            await client.delete_api_client(resource_id)
            return SyntheticOperation.for_resource(resource_id, "DeleteApiClient")

        return invoke

    async def resolve_import(self, client, fields):
        api_client = await client.get_api_client_by_id(fields["api-clients"])
        return api_client.id
