"""
Fusion REST client implementation.

Communicates with the Fusion API using httpx AsyncClient. Supports:
- Bearer-token authentication and a fixed user agent
- Typed request/response models for the representative resource kinds
- Operation fetch/list for the poller and bulk helpers
- Mapping of non-2xx responses to the transport error taxonomy

Mutating calls return the Operation the server responds with; they never
wait for it. The only exception is the API clients endpoint, which
completes synchronously and returns the created object.
"""

from typing import Any, Optional, TypeVar
from urllib.parse import quote

import httpx
import structlog
from pydantic import BaseModel

from fusion_ops import __version__
from fusion_ops.client.base_client import BaseFusionClient
from fusion_ops.client.exceptions import classify_http_error
from fusion_ops.models.operation import Operation
from fusion_ops.models.resources import (
    ApiClient,
    ApiClientPost,
    Array,
    ArrayPatch,
    ArrayPost,
    ItemList,
    PlacementGroup,
    PlacementGroupPatch,
    PlacementGroupPost,
    ProtectionPolicy,
    ProtectionPolicyPost,
    Snapshot,
    SnapshotPatch,
    Tenant,
    TenantSpace,
    Volume,
    VolumePatch,
    VolumePost,
)

logger = structlog.get_logger(__name__)

BASE_PATH = "/api/1.0"
USER_AGENT = f"fusion-ops/{__version__}"

ModelT = TypeVar("ModelT", bound=BaseModel)


def _seg(value: str) -> str:
    """Quote a single path segment."""
    return quote(value, safe="")


def _tenant_space_path(tenant: str, tenant_space: str) -> str:
    return f"/tenants/{_seg(tenant)}/tenant-spaces/{_seg(tenant_space)}"


def _availability_zone_path(region: str, availability_zone: str) -> str:
    return f"/regions/{_seg(region)}/availability-zones/{_seg(availability_zone)}"


class FusionClient(BaseFusionClient):
    """
    Fusion API client using httpx for async HTTP communication.

    The underlying AsyncClient is created lazily and reused for connection
    pooling. One instance can be shared by concurrent workers: apart from
    the authorization header it holds no per-call state.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str,
        timeout: float = 30.0,
        connection_limits: Optional[httpx.Limits] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Fusion client.

        Args:
            base_url: Control plane host, e.g. https://api.pure1.purestorage.com/fusion
            access_token: Bearer token (see fusion_ops.client.auth)
            timeout: Request timeout in seconds
            connection_limits: httpx connection pool limits
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        super().__init__(base_url, timeout)
        self._access_token = access_token
        self._connection_limits = connection_limits or httpx.Limits(
            max_keepalive_connections=10,
            max_connections=20,
            keepalive_expiry=30.0,
        )
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        logger.info(
            "Fusion client initialized",
            base_url=self.base_url,
            timeout=timeout,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url + BASE_PATH,
                timeout=httpx.Timeout(self.timeout),
                limits=self._connection_limits,
                headers={
                    "Authorization": f"Bearer {self._access_token}",
                    "User-Agent": USER_AGENT,
                },
                transport=self._transport,
                follow_redirects=True,
            )
            logger.debug("Created new httpx AsyncClient")
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        body: Optional[BaseModel | dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Send a request and return the decoded JSON body."""
        if isinstance(body, BaseModel):
            payload = body.model_dump(mode="json", exclude_none=True)
        else:
            payload = body

        client = await self._get_client()
        try:
            response = await client.request(
                method,
                path,
                json=payload,
                params={k: v for k, v in (params or {}).items() if v is not None},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            error = classify_http_error(e)
            logger.warning(
                "Fusion request failed",
                method=method,
                path=path,
                error=error.message,
                error_type=type(error).__name__,
            )
            raise error from e

        if not response.content:
            return None
        return response.json()

    async def _write(
        self,
        method: str,
        path: str,
        body: Optional[BaseModel | dict[str, Any]] = None,
    ) -> Operation:
        data = await self._request(method, path, body)
        operation = Operation.model_validate(data)
        logger.debug(
            "Submitted operation",
            method=method,
            path=path,
            operation_id=operation.id,
            request_type=operation.request_type,
            status=operation.status.value,
        )
        return operation

    async def _get(self, path: str, model: type[ModelT], params: Optional[dict[str, Any]] = None) -> ModelT:
        data = await self._request("GET", path, params=params)
        return model.model_validate(data)

    # === Operations ===

    async def get_operation(self, operation_id: str) -> Operation:
        return await self._get(f"/operations/{_seg(operation_id)}", Operation)

    async def list_operations(self) -> ItemList[Operation]:
        return await self._get("/operations", ItemList[Operation])

    # === Tenancy ===

    async def list_tenants(self) -> ItemList[Tenant]:
        return await self._get("/tenants", ItemList[Tenant])

    async def list_tenant_spaces(self, tenant: str) -> ItemList[TenantSpace]:
        return await self._get(f"/tenants/{_seg(tenant)}/tenant-spaces", ItemList[TenantSpace])

    # === Arrays ===

    async def create_array(self, body: ArrayPost, region: str, availability_zone: str) -> Operation:
        return await self._write("POST", _availability_zone_path(region, availability_zone) + "/arrays", body)

    async def get_array_by_id(self, array_id: str) -> Array:
        return await self._get(f"/resources/arrays/{_seg(array_id)}", Array)

    async def get_array(self, region: str, availability_zone: str, name: str) -> Array:
        path = _availability_zone_path(region, availability_zone) + f"/arrays/{_seg(name)}"
        return await self._get(path, Array)

    async def update_array(
        self, patch: ArrayPatch, region: str, availability_zone: str, name: str
    ) -> Operation:
        path = _availability_zone_path(region, availability_zone) + f"/arrays/{_seg(name)}"
        return await self._write("PATCH", path, patch)

    async def delete_array(self, region: str, availability_zone: str, name: str) -> Operation:
        path = _availability_zone_path(region, availability_zone) + f"/arrays/{_seg(name)}"
        return await self._write("DELETE", path)

    # === Placement groups ===

    async def create_placement_group(
        self, body: PlacementGroupPost, tenant: str, tenant_space: str
    ) -> Operation:
        return await self._write("POST", _tenant_space_path(tenant, tenant_space) + "/placement-groups", body)

    async def get_placement_group_by_id(self, placement_group_id: str) -> PlacementGroup:
        return await self._get(f"/resources/placement-groups/{_seg(placement_group_id)}", PlacementGroup)

    async def get_placement_group(self, tenant: str, tenant_space: str, name: str) -> PlacementGroup:
        path = _tenant_space_path(tenant, tenant_space) + f"/placement-groups/{_seg(name)}"
        return await self._get(path, PlacementGroup)

    async def list_placement_groups(self, tenant: str, tenant_space: str) -> ItemList[PlacementGroup]:
        return await self._get(
            _tenant_space_path(tenant, tenant_space) + "/placement-groups", ItemList[PlacementGroup]
        )

    async def update_placement_group(
        self, patch: PlacementGroupPatch, tenant: str, tenant_space: str, name: str
    ) -> Operation:
        path = _tenant_space_path(tenant, tenant_space) + f"/placement-groups/{_seg(name)}"
        return await self._write("PATCH", path, patch)

    async def delete_placement_group(self, tenant: str, tenant_space: str, name: str) -> Operation:
        path = _tenant_space_path(tenant, tenant_space) + f"/placement-groups/{_seg(name)}"
        return await self._write("DELETE", path)

    # === Snapshots ===

    async def list_snapshots(
        self,
        tenant: str,
        tenant_space: str,
        placement_group: Optional[str] = None,
        protection_policy: Optional[str] = None,
    ) -> ItemList[Snapshot]:
        return await self._get(
            _tenant_space_path(tenant, tenant_space) + "/snapshots",
            ItemList[Snapshot],
            params={"placement_group": placement_group, "protection_policy": protection_policy},
        )

    async def query_snapshots(self, protection_policy_id: Optional[str] = None) -> ItemList[Snapshot]:
        """Snapshots across all tenant spaces the caller can see."""
        return await self._get(
            "/resources/snapshots",
            ItemList[Snapshot],
            params={"protection_policy_id": protection_policy_id},
        )

    async def update_snapshot(
        self, patch: SnapshotPatch, tenant: str, tenant_space: str, name: str
    ) -> Operation:
        path = _tenant_space_path(tenant, tenant_space) + f"/snapshots/{_seg(name)}"
        return await self._write("PATCH", path, patch)

    async def delete_snapshot(self, tenant: str, tenant_space: str, name: str) -> Operation:
        path = _tenant_space_path(tenant, tenant_space) + f"/snapshots/{_seg(name)}"
        return await self._write("DELETE", path)

    # === Volumes ===

    async def create_volume(self, body: VolumePost, tenant: str, tenant_space: str) -> Operation:
        return await self._write("POST", _tenant_space_path(tenant, tenant_space) + "/volumes", body)

    async def get_volume_by_id(self, volume_id: str) -> Volume:
        return await self._get(f"/resources/volumes/{_seg(volume_id)}", Volume)

    async def get_volume(self, tenant: str, tenant_space: str, name: str) -> Volume:
        return await self._get(_tenant_space_path(tenant, tenant_space) + f"/volumes/{_seg(name)}", Volume)

    async def list_volumes(self, tenant: str, tenant_space: str) -> ItemList[Volume]:
        return await self._get(_tenant_space_path(tenant, tenant_space) + "/volumes", ItemList[Volume])

    async def update_volume(
        self, patch: VolumePatch, tenant: str, tenant_space: str, name: str
    ) -> Operation:
        path = _tenant_space_path(tenant, tenant_space) + f"/volumes/{_seg(name)}"
        return await self._write("PATCH", path, patch)

    async def delete_volume(self, tenant: str, tenant_space: str, name: str) -> Operation:
        path = _tenant_space_path(tenant, tenant_space) + f"/volumes/{_seg(name)}"
        return await self._write("DELETE", path)

    # === Protection policies ===

    async def create_protection_policy(self, body: ProtectionPolicyPost) -> Operation:
        return await self._write("POST", "/protection-policies", body)

    async def get_protection_policy_by_id(self, policy_id: str) -> ProtectionPolicy:
        return await self._get(f"/resources/protection-policies/{_seg(policy_id)}", ProtectionPolicy)

    async def get_protection_policy(self, name: str) -> ProtectionPolicy:
        return await self._get(f"/protection-policies/{_seg(name)}", ProtectionPolicy)

    async def delete_protection_policy(self, name: str) -> Operation:
        return await self._write("DELETE", f"/protection-policies/{_seg(name)}")

    # === API clients (synchronous endpoint) ===

    async def create_api_client(self, body: ApiClientPost) -> ApiClient:
        data = await self._request("POST", "/api-clients", body)
        return ApiClient.model_validate(data)

    async def get_api_client_by_id(self, api_client_id: str) -> ApiClient:
        return await self._get(f"/api-clients/{_seg(api_client_id)}", ApiClient)

    async def delete_api_client(self, api_client_id: str) -> None:
        await self._request("DELETE", f"/api-clients/{_seg(api_client_id)}")

    async def health_check(self) -> bool:
        """Lightweight reachability check via GET /tenants."""
        try:
            await self._request("GET", "/tenants", params={"limit": 1})
            return True
        except Exception as e:
            logger.warning("Fusion health check failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close the HTTP client connection."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            logger.debug("Closed Fusion client connection")
