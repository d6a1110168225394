"""
Resource payload models for the representative resource kinds.

Only the fields the orchestration workflows read or write are modelled;
unknown fields from the server are ignored. Patch bodies wrap each value in
a nullable container ({"value": ...}) so that "unset" and "set to empty"
stay distinguishable; serialize them with to_body().
"""

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class FusionModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_body(self) -> dict[str, Any]:
        """JSON request body, omitting unset optional fields."""
        return self.model_dump(mode="json", exclude_none=True)


class NamedReference(FusionModel):
    id: str = ""
    name: str = ""
    kind: str = ""
    self_link: str = ""


class NullableString(FusionModel):
    value: str


class NullableBoolean(FusionModel):
    value: bool


class NullableSize(FusionModel):
    value: int


class ItemList(FusionModel, Generic[T]):
    """Paged list envelope returned by List endpoints."""

    count: int = 0
    more_items_remaining: bool = False
    items: list[T] = Field(default_factory=list)


# === Tenancy ===

class Tenant(FusionModel):
    id: str = ""
    name: str
    display_name: str = ""


class TenantSpace(FusionModel):
    id: str = ""
    name: str
    display_name: str = ""
    tenant: Optional[NamedReference] = None


# === Arrays ===

class Array(FusionModel):
    id: str = ""
    name: str
    display_name: str = ""
    region: Optional[NamedReference] = None
    availability_zone: Optional[NamedReference] = None
    hardware_type: Optional[NamedReference] = None
    appliance_id: str = ""
    apartment_id: str = ""
    host_name: str = ""
    maintenance_mode: bool = False
    unavailable_mode: bool = False


class ArrayPost(FusionModel):
    name: str
    display_name: str = ""
    appliance_id: str = ""
    apartment_id: str = ""
    host_name: str = ""
    hardware_type: str = ""


class ArrayPatch(FusionModel):
    display_name: Optional[NullableString] = None
    host_name: Optional[NullableString] = None
    maintenance_mode: Optional[NullableBoolean] = None
    unavailable_mode: Optional[NullableBoolean] = None


# === Placement groups ===

class PlacementGroup(FusionModel):
    id: str = ""
    name: str
    display_name: str = ""
    tenant: Optional[NamedReference] = None
    tenant_space: Optional[NamedReference] = None
    availability_zone: Optional[NamedReference] = None
    storage_service: Optional[NamedReference] = None
    array: Optional[NamedReference] = None


class PlacementGroupPost(FusionModel):
    name: str
    display_name: str = ""
    region: str = ""
    availability_zone: str = ""
    storage_service: str = ""


class PlacementGroupPatch(FusionModel):
    display_name: Optional[NullableString] = None
    array: Optional[NullableString] = None


# === Snapshots ===

class Snapshot(FusionModel):
    id: str = ""
    name: str
    display_name: str = ""
    tenant: Optional[NamedReference] = None
    tenant_space: Optional[NamedReference] = None
    placement_group: Optional[NamedReference] = None
    protection_policy: Optional[NamedReference] = None
    destroyed: bool = False
    time_remaining: Optional[int] = None

    @property
    def tenant_name(self) -> str:
        return self.tenant.name if self.tenant else ""

    @property
    def tenant_space_name(self) -> str:
        return self.tenant_space.name if self.tenant_space else ""


class SnapshotPatch(FusionModel):
    display_name: Optional[NullableString] = None
    destroyed: Optional[NullableBoolean] = None


# === Volumes ===

class Volume(FusionModel):
    id: str = ""
    name: str
    display_name: str = ""
    tenant: Optional[NamedReference] = None
    tenant_space: Optional[NamedReference] = None
    size: int = 0
    storage_class: Optional[NamedReference] = None
    placement_group: Optional[NamedReference] = None
    protection_policy: Optional[NamedReference] = None
    host_access_policies: list[NamedReference] = Field(default_factory=list)
    destroyed: bool = False


class VolumePost(FusionModel):
    name: str
    display_name: str = ""
    size: int
    storage_class: str
    placement_group: str
    protection_policy: Optional[str] = None
    source_link: Optional[str] = None


class VolumePatch(FusionModel):
    display_name: Optional[NullableString] = None
    size: Optional[NullableSize] = None
    host_access_policies: Optional[NullableString] = None
    destroyed: Optional[NullableBoolean] = None
    storage_class: Optional[NullableString] = None
    placement_group: Optional[NullableString] = None
    protection_policy: Optional[NullableString] = None
    source_link: Optional[NullableString] = None


# === Protection policies ===

class ProtectionPolicy(FusionModel):
    id: str = ""
    name: str
    display_name: str = ""
    objectives: list[dict[str, Any]] = Field(default_factory=list)


class ProtectionPolicyPost(FusionModel):
    name: str
    display_name: str = ""
    objectives: list[dict[str, Any]] = Field(default_factory=list)


# === API clients (synchronous endpoint, no operations) ===

class ApiClient(FusionModel):
    id: str = ""
    name: str = ""
    display_name: str = ""
    issuer: str = ""
    public_key: str = ""
    creator_id: str = ""
    last_key_update: int = 0
    last_used: int = 0


class ApiClientPost(FusionModel):
    display_name: str
    public_key: str
