"""
Pydantic data models for the Fusion operation engine.

Includes:
- Enums (OperationStatus, PureCode, MutationState)
- Operation models (Operation, SyntheticOperation, OperationErrorPayload)
- Resource payloads (Array, PlacementGroup, Snapshot, Volume, ...)
"""

from fusion_ops.models.enums import MutationState, OperationStatus, PureCode
from fusion_ops.models.operation import (
    AnyOperation,
    Operation,
    OperationErrorPayload,
    OperationResult,
    ResourceReference,
    SyntheticOperation,
)
from fusion_ops.models.resources import (
    ApiClient,
    ApiClientPost,
    Array,
    ArrayPatch,
    ArrayPost,
    ItemList,
    NamedReference,
    NullableBoolean,
    NullableSize,
    NullableString,
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

__all__ = [
    "MutationState",
    "OperationStatus",
    "PureCode",
    "AnyOperation",
    "Operation",
    "OperationErrorPayload",
    "OperationResult",
    "ResourceReference",
    "SyntheticOperation",
    "ApiClient",
    "ApiClientPost",
    "Array",
    "ArrayPatch",
    "ArrayPost",
    "ItemList",
    "NamedReference",
    "NullableBoolean",
    "NullableSize",
    "NullableString",
    "PlacementGroup",
    "PlacementGroupPatch",
    "PlacementGroupPost",
    "ProtectionPolicy",
    "ProtectionPolicyPost",
    "Snapshot",
    "SnapshotPatch",
    "Tenant",
    "TenantSpace",
    "Volume",
    "VolumePatch",
    "VolumePost",
]
