"""
Resource kinds and the generic lifecycle that drives them.

Main Components:
    - ResourceData: Desired config and observed state of one resource
    - ResourceProvider: Per-kind create/read/update/delete preparation
    - ResourceLifecycle: Runs a provider's writes through the poller
    - ArrayProvider, PlacementGroupProvider, VolumeProvider,
      ProtectionPolicyProvider, ApiClientProvider
"""

from fusion_ops.resources.api_client import ApiClientProvider
from fusion_ops.resources.array import ArrayProvider
from fusion_ops.resources.base import InvokeWrite, ResourceLifecycle, ResourceProvider
from fusion_ops.resources.data import ResourceData
from fusion_ops.resources.placement_group import PlacementGroupProvider
from fusion_ops.resources.protection_policy import ProtectionPolicyProvider, build_objectives
from fusion_ops.resources.volume import VolumeProvider, VolumeSizeError

__all__ = [
    "ResourceData",
    "ResourceProvider",
    "ResourceLifecycle",
    "InvokeWrite",
    "ArrayProvider",
    "PlacementGroupProvider",
    "VolumeProvider",
    "VolumeSizeError",
    "ProtectionPolicyProvider",
    "build_objectives",
    "ApiClientProvider",
]
