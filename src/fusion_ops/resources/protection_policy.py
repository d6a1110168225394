"""
Protection policy resource kind.

A policy has two objectives: how often snapshots are taken (RPO) and how
long they are kept (retention), both sent as ISO8601 minute durations.
Policies cannot be changed after creation.
"""

from typing import TYPE_CHECKING, Any

import structlog

from fusion_ops.models.operation import SyntheticOperation
from fusion_ops.models.resources import ProtectionPolicy, ProtectionPolicyPost
from fusion_ops.operations.orchestrator import destroy_then_delete_snapshot
from fusion_ops.resources.base import ResourceProvider
from fusion_ops.resources.data import ResourceData
from fusion_ops.utils.time_periods import (
    TimePeriodFormatError,
    iso8601_minutes_to_int,
    minutes_to_iso8601,
    parse_human_readable_period,
)

if TYPE_CHECKING:
    from fusion_ops.client.rest_client import FusionClient

logger = structlog.get_logger(__name__)

LOCAL_RPO_MIN_MINUTES = 10
LOCAL_RETENTION_MIN_MINUTES = 10

_PERIOD_FIELDS = ("local_rpo", "local_retention")


def _minutes(value: Any) -> int:
    return parse_human_readable_period(str(value))


def build_objectives(local_rpo: Any, local_retention: Any) -> list[dict[str, str]]:
    """
    Objectives for a ProtectionPolicyPost.

    Raises:
        TimePeriodFormatError: A period is malformed or below the minimum
    """
    rpo = _minutes(local_rpo)
    retention = _minutes(local_retention)
    if rpo < LOCAL_RPO_MIN_MINUTES:
        raise TimePeriodFormatError(f"local_rpo must be at least {LOCAL_RPO_MIN_MINUTES} minutes")
    if retention < LOCAL_RETENTION_MIN_MINUTES:
        raise TimePeriodFormatError(
            f"local_retention must be at least {LOCAL_RETENTION_MIN_MINUTES} minutes"
        )
    return [
        {"type": "RPO", "rpo": minutes_to_iso8601(rpo)},
        {"type": "Retention", "after": minutes_to_iso8601(retention)},
    ]


class ProtectionPolicyProvider(ResourceProvider):
    kind = "protection_policy"
    import_groups = ("protection-policies",)

    def prepare_create(self, data):
        name = data.get_str("name")
        body = ProtectionPolicyPost(
            name=name,
            display_name=data.get_str("display_name", name),
            objectives=build_objectives(data.get("local_rpo"), data.get("local_retention")),
        )

        async def invoke(client: "FusionClient", body: ProtectionPolicyPost):
            return await client.create_protection_policy(body)

        return invoke, body

    async def read_resource(self, client, data):
        policy = await client.get_protection_policy_by_id(data.id)
        self.load(policy, data)

    @staticmethod
    def load(policy: ProtectionPolicy, data: ResourceData) -> None:
        data.set("name", policy.name)
        data.set("display_name", policy.display_name)
        for objective in policy.objectives:
            if objective.get("type") == "RPO":
                data.set("local_rpo", iso8601_minutes_to_int(objective.get("rpo", "")))
            elif objective.get("type") == "Retention":
                data.set("local_retention", str(iso8601_minutes_to_int(objective.get("after", ""))))

    def field_changed(self, data, key):
        if key in _PERIOD_FIELDS:
            old = data.state.get(key)
            new = data.config.get(key)
            if old is None or new is None:
                return old != new
            return _minutes(old) != _minutes(new)
        return super().field_changed(data, key)

    def prepare_update(self, client, data):
        self.check_immutable_fields_except(data, "destroy_snapshots_on_delete")
        resource_id = data.id

        async def invoke(client: "FusionClient", patch: Any):
            return SyntheticOperation.for_resource(resource_id, "UpdateProtectionPolicy")

        return invoke, []

    def prepare_delete(self, client, data):
        name = data.get_str("name")

        async def invoke(client: "FusionClient", body: Any):
            return await client.delete_protection_policy(name)

        return invoke

    async def list_dependents(self, client, data):
        if not data.get("destroy_snapshots_on_delete", False):
            return []
        snapshots = await client.query_snapshots(protection_policy_id=data.id)
        if snapshots.items:
            logger.info(
                "Deleting snapshots in order to delete protection policy",
                protection_policy=data.get_str("name"),
                count=len(snapshots.items),
            )
        return snapshots.items

    async def delete_dependent(self, client, poller, dependent, cancel_event=None):
        return await destroy_then_delete_snapshot(client, poller, dependent, cancel_event=cancel_event)

    async def resolve_import(self, client, fields):
        policy = await client.get_protection_policy(fields["protection-policies"])
        return policy.id
