"""
Resource-kind interface and the lifecycle driver built on it.

Each resource kind implements ResourceProvider: how to build the create
request, how to load server state, which patches an update needs, and how
to delete. ResourceLifecycle turns those pieces into compound mutations
driven by the operation poller; it never looks at concrete kinds.

Usage:
    lifecycle = ResourceLifecycle.from_settings(VolumeProvider(), client, poller, settings)
    data = ResourceData({"name": "vol1", "tenant_name": "t", ...})
    await lifecycle.create(data)
"""

import asyncio
import functools
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Sequence

import structlog

from fusion_ops.client.exceptions import FusionNotFoundError
from fusion_ops.logging_config import bind_mutation_context, clear_mutation_context
from fusion_ops.models.operation import AnyOperation
from fusion_ops.operations.exceptions import (
    CompoundMutationError,
    ImmutableFieldChangedError,
    UnsupportedResourceOperationError,
)
from fusion_ops.operations.orchestrator import (
    DEFAULT_RACE_BUDGET,
    DEFAULT_RACE_INTERVAL,
    CompoundMutation,
    MutationResult,
    TeardownResult,
    WriteCall,
    create_then_enrich,
    teardown_with_dependents,
)
from fusion_ops.resources.data import ResourceData
from fusion_ops.utils.self_link import parse_self_link

if TYPE_CHECKING:
    from fusion_ops.client.rest_client import FusionClient
    from fusion_ops.config import Settings
    from fusion_ops.operations.poller import OperationPoller

logger = structlog.get_logger(__name__)

# (client, request body) -> operation handle
InvokeWrite = Callable[["FusionClient", Any], Awaitable[AnyOperation]]


class ResourceProvider(ABC):
    """
    Per-kind behavior behind the generic lifecycle.

    Attributes:
        kind: snake_case kind name used in logs and metric labels
        import_groups: Path groups of the kind's self link, in order
    """

    kind: str = ""
    import_groups: tuple[str, ...] = ()

    @abstractmethod
    def prepare_create(self, data: ResourceData) -> tuple[InvokeWrite, Any]:
        """Return the create call and the request body it is invoked with."""

    async def plan_enrichment(
        self, client: "FusionClient", data: ResourceData, resource_id: str
    ) -> Sequence[tuple[str, WriteCall]]:
        """Follow-up writes for fields the create endpoint does not accept."""
        return []

    @abstractmethod
    async def read_resource(self, client: "FusionClient", data: ResourceData) -> None:
        """Load server state for data.id into `data`."""

    @abstractmethod
    def prepare_update(
        self, client: "FusionClient", data: ResourceData
    ) -> tuple[InvokeWrite, list[Any]]:
        """Return the update call and the patches to apply, in order."""

    @abstractmethod
    def prepare_delete(self, client: "FusionClient", data: ResourceData) -> InvokeWrite:
        """Return the delete call; it is invoked with a None body."""

    async def before_delete(
        self,
        client: "FusionClient",
        poller: "OperationPoller",
        data: ResourceData,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Writes that must settle before the delete is issued."""

    async def list_dependents(self, client: "FusionClient", data: ResourceData) -> Sequence[Any]:
        return []

    async def delete_dependent(
        self,
        client: "FusionClient",
        poller: "OperationPoller",
        dependent: Any,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Any:
        raise UnsupportedResourceOperationError(self.kind, "dependent deletion")

    async def resolve_import(self, client: "FusionClient", fields: dict[str, str]) -> str:
        """Resource id for the parsed self link of an existing resource."""
        raise UnsupportedResourceOperationError(self.kind, "import")

    def field_changed(self, data: ResourceData, key: str) -> bool:
        """Whether `key` changed; kinds override this for equivalent spellings."""
        return data.has_change(key)

    def check_immutable_fields_except(self, data: ResourceData, *mutable: str) -> None:
        """
        Raise before any request if a field outside `mutable` changed.

        Raises:
            ImmutableFieldChangedError: Lists every offending field
        """
        changed = [
            key for key in sorted(data.config) if key not in mutable and self.field_changed(data, key)
        ]
        if changed:
            raise ImmutableFieldChangedError(changed, resource_id=data.id)


class ResourceLifecycle:
    """
    Create/read/update/delete for one resource kind.

    Every write goes through the operation poller; a create or update is a
    compound mutation, a delete a teardown with the kind's dependents.
    """

    def __init__(
        self,
        provider: ResourceProvider,
        client: "FusionClient",
        poller: "OperationPoller",
        race_budget: float = DEFAULT_RACE_BUDGET,
        race_interval: float = DEFAULT_RACE_INTERVAL,
    ):
        self.provider = provider
        self.client = client
        self.poller = poller
        self.race_budget = race_budget
        self.race_interval = race_interval

    @classmethod
    def from_settings(
        cls,
        provider: ResourceProvider,
        client: "FusionClient",
        poller: "OperationPoller",
        settings: "Settings",
    ) -> "ResourceLifecycle":
        return cls(
            provider,
            client,
            poller,
            race_budget=settings.RACE_RETRY_BUDGET_SECONDS,
            race_interval=settings.RACE_RETRY_INTERVAL,
        )

    async def create(
        self, data: ResourceData, cancel_event: Optional[asyncio.Event] = None
    ) -> MutationResult:
        """
        Create the resource, apply follow-up patches, then read it back.

        The id is recorded as soon as creation succeeded, even if a
        follow-up fails, so the partially created resource stays tracked.

        Raises:
            CompoundMutationError: Creation or a follow-up failed
        """
        kind = self.provider.kind
        invoke, body = self.provider.prepare_create(data)
        bind_mutation_context(resource_kind=kind)
        try:
            try:
                result = await create_then_enrich(
                    self.poller,
                    f"create_{kind}",
                    functools.partial(invoke, self.client, body),
                    enrich=functools.partial(self.provider.plan_enrichment, self.client, data),
                    cancel_event=cancel_event,
                )
            except CompoundMutationError as e:
                created = e.result.values.get("create")
                if created is not None:
                    data.set_id(created.resource_id)
                raise

            data.set_id(result.resource_id or result.values["create"].resource_id)
            logger.info("Resource created", resource_id=data.id, steps=result.completed_steps)
            data.commit()
            await self.provider.read_resource(self.client, data)
            return result
        finally:
            clear_mutation_context("resource_kind")

    async def read(self, data: ResourceData) -> bool:
        """
        Refresh `data` from the server.

        Returns:
            False if the resource no longer exists (its id is cleared)
        """
        try:
            await self.provider.read_resource(self.client, data)
        except FusionNotFoundError:
            logger.info("Resource no longer exists", resource_kind=self.provider.kind, resource_id=data.id)
            data.set_id("")
            return False
        return True

    async def update(
        self, data: ResourceData, cancel_event: Optional[asyncio.Event] = None
    ) -> MutationResult:
        """
        Apply each patch in order, polling each, then read the resource back.

        Raises:
            ImmutableFieldChangedError: Before any request is sent
            CompoundMutationError: A patch failed; earlier patches stay applied
        """
        kind = self.provider.kind
        invoke, patches = self.provider.prepare_update(self.client, data)
        bind_mutation_context(resource_kind=kind, resource_id=data.id)
        try:
            mutation = CompoundMutation(f"update_{kind}", self.poller)
            for index, patch in enumerate(patches):
                mutation.add_write(f"patch_{index}", functools.partial(invoke, self.client, patch))
            result = await mutation.run(cancel_event=cancel_event)
            logger.info("Resource updated", patches=len(patches))
            data.commit()
            await self.provider.read_resource(self.client, data)
            return result
        finally:
            clear_mutation_context("resource_kind", "resource_id")

    async def delete(
        self, data: ResourceData, cancel_event: Optional[asyncio.Event] = None
    ) -> TeardownResult:
        """
        Delete the kind's dependents best-effort, then the resource itself.

        Raises:
            TeardownError: The resource itself could not be deleted
            OperationCancelledError: The cancel event was set; the id is kept
        """
        kind = self.provider.kind
        bind_mutation_context(resource_kind=kind, resource_id=data.id)
        try:
            await self.provider.before_delete(self.client, self.poller, data, cancel_event)
            invoke = self.provider.prepare_delete(self.client, data)
            result = await teardown_with_dependents(
                self.poller,
                f"{kind}/{data.get_str('name', data.id)}",
                list_dependents=functools.partial(self.provider.list_dependents, self.client, data),
                delete_dependent=functools.partial(
                    self.provider.delete_dependent, self.client, self.poller, cancel_event=cancel_event
                ),
                delete_parent=functools.partial(invoke, self.client, None),
                race_budget=self.race_budget,
                race_interval=self.race_interval,
                cancel_event=cancel_event,
            )
            data.set_id("")
            logger.info("Resource deleted", dependents_removed=len(result.removed))
            return result
        finally:
            clear_mutation_context("resource_kind", "resource_id")

    async def import_resource(self, self_link: str) -> ResourceData:
        """
        Adopt an existing resource by its self link.

        Raises:
            SelfLinkFormatError: The link does not match the kind's path
        """
        fields = parse_self_link(self_link, self.provider.import_groups)
        data = ResourceData(resource_id=await self.provider.resolve_import(self.client, fields))
        await self.provider.read_resource(self.client, data)
        return data
