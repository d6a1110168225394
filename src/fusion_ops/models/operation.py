"""
Operation models for the asynchronous mutation protocol.

Most control-plane APIs that change the system (POST, PATCH, DELETE) return
an Operation in status "Pending" or "Running". The client polls the
operation by id until it reaches "Succeeded" or "Failed".

Two variants exist:
- Operation: a server-side handle, refreshed only by re-fetching it
- SyntheticOperation: fabricated client-side for endpoints that complete
  synchronously; always successful, never polled
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fusion_ops.models.enums import OperationStatus


class ResourceReference(BaseModel):
    """Reference to the resource affected by an operation."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(default="", description="Resource UUID")
    name: str = Field(default="", description="Resource name")
    kind: str = Field(default="", description="Resource kind, e.g. 'Volume'")
    self_link: str = Field(default="", description="Resource URI")


class OperationResult(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    resource: Optional[ResourceReference] = None


class OperationErrorPayload(BaseModel):
    """
    Error attached to a Failed operation.

    `details` arrives either as a JSON object or as a list of
    {"key": ..., "value": ...} entries; both normalize to a dict.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    message: str = Field(default="", description="Human readable error message")
    pure_code: str = Field(default="", description="Pure diagnostic code, e.g. FAILED_PRECONDITION")
    http_code: int = Field(default=0, description="HTTP status of the originating request")
    details: dict[str, str] = Field(default_factory=dict, description="Key/value diagnostics")

    @field_validator("details", mode="before")
    @classmethod
    def _normalize_details(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, list):
            normalized = {}
            for entry in value:
                if isinstance(entry, dict) and "key" in entry:
                    normalized[str(entry["key"])] = str(entry.get("value", ""))
            return normalized
        return value


class Operation(BaseModel):
    """
    Snapshot of a server-side operation.

    Frozen: every poll yields a fresh snapshot fetched by id, nothing is
    updated in place.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., description="Operation UUID")
    status: OperationStatus = Field(..., description="Latest status")
    retry_in: Optional[int] = Field(
        default=None, description="Advisory delay before polling again (milliseconds)"
    )
    result: Optional[OperationResult] = None
    error: Optional[OperationErrorPayload] = None
    request_type: str = Field(default="", description="Action and kind, e.g. 'CreateVolume'")
    request_id: str = Field(default="")
    self_link: str = Field(default="")
    created_at: Optional[int] = Field(default=None, description="Creation time, ms since epoch")

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def succeeded(self) -> bool:
        return self.status == OperationStatus.SUCCEEDED

    @property
    def resource(self) -> Optional[ResourceReference]:
        if self.result is None:
            return None
        return self.result.resource

    @property
    def resource_id(self) -> str:
        resource = self.resource
        return resource.id if resource else ""

    @property
    def retry_delay_seconds(self) -> Optional[float]:
        """The retry_in hint in seconds, or None when the server sent none."""
        if self.retry_in is None:
            return None
        return self.retry_in / 1000.0


class SyntheticOperation(BaseModel):
    """
    Client-fabricated operation for endpoints without async semantics.

    The API clients endpoint, for instance, returns the created object
    directly. Wrapping it keeps the lifecycle uniform; the poller returns
    it unchanged.
    """

    model_config = ConfigDict(frozen=True)

    resource: ResourceReference
    request_type: str = ""

    @classmethod
    def for_resource(cls, resource_id: str, request_type: str = "") -> "SyntheticOperation":
        return cls(resource=ResourceReference(id=resource_id), request_type=request_type)

    @property
    def id(self) -> str:
        return ""

    @property
    def status(self) -> OperationStatus:
        return OperationStatus.SUCCEEDED

    @property
    def is_terminal(self) -> bool:
        return True

    @property
    def succeeded(self) -> bool:
        return True

    @property
    def resource_id(self) -> str:
        return self.resource.id


AnyOperation = Union[Operation, SyntheticOperation]
