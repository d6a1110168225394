"""Unit test fixtures (mocks and stubs).

Provides operation builders and a scripted operations endpoint so the
poller and orchestrator can be tested without a control plane.
"""

from typing import Any, Optional, Union
from unittest.mock import AsyncMock

import pytest

from fusion_ops.client.base_client import BaseFusionClient
from fusion_ops.client.rest_client import FusionClient
from fusion_ops.models.operation import Operation
from fusion_ops.operations.poller import OperationPoller


def build_operation(
    op_id: str = "op-1",
    status: str = "Running",
    retry_in: Optional[int] = None,
    resource_id: Optional[str] = None,
    error: Optional[dict[str, Any]] = None,
    request_type: str = "CreateVolume",
) -> Operation:
    payload: dict[str, Any] = {
        "id": op_id,
        "status": status,
        "retry_in": retry_in,
        "request_type": request_type,
    }
    if resource_id is not None:
        payload["result"] = {"resource": {"id": resource_id, "name": resource_id}}
    if error is not None:
        payload["error"] = error
    return Operation.model_validate(payload)


class ScriptedOperationsClient(BaseFusionClient):
    """Serves queued snapshots (or errors) per operation id, in order."""

    def __init__(self):
        super().__init__("https://fusion.example.com")
        self.responses: dict[str, list[Union[Operation, Exception]]] = {}
        self.calls: list[str] = []

    def script(self, op_id: str, *responses: Union[Operation, Exception]) -> None:
        self.responses.setdefault(op_id, []).extend(responses)

    async def get_operation(self, operation_id: str) -> Operation:
        self.calls.append(operation_id)
        queue = self.responses.get(operation_id)
        if not queue:
            raise AssertionError(f"unexpected poll of {operation_id}")
        response = queue.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def list_operations(self):
        raise NotImplementedError


@pytest.fixture
def make_operation():
    """Factory for Operation snapshots, e.g. make_operation(status="Succeeded", resource_id="r-1")."""
    return build_operation


@pytest.fixture
def scripted_client() -> ScriptedOperationsClient:
    return ScriptedOperationsClient()


@pytest.fixture
def poller(scripted_client: ScriptedOperationsClient) -> OperationPoller:
    """Poller with millisecond sleeps over the scripted client."""
    return OperationPoller(scripted_client, min_interval=0.001, max_interval=0.01)


@pytest.fixture
def mock_fusion_client() -> AsyncMock:
    """AsyncMock constrained to the FusionClient API."""
    return AsyncMock(spec=FusionClient)
