"""
Abstract base client for the Fusion control plane.

Defines the minimal surface the operation engine depends on. The poller
only ever needs get_operation(); bulk helpers also list operations. Keeping
this separate lets tests drive the poller with an in-memory fake instead
of an HTTP server.
"""

from abc import ABC, abstractmethod

import structlog

from fusion_ops.models.operation import Operation
from fusion_ops.models.resources import ItemList

logger = structlog.get_logger(__name__)


class BaseFusionClient(ABC):
    """
    Abstract base class for Fusion API clients.

    Responsibilities:
    - Issue authenticated REST calls
    - Map non-2xx responses and network failures to FusionClientError
    - Return Operation snapshots for mutating calls

    Does NOT handle:
    - Waiting for operations (that's OperationPoller's job)
    - Retrying failed operations (that's the orchestrator's job)
    """

    def __init__(self, base_url: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @abstractmethod
    async def get_operation(self, operation_id: str) -> Operation:
        """
        Fetch the current snapshot of an operation.

        Raises:
            FusionNotFoundError: The operation no longer exists
            FusionClientError: Any other transport failure
        """
        pass

    @abstractmethod
    async def list_operations(self) -> ItemList[Operation]:
        """List operations visible to the caller."""
        pass

    async def health_check(self) -> bool:
        """
        Check the control plane is reachable.

        Returns False on error instead of raising.
        """
        return True

    async def close(self) -> None:
        """Release connections. Default implementation does nothing."""
        logger.debug("Closing Fusion client", client_class=self.__class__.__name__)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(base_url={self.base_url}, timeout={self.timeout}s)"
