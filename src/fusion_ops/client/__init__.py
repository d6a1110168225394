"""
Fusion REST client collaborator.

Components:
- BaseFusionClient: Abstract surface the operation engine depends on
- FusionClient: httpx implementation with typed resource methods
- auth: Access-token acquisition (self-signed JWT exchange with retry)
- exceptions: Transport error taxonomy and httpx error classification
"""

from fusion_ops.client.base_client import BaseFusionClient
from fusion_ops.client.exceptions import (
    FusionAuthenticationError,
    FusionClientError,
    FusionConnectionError,
    FusionHTTPError,
    FusionNotFoundError,
    FusionTimeoutError,
    classify_http_error,
    is_retryable_status,
)
from fusion_ops.client.rest_client import FusionClient

__all__ = [
    "BaseFusionClient",
    "FusionClient",
    "FusionClientError",
    "FusionConnectionError",
    "FusionTimeoutError",
    "FusionHTTPError",
    "FusionNotFoundError",
    "FusionAuthenticationError",
    "classify_http_error",
    "is_retryable_status",
]
