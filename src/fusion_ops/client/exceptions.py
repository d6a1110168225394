"""
Transport-level exceptions for the Fusion REST client.

These describe failures to submit or poll a request at all (network errors,
timeouts, non-2xx responses). They are deliberately separate from
fusion_ops.operations.exceptions, which describe operations that were
accepted by the control plane and then failed.
"""

from typing import Any, Optional

import httpx

_MAX_BODY_CHARS = 2000


class FusionClientError(Exception):
    """
    Base exception for all transport errors.

    Catch this to handle "we couldn't even submit/poll the request"
    without catching operation failures.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class FusionConnectionError(FusionClientError):
    """
    Raised when the control plane cannot be reached.

    Includes DNS failures, refused connections and dropped sockets.
    """
    pass


class FusionTimeoutError(FusionConnectionError):
    """Raised when a request exceeds the configured HTTP timeout."""
    pass


class FusionHTTPError(FusionClientError):
    """
    Raised for non-2xx responses unrelated to an operation body.

    Attributes:
        status_code: HTTP status of the response
        pure_code: Pure diagnostic code parsed from the error body, if any
        body: Raw response text (truncated)
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        pure_code: str = "",
        body: str = "",
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code
        self.pure_code = pure_code
        self.body = body

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.status_code < 600


class FusionNotFoundError(FusionHTTPError):
    """Raised on HTTP 404: the resource or operation does not exist (anymore)."""
    pass


class FusionAuthenticationError(FusionHTTPError):
    """
    Raised when the token endpoint or the API rejects the credentials.

    Also raised locally when a private key cannot be read or parsed; in that
    case status_code is 0.
    """
    pass


def is_retryable_status(status_code: int) -> bool:
    """Server-side errors (5xx) are transient; everything else is permanent."""
    return 500 <= status_code < 600


def _parse_error_body(response: httpx.Response) -> tuple[str, str]:
    """Extract (pure_code, message) from a Fusion error body, if it is one."""
    try:
        data = response.json()
    except ValueError:
        return "", ""
    if not isinstance(data, dict):
        return "", ""
    # Some endpoints nest the error under "error"
    if isinstance(data.get("error"), dict):
        data = data["error"]
    return str(data.get("pure_code") or ""), str(data.get("message") or "")


def classify_http_error(exc: Exception) -> FusionClientError:
    """Classify an httpx exception into the transport error taxonomy.

    Status Code Mapping:
    - 401/403: FusionAuthenticationError
    - 404: FusionNotFoundError
    - other non-2xx: FusionHTTPError (is_server_error for 5xx)
    Timeouts map to FusionTimeoutError, other request errors to
    FusionConnectionError.

    Args:
        exc: Exception raised by httpx (or already a FusionClientError)

    Returns:
        The matching FusionClientError; the caller raises it

    Example:
        try:
            response = await client.get(path)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise classify_http_error(e) from e
    """
    if isinstance(exc, FusionClientError):
        return exc

    if isinstance(exc, httpx.TimeoutException):
        return FusionTimeoutError(
            f"Request timed out: {exc}",
            details={"error_type": type(exc).__name__},
        )

    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        status_code = response.status_code
        pure_code, server_message = _parse_error_body(response)
        method = exc.request.method
        url = str(exc.request.url)
        message = f"{method} {url} returned HTTP {status_code}"
        if server_message:
            message += f": {server_message}"

        if status_code == 404:
            error_class: type[FusionHTTPError] = FusionNotFoundError
        elif status_code in (401, 403):
            error_class = FusionAuthenticationError
        else:
            error_class = FusionHTTPError
        return error_class(
            message,
            status_code=status_code,
            pure_code=pure_code,
            body=response.text[:_MAX_BODY_CHARS],
            details={"method": method, "url": url},
        )

    if isinstance(exc, httpx.RequestError):
        return FusionConnectionError(
            f"Connection error: {type(exc).__name__}: {exc}",
            details={"error_type": type(exc).__name__},
        )

    return FusionClientError(
        f"Unexpected client error: {type(exc).__name__}: {exc}",
        details={"error_type": type(exc).__name__},
    )
