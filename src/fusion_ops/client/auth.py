"""
Access-token acquisition for the Fusion API.

The caller signs a short-lived identity JWT (RS256) with its API client's
private key, using its issuer id, and exchanges it at the Pure1 token
endpoint for an access token valid for one hour. The exchange is wrapped in
the retry engine: 5xx responses are retried with backoff, anything else
fails immediately.
"""

import time
from pathlib import Path
from typing import Any, Optional

import httpx
import jwt
import structlog
from cryptography.hazmat.primitives import serialization

from fusion_ops.client.exceptions import (
    FusionAuthenticationError,
    FusionClientError,
    FusionHTTPError,
    classify_http_error,
)
from fusion_ops.client.rest_client import FusionClient
from fusion_ops.config import ProfileConfigError, Settings, apply_profile, load_profile
from fusion_ops.retry import RetryEngine, should_stop_for_status

logger = structlog.get_logger(__name__)

TOKEN_LIFETIME_SECONDS = 3600
TOKEN_EXCHANGE_GRANT = "urn:ietf:params:oauth:grant-type:token-exchange"
JWT_TOKEN_TYPE = "urn:ietf:params:oauth:token-type:jwt"


def read_private_key_file(path: str) -> str:
    try:
        return Path(path).expanduser().read_text(encoding="utf-8")
    except OSError as e:
        raise FusionAuthenticationError(
            f"failed to read private key file path:{path} err:{e}", status_code=0
        ) from e


def load_private_key(private_key: str, password: str = "") -> Any:
    """Parse a PEM private key, decrypting it when a password is given."""
    try:
        return serialization.load_pem_private_key(
            private_key.encode("utf-8"),
            password=password.encode("utf-8") if password else None,
        )
    except (ValueError, TypeError) as e:
        qualifier = " with password" if password else ""
        raise FusionAuthenticationError(
            f"failed to parse private key{qualifier}: {e}", status_code=0
        ) from e


def sign_identity_token(issuer_id: str, private_key: str, password: str = "") -> str:
    """Build the self-signed identity JWT presented to the token endpoint."""
    key = load_private_key(private_key, password)
    now = int(time.time())
    return jwt.encode(
        {"iss": issuer_id, "iat": now, "exp": now + TOKEN_LIFETIME_SECONDS},
        key,
        algorithm="RS256",
    )


async def exchange_token(
    http: httpx.AsyncClient, token_endpoint: str, identity_token: str
) -> str:
    """
    Exchange a signed identity token for an access token.

    Raises:
        FusionHTTPError: Non-2xx response (FusionAuthenticationError for 401/403)
        FusionClientError: Network failure or malformed response
    """
    try:
        response = await http.post(
            token_endpoint,
            data={
                "grant_type": TOKEN_EXCHANGE_GRANT,
                "subject_token": identity_token,
                "subject_token_type": JWT_TOKEN_TYPE,
            },
        )
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPError as e:
        raise classify_http_error(e) from e
    except ValueError as e:
        raise FusionClientError(f"failed to exchange token endpoint:{token_endpoint} err:{e}") from e

    access_token = payload.get("access_token") if isinstance(payload, dict) else None
    if not access_token:
        raise FusionClientError(
            f"failed to exchange token endpoint:{token_endpoint} err:no access_token in response"
        )
    return access_token


async def get_access_token(
    settings: Settings,
    issuer_id: str,
    private_key: str,
    token_endpoint: str,
    private_key_password: str = "",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> str:
    """
    Obtain an access token, retrying server-side failures with backoff.

    Args:
        settings: Supplies HTTP timeout and TOKEN_RETRY_* parameters
        issuer_id: API client issuer id
        private_key: PEM private key contents
        token_endpoint: OAuth2 token endpoint
        private_key_password: Password for an encrypted key (optional)
        transport: Custom httpx transport (tests)

    Returns:
        Bearer access token

    Raises:
        FusionClientError: Last error once retries stop or run out
    """
    identity_token = sign_identity_token(issuer_id, private_key, private_key_password)
    engine = RetryEngine.from_settings(settings, name="pure1_token")
    access_token = ""

    async with httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT, transport=transport) as http:

        async def attempt() -> tuple[bool, Optional[BaseException]]:
            nonlocal access_token
            try:
                access_token = await exchange_token(http, token_endpoint, identity_token)
            except FusionHTTPError as e:
                return should_stop_for_status(e.status_code), e
            except FusionClientError as e:
                return True, e
            return True, None

        try:
            await engine.run(attempt)
        except FusionClientError as e:
            logger.error("Error getting API token", error=str(e), token_endpoint=token_endpoint)
            raise

    logger.debug("API token has been successfully retrieved")
    return access_token


def resolve_settings(settings: Settings) -> Settings:
    """
    Fill connection parameters from the profile file when the environment
    does not provide a host.
    """
    if settings.FUSION_API_HOST:
        return settings
    path = Path(settings.FUSION_CONFIG_PATH).expanduser() if settings.FUSION_CONFIG_PATH else None
    profile = load_profile(path, settings.FUSION_CONFIG_PROFILE)
    return apply_profile(settings, profile)


async def create_client(
    settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
) -> FusionClient:
    """
    Build an authenticated FusionClient from settings (and profile file).

    Raises:
        ProfileConfigError: Host or credentials could not be determined
        FusionClientError: Token acquisition failed
    """
    settings = resolve_settings(settings)
    if not settings.FUSION_API_HOST:
        raise ProfileConfigError("no Fusion API host configured")

    logger.debug("Using Fusion", host=settings.FUSION_API_HOST)

    access_token = settings.FUSION_ACCESS_TOKEN
    if not access_token:
        private_key = settings.FUSION_PRIVATE_KEY
        if not private_key and settings.FUSION_PRIVATE_KEY_FILE:
            private_key = read_private_key_file(settings.FUSION_PRIVATE_KEY_FILE)
        if not settings.FUSION_ISSUER_ID or not private_key:
            raise ProfileConfigError(
                "either an access token or an issuer id with a private key is required"
            )
        access_token = await get_access_token(
            settings,
            settings.FUSION_ISSUER_ID,
            private_key,
            settings.FUSION_TOKEN_ENDPOINT,
            settings.FUSION_PRIVATE_KEY_PASSWORD,
            transport=transport,
        )

    return FusionClient(
        settings.FUSION_API_HOST,
        access_token,
        timeout=settings.HTTP_TIMEOUT,
        transport=transport,
    )
