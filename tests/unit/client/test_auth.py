"""
Unit tests for access-token acquisition.

Signs identity tokens with a freshly generated RSA key and serves the
token endpoint from httpx.MockTransport.
"""

from unittest.mock import AsyncMock, patch
from urllib.parse import parse_qs

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from fusion_ops.client.auth import (
    TOKEN_EXCHANGE_GRANT,
    create_client,
    get_access_token,
    read_private_key_file,
    resolve_settings,
    sign_identity_token,
)
from fusion_ops.client.exceptions import (
    FusionAuthenticationError,
    FusionClientError,
    FusionConnectionError,
    FusionHTTPError,
)
from fusion_ops.config import ProfileConfigError


@pytest.fixture(scope="module")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="module")
def private_pem(rsa_key) -> str:
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


def token_endpoint(*responses):
    """MockTransport answering successive token requests with `responses`."""
    queue = list(responses)
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        response = queue.pop(0)
        if callable(response):
            return response(request)
        return response

    return httpx.MockTransport(handler), seen


# ============================================================================
# Identity token
# ============================================================================


def test_sign_identity_token_is_verifiable(rsa_key, private_pem):
    token = sign_identity_token("pure1:apikey:abc", private_pem)

    claims = jwt.decode(token, rsa_key.public_key(), algorithms=["RS256"])
    assert claims["iss"] == "pure1:apikey:abc"
    assert claims["exp"] - claims["iat"] == 3600


def test_sign_identity_token_rejects_garbage_key():
    with pytest.raises(FusionAuthenticationError) as exc_info:
        sign_identity_token("issuer", "not a pem")

    assert exc_info.value.status_code == 0


def test_encrypted_key_requires_matching_password(rsa_key):
    encrypted = rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.BestAvailableEncryption(b"secret"),
    ).decode("utf-8")

    assert sign_identity_token("issuer", encrypted, password="secret")
    with pytest.raises(FusionAuthenticationError, match="with password"):
        sign_identity_token("issuer", encrypted, password="wrong")


def test_read_private_key_file_missing(tmp_path):
    with pytest.raises(FusionAuthenticationError):
        read_private_key_file(str(tmp_path / "missing.pem"))


# ============================================================================
# Token exchange with retry
# ============================================================================


@pytest.mark.asyncio
async def test_get_access_token_posts_token_exchange(test_settings, private_pem):
    transport, seen = token_endpoint(httpx.Response(200, json={"access_token": "abc"}))

    token = await get_access_token(
        test_settings, "issuer", private_pem, test_settings.FUSION_TOKEN_ENDPOINT, transport=transport
    )

    assert token == "abc"
    form = parse_qs(seen[0].content.decode())
    assert form["grant_type"] == [TOKEN_EXCHANGE_GRANT]
    assert "subject_token" in form


@pytest.mark.asyncio
async def test_server_errors_are_retried(test_settings, private_pem):
    transport, seen = token_endpoint(
        httpx.Response(500),
        httpx.Response(503),
        httpx.Response(200, json={"access_token": "abc"}),
    )

    with patch("fusion_ops.retry.engine.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        token = await get_access_token(
            test_settings, "issuer", private_pem, test_settings.FUSION_TOKEN_ENDPOINT, transport=transport
        )

    assert token == "abc"
    assert len(seen) == 3
    assert mock_sleep.await_count == 2


@pytest.mark.asyncio
async def test_client_errors_are_not_retried(test_settings, private_pem):
    transport, seen = token_endpoint(httpx.Response(400, json={"error": "invalid_grant"}))

    with pytest.raises(FusionHTTPError) as exc_info:
        await get_access_token(
            test_settings, "issuer", private_pem, test_settings.FUSION_TOKEN_ENDPOINT, transport=transport
        )

    assert exc_info.value.status_code == 400
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_persistent_server_errors_exhaust_attempts(test_settings, private_pem):
    attempts = test_settings.TOKEN_RETRY_MAX_ATTEMPTS
    transport, seen = token_endpoint(*[httpx.Response(500) for _ in range(attempts)])

    with patch("fusion_ops.retry.engine.asyncio.sleep", new_callable=AsyncMock):
        with pytest.raises(FusionHTTPError) as exc_info:
            await get_access_token(
                test_settings, "issuer", private_pem, test_settings.FUSION_TOKEN_ENDPOINT, transport=transport
            )

    assert exc_info.value.status_code == 500
    assert len(seen) == attempts


@pytest.mark.asyncio
async def test_connection_errors_are_permanent(test_settings, private_pem):
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    transport, seen = token_endpoint(refuse)

    with pytest.raises(FusionConnectionError):
        await get_access_token(
            test_settings, "issuer", private_pem, test_settings.FUSION_TOKEN_ENDPOINT, transport=transport
        )

    assert len(seen) == 1


@pytest.mark.asyncio
async def test_missing_access_token_in_response(test_settings, private_pem):
    transport, _ = token_endpoint(httpx.Response(200, json={"token_type": "Bearer"}))

    with pytest.raises(FusionClientError, match="no access_token"):
        await get_access_token(
            test_settings, "issuer", private_pem, test_settings.FUSION_TOKEN_ENDPOINT, transport=transport
        )


# ============================================================================
# Client construction
# ============================================================================


@pytest.mark.asyncio
async def test_create_client_with_access_token_skips_exchange(test_settings):
    settings = test_settings.model_copy(update={"FUSION_ACCESS_TOKEN": "ready"})

    client = await create_client(settings)

    assert client.base_url == "https://fusion.example.com"
    assert client._access_token == "ready"


@pytest.mark.asyncio
async def test_create_client_requires_credentials(test_settings):
    settings = test_settings.model_copy(update={"FUSION_ISSUER_ID": ""})

    with pytest.raises(ProfileConfigError):
        await create_client(settings)


def test_resolve_settings_reads_profile_when_host_missing(test_settings, profile_file):
    settings = test_settings.model_copy(
        update={
            "FUSION_API_HOST": "",
            "FUSION_ISSUER_ID": "",
            "FUSION_CONFIG_PATH": str(profile_file),
            "FUSION_CONFIG_PROFILE": "other",
        }
    )

    resolved = resolve_settings(settings)

    assert resolved.FUSION_API_HOST == "https://api.other.example.com"
    assert resolved.FUSION_ACCESS_TOKEN == "other-token"
