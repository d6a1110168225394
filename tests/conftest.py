"""Shared test fixtures and configuration for all tests.

This conftest.py provides common fixtures used across unit tests.
"""

import json
from pathlib import Path

import pytest

from fusion_ops.config import Settings


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with fast polling and retries.

    Override specific settings in individual tests with model_copy:
        settings = test_settings.model_copy(update={"TOKEN_RETRY_MAX_ATTEMPTS": 2})
    """
    return Settings(
        # === Application ===
        APP_NAME="fusion-ops (Test)",
        LOG_LEVEL="DEBUG",
        ENVIRONMENT="development",
        # === Fusion API ===
        FUSION_API_HOST="https://fusion.example.com",
        FUSION_ISSUER_ID="pure1:apikey:test",
        FUSION_ACCESS_TOKEN="",
        FUSION_TOKEN_ENDPOINT="https://token.example.com/oauth2/1.0/token",
        HTTP_TIMEOUT=5,
        # === Polling ===
        OPERATION_POLL_MIN_INTERVAL=0.001,
        OPERATION_POLL_MAX_INTERVAL=0.01,
        # === Retry ===
        TOKEN_RETRY_BASE_DELAY=0.1,
        TOKEN_RETRY_MULTIPLIER=1.7,
        TOKEN_RETRY_MAX_ATTEMPTS=4,
        RETRY_JITTER=0.0,
        RACE_RETRY_BUDGET_SECONDS=5.0,
        RACE_RETRY_INTERVAL=0.001,
    )


@pytest.fixture
def profile_file(tmp_path: Path) -> Path:
    """A profile file with a default and a secondary profile."""
    path = tmp_path / "fusion.json"
    path.write_text(
        json.dumps(
            {
                "default_profile": "main",
                "profiles": {
                    "main": {
                        "endpoint": "https://api.main.example.com",
                        "auth": {
                            "issuer_id": "pure1:apikey:main",
                            "private_pem_file": "/keys/main.pem",
                        },
                    },
                    "other": {
                        "endpoint": "https://api.other.example.com",
                        "auth": {"access_token": "other-token"},
                    },
                },
            }
        )
    )
    return path
