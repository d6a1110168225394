"""
Unit tests for settings and Fusion profile loading.
"""

import json

import pytest

from fusion_ops.config import (
    DEFAULT_TOKEN_ENDPOINT,
    ProfileConfigError,
    Settings,
    apply_profile,
    load_profile,
)


def write_config(tmp_path, data):
    path = tmp_path / "fusion.json"
    path.write_text(json.dumps(data))
    return path


# ============================================================================
# load_profile
# ============================================================================


def test_load_default_profile(profile_file):
    profile = load_profile(profile_file)

    assert profile.endpoint == "https://api.main.example.com"
    assert profile.auth.issuer_id == "pure1:apikey:main"
    assert profile.auth.private_pem_file == "/keys/main.pem"


def test_load_named_profile(profile_file):
    profile = load_profile(profile_file, "other")

    assert profile.auth.access_token == "other-token"


def test_unknown_profile(profile_file):
    with pytest.raises(ProfileConfigError, match="profile does not exist. profile name: nope"):
        load_profile(profile_file, "nope")


def test_missing_profiles_section(tmp_path):
    path = write_config(tmp_path, {"default_profile": "main"})

    with pytest.raises(ProfileConfigError, match="`profiles`"):
        load_profile(path)


def test_missing_default_profile(tmp_path):
    path = write_config(tmp_path, {"profiles": {"main": {"endpoint": "https://x"}}})

    with pytest.raises(ProfileConfigError, match="`default_profile`"):
        load_profile(path)


def test_missing_endpoint(tmp_path):
    path = write_config(
        tmp_path, {"default_profile": "main", "profiles": {"main": {"auth": {"access_token": "t"}}}}
    )

    with pytest.raises(ProfileConfigError, match="`endpoint`"):
        load_profile(path)


def test_issuer_without_key_is_incomplete(tmp_path):
    path = write_config(
        tmp_path,
        {"default_profile": "main", "profiles": {"main": {"endpoint": "https://x", "auth": {"issuer_id": "i"}}}},
    )

    with pytest.raises(ProfileConfigError, match="auth fields"):
        load_profile(path)


def test_unreadable_file(tmp_path):
    path = tmp_path / "fusion.json"
    path.write_text("{not json")

    with pytest.raises(ProfileConfigError, match="cannot read fusion config"):
        load_profile(path)

    with pytest.raises(ProfileConfigError):
        load_profile(tmp_path / "missing.json")


# ============================================================================
# apply_profile
# ============================================================================


def test_apply_profile_fills_empty_settings(profile_file):
    settings = Settings(FUSION_API_HOST="", FUSION_ISSUER_ID="", FUSION_PRIVATE_KEY_FILE="")

    resolved = apply_profile(settings, load_profile(profile_file))

    assert resolved.FUSION_API_HOST == "https://api.main.example.com"
    assert resolved.FUSION_ISSUER_ID == "pure1:apikey:main"
    assert resolved.FUSION_PRIVATE_KEY_FILE == "/keys/main.pem"


def test_apply_profile_keeps_explicit_settings(test_settings, profile_file):
    resolved = apply_profile(test_settings, load_profile(profile_file))

    assert resolved.FUSION_API_HOST == "https://fusion.example.com"
    assert resolved.FUSION_ISSUER_ID == "pure1:apikey:test"


def test_profile_token_endpoint_only_overrides_default(tmp_path):
    path = write_config(
        tmp_path,
        {
            "default_profile": "main",
            "profiles": {
                "main": {
                    "endpoint": "https://x",
                    "auth": {"access_token": "t", "token_endpoint": "https://tokens.example.com"},
                }
            },
        },
    )
    profile = load_profile(path)

    default = apply_profile(Settings(FUSION_TOKEN_ENDPOINT=DEFAULT_TOKEN_ENDPOINT), profile)
    explicit = apply_profile(Settings(FUSION_TOKEN_ENDPOINT="https://mine.example.com"), profile)

    assert default.FUSION_TOKEN_ENDPOINT == "https://tokens.example.com"
    assert explicit.FUSION_TOKEN_ENDPOINT == "https://mine.example.com"


def test_settings_defaults():
    settings = Settings()

    assert settings.TOKEN_RETRY_MULTIPLIER == 1.7
    assert settings.TOKEN_RETRY_MAX_ATTEMPTS == 13
    assert settings.OPERATION_POLL_MIN_INTERVAL > 0
