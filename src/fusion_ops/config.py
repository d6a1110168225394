"""
Configuration settings for the Fusion operation engine.

Settings are loaded from environment variables with sensible defaults.
Use .env file for local development. Connection parameters can also come
from a Fusion profile file (~/.pure/fusion.json), see load_profile().

There is no module-level settings instance: build Settings() once at the
entry point and pass it to the client, poller and retry engine.
"""

import json
from pathlib import Path
from typing import Optional

import structlog
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger(__name__)

DEFAULT_TOKEN_ENDPOINT = "https://api.pure1.purestorage.com/oauth2/1.0/token"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Application ===
    APP_NAME: str = "fusion-ops"
    APP_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # === Connection ===
    FUSION_API_HOST: str = ""
    FUSION_ISSUER_ID: str = ""
    FUSION_PRIVATE_KEY_FILE: str = ""
    FUSION_PRIVATE_KEY: str = ""
    FUSION_PRIVATE_KEY_PASSWORD: str = ""
    FUSION_ACCESS_TOKEN: str = ""
    FUSION_TOKEN_ENDPOINT: str = DEFAULT_TOKEN_ENDPOINT
    FUSION_CONFIG_PATH: Optional[str] = None  # defaults to ~/.pure/fusion.json
    FUSION_CONFIG_PROFILE: str = ""
    HTTP_TIMEOUT: float = 30.0  # seconds

    # === Operation polling ===
    OPERATION_POLL_MIN_INTERVAL: float = 0.1  # seconds, floor for retry_in hint
    OPERATION_POLL_MAX_INTERVAL: float = 10.0  # seconds, ceiling for retry_in hint

    # === Token retry (exponential backoff) ===
    TOKEN_RETRY_BASE_DELAY: float = 0.1  # seconds
    TOKEN_RETRY_MULTIPLIER: float = 1.7
    TOKEN_RETRY_MAX_ATTEMPTS: int = 13
    RETRY_JITTER: float = 0.0  # fraction of each delay, 0 disables jitter

    # === Teardown races ===
    RACE_RETRY_BUDGET_SECONDS: float = 300.0
    RACE_RETRY_INTERVAL: float = 5.0


class ProfileConfigError(Exception):
    """Raised when a Fusion profile file is missing, malformed or incomplete."""


class ProfileAuth(BaseModel):
    """Credentials section of a Fusion profile."""

    issuer_id: str = ""
    private_pem_file: str = ""
    token_endpoint: str = ""
    access_token: str = ""
    private_key: str = ""
    private_key_password: str = ""


class ProfileConfig(BaseModel):
    """A single named profile from the Fusion config file."""

    endpoint: str = ""
    auth: ProfileAuth = Field(default_factory=ProfileAuth)


class FusionConfigFile(BaseModel):
    default_profile: str = ""
    profiles: Optional[dict[str, ProfileConfig]] = None


def home_config_path() -> Path:
    """Default location of the Fusion config file."""
    return Path.home() / ".pure" / "fusion.json"


def read_config_file(path: Path) -> FusionConfigFile:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ProfileConfigError(f"cannot read fusion config: {e}") from e

    try:
        config = FusionConfigFile.model_validate(raw)
    except ValidationError as e:
        raise ProfileConfigError(f"cannot read fusion config: {e}") from e

    if config.profiles is None:
        raise ProfileConfigError("config does not have required field `profiles`")
    return config


def load_profile(path: Optional[Path] = None, profile_name: str = "") -> ProfileConfig:
    """
    Load a named profile from the Fusion config file.

    Args:
        path: Config file path (default: ~/.pure/fusion.json)
        profile_name: Profile to load; falls back to the file's default_profile

    Returns:
        ProfileConfig with endpoint and auth fields

    Raises:
        ProfileConfigError: File unreadable, no profiles, unknown profile,
            missing endpoint or missing auth fields
    """
    path = path or home_config_path()
    config = read_config_file(path)

    name = profile_name or config.default_profile
    if not name:
        raise ProfileConfigError("config does not have required field `default_profile`")

    profile = config.profiles.get(name)
    if profile is None:
        raise ProfileConfigError(f"profile does not exist. profile name: {name}")

    if not profile.endpoint:
        raise ProfileConfigError("profile does not have required field `endpoint`")

    auth = profile.auth
    has_key_pair = bool(auth.issuer_id and auth.private_pem_file)
    if not has_key_pair and not auth.access_token and not auth.private_key:
        raise ProfileConfigError("profile does not have required auth fields")

    logger.debug("Loaded fusion profile", profile=name, path=str(path))
    return profile


def apply_profile(settings: Settings, profile: ProfileConfig) -> Settings:
    """
    Fill connection settings left empty from a profile.

    Explicit settings (environment) take priority over the profile file.
    """
    auth = profile.auth
    updates = {
        "FUSION_API_HOST": settings.FUSION_API_HOST or profile.endpoint,
        "FUSION_ISSUER_ID": settings.FUSION_ISSUER_ID or auth.issuer_id,
        "FUSION_PRIVATE_KEY_FILE": settings.FUSION_PRIVATE_KEY_FILE or auth.private_pem_file,
        "FUSION_PRIVATE_KEY": settings.FUSION_PRIVATE_KEY or auth.private_key,
        "FUSION_PRIVATE_KEY_PASSWORD": settings.FUSION_PRIVATE_KEY_PASSWORD or auth.private_key_password,
        "FUSION_ACCESS_TOKEN": settings.FUSION_ACCESS_TOKEN or auth.access_token,
    }
    if auth.token_endpoint and settings.FUSION_TOKEN_ENDPOINT == DEFAULT_TOKEN_ENDPOINT:
        updates["FUSION_TOKEN_ENDPOINT"] = auth.token_endpoint
    return settings.model_copy(update=updates)
