"""Client configuration for logto-client.

Defines LogtoConfig, the read-only application settings the token lifecycle
depends on: where the Logto tenant lives, the application credentials, and
the resources and scopes the application has declared.

Example usage:
    # Load from config file
    config = load_logto_config(config_path)

    # Save new configuration
    save_logto_config(config, config_path)
"""

from __future__ import annotations

__all__ = [
    "LogtoConfig",
    "get_config_path",
    "load_logto_config",
    "save_logto_config",
]

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from logto_client.constants import (
    CONFIG_FILE_NAME,
    DEFAULT_DISCOVERY_CACHE_TTL_SECONDS,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    RESERVED_SCOPES,
)
from logto_client.exceptions import ConfigurationError
from logto_client.utils.file_helpers import get_app_dir, load_validated_json, write_json_file


class LogtoConfig(BaseModel):
    """Logto application configuration.

    Normalized on construction: trailing slashes are stripped from the
    endpoint, and the reserved scopes (openid, offline_access, profile) are
    always present exactly once.

    Attributes:
        endpoint: Logto tenant base URL (e.g., "https://tenant.logto.app").
        app_id: Application (client) ID.
        app_secret: Application secret. Empty for public clients.
        resources: API resource indicators the application may request tokens for.
        scopes: Scopes requested at sign-in.
        verify_id_token: Verify ID token signatures against the tenant JWKS
            before persisting them.
        discovery_cache_ttl_seconds: How long the OIDC discovery document is
            reused. 0 fetches it on every acquisition.
        http_timeout_seconds: Timeout for calls to the tenant.
    """

    endpoint: str = Field(min_length=1)
    app_id: str = Field(min_length=1)
    app_secret: str = ""
    resources: list[str] = Field(default_factory=list)
    scopes: list[str] = Field(default_factory=list, validate_default=True)
    verify_id_token: bool = False
    discovery_cache_ttl_seconds: int = Field(default=DEFAULT_DISCOVERY_CACHE_TTL_SECONDS, ge=0)
    http_timeout_seconds: float = Field(default=DEFAULT_HTTP_TIMEOUT_SECONDS, gt=0)

    @field_validator("endpoint")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        value = value.rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("endpoint must be an http(s) URL")
        return value

    @field_validator("scopes")
    @classmethod
    def _ensure_reserved_scopes(cls, value: list[str]) -> list[str]:
        merged: list[str] = []
        for scope in [*RESERVED_SCOPES, *value]:
            if scope and scope not in merged:
                merged.append(scope)
        return merged

    @field_validator("resources")
    @classmethod
    def _dedupe_resources(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(r for r in value if r))


def get_config_path() -> Path:
    """Default config file location inside the application directory."""
    return get_app_dir() / CONFIG_FILE_NAME


def load_logto_config(path: Path | None = None) -> LogtoConfig:
    """Load and validate LogtoConfig from a JSON file.

    Args:
        path: Config file path (default: get_config_path()).

    Returns:
        Validated LogtoConfig.

    Raises:
        ConfigurationError: If the file is missing, not JSON, or invalid.
    """
    config_path = path or get_config_path()
    try:
        return load_validated_json(
            config_path,
            LogtoConfig,
            file_type="config",
            recovery_hint="Fix the file or recreate it with the Logto console values.",
        )
    except FileNotFoundError as e:
        raise ConfigurationError(str(e)) from e
    except ValueError as e:
        raise ConfigurationError(str(e)) from e


def save_logto_config(config: LogtoConfig, path: Path | None = None) -> Path:
    """Write LogtoConfig to a JSON file with owner-only permissions.

    Args:
        config: Configuration to save.
        path: Destination (default: get_config_path()).

    Returns:
        The path written.

    Raises:
        ConfigurationError: If the file cannot be written.
    """
    config_path = path or get_config_path()
    try:
        write_json_file(config_path, config)
    except OSError as e:
        raise ConfigurationError(f"Failed to write config file {config_path}: {e}") from e
    return config_path
