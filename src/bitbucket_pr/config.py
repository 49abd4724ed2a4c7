"""Configuration management using Pydantic Settings."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from bitbucket_pr.auth.constants import (
    CALLBACK_PORT,
    CLIENT_ID,
    CLIENT_SECRET,
    DEFAULT_HOST,
    OAUTH_BASE_URL,
)
from bitbucket_pr.auth.host import HostIdentity

# Config file location
CONFIG_PATH = Path.home() / ".config" / "bitbucket-pr" / "config.yaml"


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from YAML config file."""

    def get_field_value(
        self, field: Any, field_name: str
    ) -> tuple[Any, str, bool]:
        """Get field value from YAML config."""
        config = load_config()
        if field_name in config:
            return config[field_name], field_name, False
        return None, field_name, False

    def __call__(self) -> dict[str, Any]:
        """Return all config values."""
        return load_config()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BBPR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    host: str = Field(
        default=DEFAULT_HOST,
        description="Default Bitbucket host or remote URL",
    )
    timeout: int = Field(default=30, ge=5, le=120, description="HTTP timeout in seconds")
    oauth_callback_host: str = Field(
        default="127.0.0.1",
        description="Interface the OAuth callback listener binds to",
    )
    oauth_callback_port: int = Field(
        default=CALLBACK_PORT,
        ge=0,
        le=65535,
        description="Port for OAuth callback listener",
    )
    oauth_timeout: int = Field(
        default=300,
        ge=30,
        le=600,
        description="Timeout for OAuth flow in seconds",
    )
    oauth_base_url: str = Field(
        default=OAUTH_BASE_URL,
        description="Base URL of the OAuth2 authorize and access_token endpoints",
    )
    client_id: str = Field(default=CLIENT_ID, min_length=1, description="OAuth consumer key")
    client_secret: str = Field(
        default=CLIENT_SECRET, min_length=1, description="OAuth consumer secret"
    )
    open_browser: bool = Field(
        default=True,
        description="Open the authorization page in the default browser",
    )

    @field_validator("host", mode="after")
    @classmethod
    def normalize_host(cls, v: str) -> str:
        """Store the host in its normalized https://authority form."""
        return str(HostIdentity.from_remote(v))

    @field_validator("oauth_base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def host_identity(self) -> HostIdentity:
        """The configured default host as a HostIdentity."""
        return HostIdentity.from_remote(self.host)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources - priority: env > yaml > defaults."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
        )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None


def load_config() -> dict[str, Any]:
    """Load config from YAML file.

    Returns:
        Dictionary of config values, empty dict if file doesn't exist or is invalid.
    """
    if not CONFIG_PATH.exists():
        return {}
    try:
        with open(CONFIG_PATH) as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError:
        return {}


def save_config(config: dict[str, Any]) -> None:
    """Save config to YAML file.

    Args:
        config: Dictionary of config values to save.
    """
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    with open(CONFIG_PATH, "w") as f:
        yaml.dump(config, f, default_flow_style=False, allow_unicode=True)
