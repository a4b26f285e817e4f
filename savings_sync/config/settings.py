"""
Configuration Management for Savings Sync

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see which collaborators (storage medium,
remote authority) exist and ensures their settings are validated
at startup.
"""

from functools import lru_cache
from typing import Literal, Optional, Union

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Local durable storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SAVINGS_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    backend: Literal["memory", "file"] = Field(
        default="file",
        description="Key-value medium used for goals and audit events"
    )
    data_dir: str = Field(
        default=".savings_data",
        description="Directory holding one JSON file per storage key"
    )

    # Changing the tag orphans previously stored goals on purpose
    schema_tag: str = Field(
        default="v2",
        min_length=1,
        max_length=16,
        description="Schema version tag baked into every storage key"
    )
    key_prefix: str = Field(
        default="savings",
        min_length=1,
        description="Prefix for per-user goal storage keys"
    )
    audit_key: str = Field(
        default="savings_audit_log",
        min_length=1,
        description="Prefix for per-user audit log storage keys"
    )


class RemoteSettings(BaseSettings):
    """Remote authority configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SAVINGS_REMOTE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    mode: Literal["simulated", "http"] = Field(
        default="simulated",
        description="Which remote authority implementation to use"
    )
    base_url: Optional[str] = Field(
        default=None,
        description="Base URL of the remote authority (http mode)"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Per-request timeout before the remote counts as unreachable"
    )
    connect_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts made when a connection cannot be established"
    )
    retry_wait_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Base of the exponential wait between connection attempts"
    )
    simulated_latency_seconds: float = Field(
        default=0.6,
        ge=0,
        description="Artificial delay of the simulated authority"
    )

    @field_validator('base_url')
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        return v.rstrip("/") if v else v

    @model_validator(mode='after')
    def require_base_url_for_http(self) -> 'RemoteSettings':
        """HTTP mode is useless without somewhere to send requests."""
        if self.mode == "http" and not self.base_url:
            raise ValueError("SAVINGS_REMOTE_BASE_URL is required in http mode")
        return self


class SyncSettings(BaseSettings):
    """Synchronization engine behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="SAVINGS_SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    default_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="Currency used when a goal is created without one"
    )
    serialize_goal_writes: bool = Field(
        default=False,
        description=(
            "Queue overlapping transactions on the same goal behind a "
            "per-goal lock instead of letting them interleave"
        )
    )

    @field_validator('default_currency')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def remote(self) -> RemoteSettings:
        return RemoteSettings()

    @property
    def sync(self) -> SyncSettings:
        return SyncSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, Union[bool, str]]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with an extra
    "<name>_error" entry for every section that failed.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "remote", "sync", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
