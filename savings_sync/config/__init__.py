"""Configuration package."""

from savings_sync.config.settings import (
    AppSettings,
    RemoteSettings,
    Settings,
    StorageSettings,
    SyncSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "RemoteSettings",
    "Settings",
    "StorageSettings",
    "SyncSettings",
    "get_settings",
    "validate_all_settings",
]
