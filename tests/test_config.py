"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from savings_sync.config import (
    RemoteSettings,
    StorageSettings,
    SyncSettings,
    get_settings,
    validate_all_settings,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "SAVINGS_STORAGE_BACKEND",
        "SAVINGS_STORAGE_SCHEMA_TAG",
        "SAVINGS_REMOTE_MODE",
        "SAVINGS_REMOTE_BASE_URL",
        "SAVINGS_SYNC_SERIALIZE_GOAL_WRITES",
        "SAVINGS_SYNC_DEFAULT_CURRENCY",
    ):
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    """Tests for the settings sections."""

    def test_defaults(self):
        """Test the out-of-the-box configuration."""
        storage = StorageSettings()
        remote = RemoteSettings()
        sync = SyncSettings()

        assert storage.backend == "file"
        assert storage.schema_tag == "v2"
        assert storage.key_prefix == "savings"
        assert remote.mode == "simulated"
        assert remote.connect_retries == 3
        assert sync.default_currency == "USD"
        assert sync.serialize_goal_writes is False

    def test_environment_override(self, monkeypatch):
        """Test that prefixed environment variables are picked up."""
        monkeypatch.setenv("SAVINGS_STORAGE_SCHEMA_TAG", "v3")
        monkeypatch.setenv("SAVINGS_SYNC_SERIALIZE_GOAL_WRITES", "true")

        assert StorageSettings().schema_tag == "v3"
        assert SyncSettings().serialize_goal_writes is True

    def test_http_mode_requires_base_url(self):
        """Test that http mode without a URL is rejected."""
        with pytest.raises(ValidationError):
            RemoteSettings(mode="http")

    def test_base_url_trailing_slash_stripped(self):
        """Test URL normalization."""
        remote = RemoteSettings(mode="http", base_url="https://api.example.test/")
        assert remote.base_url == "https://api.example.test"

    def test_unknown_backend_rejected(self):
        """Test the backend choice."""
        with pytest.raises(ValidationError):
            StorageSettings(backend="sqlite")

    def test_get_settings_is_cached(self):
        """Test the lru_cache on get_settings()."""
        assert get_settings() is get_settings()


class TestValidateAllSettings:
    """Tests for validate_all_settings()."""

    def test_all_valid(self):
        """Test a clean environment validates."""
        status = validate_all_settings()
        assert all(status[name] for name in ("storage", "remote", "sync", "app"))

    def test_reports_broken_section(self, monkeypatch):
        """Test that a bad section is reported, not raised."""
        monkeypatch.setenv("SAVINGS_REMOTE_MODE", "http")

        status = validate_all_settings()

        assert status["remote"] is False
        assert "remote_error" in status
        assert isinstance(status["remote_error"], str)
        assert status["storage"] is True
