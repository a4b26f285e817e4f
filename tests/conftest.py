"""
Shared fixtures for the Savings Sync test suite.

Everything runs against in-memory storage and the simulated authority.
No network, no files outside tmp_path.
"""

import pytest

from savings_sync.audit import AuditLogger
from savings_sync.config import SyncSettings, get_settings
from savings_sync.manager import SavingsManager
from savings_sync.models.goal import CurrentUser
from savings_sync.services.remote import SimulatedRemoteAuthority
from savings_sync.services.storage import (
    GoalRepository,
    InMemoryKeyValueStore,
    KeyValueAuditStorage,
)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def user():
    return CurrentUser(id="user-1", display_name="Ada")


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def repository(store):
    return GoalRepository(store)


@pytest.fixture
def audit_storage(store, user):
    return KeyValueAuditStorage(store, key=f"savings_audit_log_{user.id}")


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def remote():
    return SimulatedRemoteAuthority(latency_seconds=0)


@pytest.fixture
def sync_settings():
    return SyncSettings(default_currency="USD", serialize_goal_writes=False)


@pytest.fixture
def manager(user, remote, repository, audit_logger, sync_settings):
    return SavingsManager(
        current_user=user,
        remote=remote,
        repository=repository,
        audit_logger=audit_logger,
        settings=sync_settings,
    )
