"""
Storage Services Package

Provides abstract interfaces and concrete implementations for local storage.
Goals and audit events live in a key-value medium: files on disk by
default, a dict in tests.
"""

from savings_sync.services.storage.interface import (
    AuditStorageInterface,
    CorruptDataError,
    KeyValueStoreInterface,
    StorageError,
)
from savings_sync.services.storage.key_value import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
)
from savings_sync.services.storage.goal_repository import GoalRepository
from savings_sync.services.storage.audit_storage import KeyValueAuditStorage

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "KeyValueStoreInterface",
    # Exceptions
    "CorruptDataError",
    "StorageError",
    # Implementations
    "GoalRepository",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueAuditStorage",
]
