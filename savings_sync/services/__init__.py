"""Services package."""

from savings_sync.services.remote import (
    HttpRemoteAuthority,
    RemoteAuthorityError,
    RemoteAuthorityInterface,
    RemoteProtocolError,
    RemoteUnavailableError,
    SimulatedRemoteAuthority,
)
from savings_sync.services.storage import (
    AuditStorageInterface,
    CorruptDataError,
    GoalRepository,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueAuditStorage,
    KeyValueStoreInterface,
    StorageError,
)

__all__ = [
    # Remote authority
    "HttpRemoteAuthority",
    "RemoteAuthorityError",
    "RemoteAuthorityInterface",
    "RemoteProtocolError",
    "RemoteUnavailableError",
    "SimulatedRemoteAuthority",
    # Storage services
    "AuditStorageInterface",
    "CorruptDataError",
    "GoalRepository",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueAuditStorage",
    "KeyValueStoreInterface",
    "StorageError",
]
