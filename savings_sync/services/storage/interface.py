"""
Abstract Storage Interface

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Swap the local JSON files for a browser-style key-value store or SQLite
2. Use in-memory storage for testing
3. Keep the synchronization engine decoupled from the storage medium

The goal medium is intentionally a plain key-value store with string
values. Goals for one user are always written and read as one blob,
so get/set is all the engine needs.

Key-value operations are synchronous: a mutation is persisted in the
same step that made it, with no write buffering.
"""

from abc import ABC, abstractmethod
from typing import Optional

from savings_sync.models.audit import AuditEvent


class KeyValueStoreInterface(ABC):
    """
    Abstract interface for the durable key-value medium.

    Any implementation (files, SQLite, a browser bridge, etc.)
    must implement these methods.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Returns:
            The stored string, or None if the key was never written

        Raises:
            StorageError: If the medium cannot be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Store a value, replacing any previous one.

        Raises:
            StorageError: If the write fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_correlation_id(self, correlation_id) -> list[AuditEvent]:
        """
        Get all events of one add_transaction call.

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific goal or transaction.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class CorruptDataError(StorageError):
    """Stored data exists but cannot be decoded."""
    pass
