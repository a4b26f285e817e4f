"""
Key-Value Audit Storage

Audit events for one user are kept in the same medium as the goals,
split into fixed-size chunks:

    <key>        {"head": n}          index of the chunk being filled
    <key>_<i>    [event, event, ...]  at most chunk_size events

Chunk slots are reused modulo max_chunks, so the log keeps the most
recent chunk_size * max_chunks events and an append only ever rewrites
one bounded chunk.

DESIGN DECISION: Events are append-only. Old chunks are dropped whole
when their slot is reused; individual events are never edited.
"""

import json
from typing import Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from savings_sync.models.audit import AuditEvent
from savings_sync.services.storage.interface import (
    AuditStorageInterface,
    CorruptDataError,
    KeyValueStoreInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


class KeyValueAuditStorage(AuditStorageInterface):
    """
    Chunked audit log stored in a KeyValueStoreInterface.

    Appends never raise: a failed write is reported through the return
    value so auditing cannot break the main flow. An unreadable chunk is
    logged and abandoned, and appends continue in a fresh chunk. Queries
    that reach an unreadable chunk raise CorruptDataError.
    """

    CHUNK_SIZE = 100
    MAX_CHUNKS = 20

    def __init__(
        self,
        store: KeyValueStoreInterface,
        key: str,
        chunk_size: int = CHUNK_SIZE,
        max_chunks: int = MAX_CHUNKS,
    ):
        if chunk_size < 1 or max_chunks < 1:
            raise ValueError("chunk_size and max_chunks must be positive")
        self._store = store
        self._key = key
        self._chunk_size = chunk_size
        self._max_chunks = max_chunks

    @property
    def key(self) -> str:
        return self._key

    def chunk_key(self, index: int) -> str:
        """Storage key of the slot holding chunk number `index`."""
        return f"{self._key}_{index % self._max_chunks}"

    def _read_head(self) -> int:
        raw = self._store.get(self._key)
        if not raw:
            return 0
        try:
            head = json.loads(raw)["head"]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise CorruptDataError(f"Audit log index under {self._key} is unreadable: {e!r}") from e
        if not isinstance(head, int) or head < 0:
            raise CorruptDataError(f"Audit log index under {self._key} is invalid: {head!r}")
        return head

    def _write_head(self, head: int) -> None:
        self._store.set(self._key, json.dumps({"head": head}))

    def _read_chunk(self, index: int) -> list:
        key = self.chunk_key(index)
        raw = self._store.get(key)
        if not raw:
            return []
        try:
            records = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptDataError(f"Audit chunk {key} is unreadable: {e}") from e
        if not isinstance(records, list):
            raise CorruptDataError(f"Audit chunk {key} is not a list")
        return records

    def _read_all(self) -> list[AuditEvent]:
        head = self._read_head()
        first = max(0, head - self._max_chunks + 1)

        events = []
        for index in range(first, head + 1):
            for record in self._read_chunk(index):
                try:
                    events.append(AuditEvent.model_validate(record))
                except ValidationError:
                    continue  # Skip malformed entries
        return events

    def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event to the current chunk."""
        try:
            head = self._read_head()
            start_head = head

            try:
                records = self._read_chunk(head)
            except CorruptDataError as e:
                logger.error(
                    "audit_chunk_abandoned",
                    key=self.chunk_key(head),
                    error=str(e),
                )
                head += 1
                records = []

            if len(records) >= self._chunk_size:
                head += 1
                records = []

            if head != start_head:
                self._write_head(head)
            records.append(event.model_dump(mode="json"))
            self._store.set(self.chunk_key(head), json.dumps(records))
            return True
        except StorageError as e:
            logger.error(
                "audit_append_failed",
                key=self._key,
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._read_all() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._read_all()
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    def get_recent_events(self, limit: Optional[int] = 100) -> list[AuditEvent]:
        """Get recent events, newest first."""
        events = self._read_all()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
