"""
Simulated Remote Authority

An in-process stand-in for the savings backend, used when no server is
configured and throughout the tests. It implements the authority's side
of the contract faithfully, including its own version bookkeeping, and
keeps its records in a key-value store the same way the client does.

Demo/test controls:
- set_online(False) makes every call fail as unreachable
- record_remote_change() plays "another device" advancing a goal
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import TypeAdapter, ValidationError

from savings_sync.models.goal import SavingsTransaction
from savings_sync.models.sync import (
    RemoteGoalRecord,
    RemoteGoalState,
    RemoteSyncResponse,
)
from savings_sync.services.remote.interface import (
    RemoteAuthorityInterface,
    RemoteUnavailableError,
)
from savings_sync.services.storage import (
    CorruptDataError,
    InMemoryKeyValueStore,
    KeyValueStoreInterface,
)


_RECORDS = TypeAdapter(dict[str, RemoteGoalRecord])


class SimulatedRemoteAuthority(RemoteAuthorityInterface):
    """
    Version-checking authority living in the same process.

    Records survive restarts when given a persistent store.
    """

    DB_KEY = "server_savings_db"

    def __init__(
        self,
        store: Optional[KeyValueStoreInterface] = None,
        latency_seconds: float = 0.0,
        db_key: str = DB_KEY,
    ):
        self._store = store or InMemoryKeyValueStore()
        self._latency_seconds = latency_seconds
        self._db_key = db_key
        self._online = True
        self._records = self._load()

    def _load(self) -> dict[str, RemoteGoalRecord]:
        raw = self._store.get(self._db_key)
        if not raw:
            return {}
        try:
            return _RECORDS.validate_json(raw)
        except ValidationError as e:
            raise CorruptDataError(f"Simulated authority records are unreadable: {e}") from e

    def _persist(self) -> None:
        self._store.set(self._db_key, _RECORDS.dump_json(self._records, by_alias=True).decode("utf-8"))

    @property
    def online(self) -> bool:
        return self._online

    def set_online(self, online: bool) -> None:
        """Toggle simulated network connectivity."""
        self._online = online

    def get_record(self, goal_id: str) -> Optional[RemoteGoalRecord]:
        """Copy of the authority's record for a goal, if it has one."""
        record = self._records.get(goal_id)
        return record.model_copy(deep=True) if record else None

    def record_remote_change(
        self,
        goal_id: str,
        version: Optional[int] = None,
        current_amount: Optional[Decimal] = None,
    ) -> RemoteGoalRecord:
        """
        Simulate another writer changing a goal.

        Without an explicit version the record advances by one, as if
        another device had synced a transaction first.
        """
        record = self._records.get(goal_id)
        if record is None:
            record = RemoteGoalRecord(
                goal_id=goal_id,
                state=RemoteGoalState(version=1),
            )
            self._records[goal_id] = record

        record.state = RemoteGoalState(
            version=version if version is not None else record.state.version + 1,
            current_amount=(
                current_amount if current_amount is not None
                else record.state.current_amount
            ),
        )
        record.updated_at = datetime.now(timezone.utc)
        self._persist()
        return record.model_copy(deep=True)

    async def sync_transaction(
        self,
        goal_id: str,
        transaction: SavingsTransaction,
        client_version: int,
    ) -> RemoteSyncResponse:
        if self._latency_seconds:
            await asyncio.sleep(self._latency_seconds)

        if not self._online:
            raise RemoteUnavailableError("Simulated authority is offline")

        record = self._records.get(goal_id)
        if record is None:
            # First sync for this goal: trust the client's starting version
            record = RemoteGoalRecord(
                goal_id=goal_id,
                state=RemoteGoalState(version=client_version),
            )
            self._records[goal_id] = record

        if record.state.version > client_version:
            return RemoteSyncResponse(
                success=False,
                new_version=record.state.version,
                latest_goal=record.model_copy(deep=True),
            )

        record.state = RemoteGoalState(
            version=client_version + 1,
            current_amount=transaction.snapshot_after,
        )
        record.updated_at = datetime.now(timezone.utc)
        self._persist()

        return RemoteSyncResponse(
            success=True,
            new_version=record.state.version,
        )
