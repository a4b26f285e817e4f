"""
Savings Manager - the synchronization engine

This module owns a user's goals and runs the optimistic-concurrency
protocol against the remote authority:

1. Apply the transaction locally and persist it (the user sees the new
   total immediately)
2. Ask the remote authority to accept it, quoting the version the change
   was computed against
3. Reconcile on the verdict:
   - accepted    → adopt the authority's new version
   - conflicted  → roll the transaction back and hand the remote state
                   to the caller; no merge happens here. If overlapping
                   calls already stacked newer entries on top of it, it
                   is kept and flagged pending instead
   - unreachable → keep the change, flag it pending

DESIGN DECISION: Conflict and unreachability are handled asymmetrically.
An authority that answers "you are behind" is authoritative, so we
revert. An authority that cannot answer at all is not, so we trust the
optimistic value until it can be reconciled later.

Every mutation is persisted in the same step that makes it. The awaited
remote call is the only point where control returns to the event loop.
"""

import asyncio
from collections.abc import Iterable
from contextlib import nullcontext
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

import structlog

from savings_sync.audit import AuditLogger, create_correlation_id
from savings_sync.config import Settings, SyncSettings, get_settings
from savings_sync.models.goal import (
    CurrentUser,
    Goal,
    GoalTarget,
    SavingsTransaction,
    TransactionType,
)
from savings_sync.models.money import MoneyInput, sanitize_money
from savings_sync.models.sync import (
    SyncAccepted,
    SyncConflicted,
    SyncOffline,
    SyncResult,
)
from savings_sync.services.remote import (
    HttpRemoteAuthority,
    RemoteAuthorityError,
    RemoteAuthorityInterface,
    RemoteProtocolError,
    RemoteUnavailableError,
    SimulatedRemoteAuthority,
)
from savings_sync.services.storage import (
    GoalRepository,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueAuditStorage,
    KeyValueStoreInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)


class SavingsError(Exception):
    """Base exception for savings operations."""
    pass


class GoalNotFoundError(SavingsError, KeyError):
    """Operation referenced a goal id this user does not have."""

    def __init__(self, goal_id: str):
        self.goal_id = goal_id
        super().__init__(f"Goal not found: {goal_id}")

    def __str__(self) -> str:
        return self.args[0]


class InvalidTransactionError(SavingsError, ValueError):
    """Amount or type cannot form a ledger entry."""
    pass


class SavingsManager:
    """
    Synchronization engine for one user's savings goals.

    Goals are held in a dict keyed by goal id, loaded from the
    repository on construction and written back after every mutation.
    Instances are never shared between users.
    """

    def __init__(
        self,
        current_user: CurrentUser,
        remote: RemoteAuthorityInterface,
        repository: Optional[GoalRepository] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[SyncSettings] = None,
    ):
        self._current_user = current_user
        self._remote = remote
        self._repository = repository or GoalRepository(InMemoryKeyValueStore())
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings().sync

        self._goals: dict[str, Goal] = {}
        self._goal_locks: dict[str, asyncio.Lock] = {}

        self._load_from_storage()

    @property
    def current_user(self) -> CurrentUser:
        return self._current_user

    @property
    def remote(self) -> RemoteAuthorityInterface:
        return self._remote

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _load_from_storage(self) -> None:
        user_id = self._current_user.id
        try:
            goals = self._repository.load(user_id)
        except StorageError as e:
            self._audit_logger.log_storage_failed(
                user_id=user_id,
                operation="load",
                error_message=str(e),
            )
            raise

        self._goals = {goal.id: goal for goal in goals}
        self._audit_logger.log_goals_loaded(
            user_id=user_id,
            goal_count=len(self._goals),
            storage_key=self._repository.storage_key(user_id),
        )

    def _save_to_storage(self, correlation_id: Optional[UUID] = None) -> None:
        user_id = self._current_user.id
        try:
            self._repository.save(user_id, self._goals.values())
        except StorageError as e:
            self._audit_logger.log_storage_failed(
                user_id=user_id,
                operation="save",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    def create_goal(
        self,
        name: str,
        target_amount: MoneyInput,
        currency: Optional[str] = None,
    ) -> Goal:
        """
        Create a goal at version 1 with nothing saved yet.

        Creation is local only; the authority first hears about a goal
        when its first transaction syncs.

        Raises:
            pydantic.ValidationError: If name, amount or currency is invalid
        """
        goal = Goal(
            name=name,
            target=GoalTarget(
                amount=target_amount,
                currency=currency or self._settings.default_currency,
            ),
        )
        self._goals[goal.id] = goal
        try:
            self._save_to_storage()
        except StorageError:
            del self._goals[goal.id]
            raise

        self._audit_logger.log_goal_created(
            user_id=self._current_user.id,
            goal_id=goal.id,
            name=goal.name,
            target_amount=str(goal.target.amount),
            currency=goal.target.currency,
        )
        return goal

    def get_goal(self, goal_id: str) -> Optional[Goal]:
        return self._goals.get(goal_id)

    def get_all_goals(self) -> list[Goal]:
        return list(self._goals.values())

    def get_pending_transactions(self, goal_id: str) -> list[SavingsTransaction]:
        """Entries applied while the authority was unreachable."""
        return self._require_goal(goal_id).pending_transactions

    def _require_goal(self, goal_id: str) -> Goal:
        goal = self._goals.get(goal_id)
        if goal is None:
            raise GoalNotFoundError(goal_id)
        return goal

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def add_transaction(
        self,
        goal_id: str,
        amount: MoneyInput,
        transaction_type: Union[TransactionType, str] = TransactionType.DEPOSIT,
    ) -> SyncResult:
        """
        Apply a deposit or withdrawal optimistically, then sync it.

        Returns:
            SyncAccepted, SyncConflicted or SyncOffline

        Raises:
            GoalNotFoundError: If the goal does not exist (nothing changes)
            InvalidTransactionError: If amount or type is invalid (nothing changes)
            StorageError: If the local medium fails
        """
        goal = self._require_goal(goal_id)
        tx_type = self._coerce_type(transaction_type)
        clean_amount = self._coerce_amount(amount)

        async with self._goal_guard(goal.id):
            correlation_id = create_correlation_id()
            transaction = self._build_transaction(goal, clean_amount, tx_type)

            self._apply_transaction_local(goal, transaction, correlation_id)

            try:
                response = await self._remote.sync_transaction(
                    goal.id,
                    transaction,
                    transaction.applied_version,
                )
                if response.success and response.new_version <= transaction.applied_version:
                    raise RemoteProtocolError(
                        f"Accepted version {response.new_version} does not advance "
                        f"version {transaction.applied_version}"
                    )
            except RemoteAuthorityError as e:
                return self._keep_pending(goal, transaction, e, correlation_id)
            except Exception as e:
                error = RemoteUnavailableError(f"Remote authority call failed: {e!r}")
                error.__cause__ = e
                return self._keep_pending(goal, transaction, error, correlation_id)

            if response.success:
                # Replies to overlapping calls may arrive out of order
                if response.new_version > goal.state.version:
                    goal.state.version = response.new_version
                self._save_to_storage(correlation_id)

                self._audit_logger.log_sync_accepted(
                    user_id=self._current_user.id,
                    goal_id=goal.id,
                    transaction_id=transaction.id,
                    new_version=response.new_version,
                    correlation_id=correlation_id,
                )
                return SyncAccepted(goal=goal, new_version=response.new_version)

            # Conflict: the authority is ahead of us
            rolled_back = self._rollback_last_transaction(goal, transaction, correlation_id)
            if not rolled_back:
                self._keep_unreverted(goal, transaction, correlation_id)

            self._audit_logger.log_sync_conflicted(
                user_id=self._current_user.id,
                goal_id=goal.id,
                transaction_id=transaction.id,
                client_version=transaction.applied_version,
                remote_version=response.new_version,
                correlation_id=correlation_id,
            )
            return SyncConflicted(
                goal=goal,
                remote_state=response.latest_goal,
                local_transaction=transaction,
                rolled_back=rolled_back,
            )

    async def add_transactions(
        self,
        goal_id: str,
        items: Iterable[tuple[MoneyInput, Union[TransactionType, str]]],
    ) -> list[SyncResult]:
        """
        Sync several transactions on one goal, one after another.

        There is no atomicity across items: each is applied and synced
        on its own, and if item N+1 raises, items 1..N stay applied.
        """
        results = []
        for amount, transaction_type in items:
            results.append(await self.add_transaction(goal_id, amount, transaction_type))
        return results

    def _coerce_type(self, transaction_type: Union[TransactionType, str]) -> TransactionType:
        if isinstance(transaction_type, str) and not isinstance(transaction_type, TransactionType):
            transaction_type = transaction_type.strip().upper()
        try:
            return TransactionType(transaction_type)
        except ValueError:
            raise InvalidTransactionError(
                f"Unknown transaction type: {transaction_type!r}"
            )

    def _coerce_amount(self, amount: MoneyInput) -> Decimal:
        try:
            clean_amount = sanitize_money(amount)
        except ValueError as e:
            raise InvalidTransactionError(str(e))
        if clean_amount < 0:
            raise InvalidTransactionError(
                f"Amount must not be negative, got {clean_amount}; "
                "use a WITHDRAWAL instead"
            )
        return clean_amount

    def _goal_guard(self, goal_id: str):
        """Per-goal lock when serialization is enabled, otherwise a no-op."""
        if not self._settings.serialize_goal_writes:
            return nullcontext()
        return self._goal_locks.setdefault(goal_id, asyncio.Lock())

    def _build_transaction(
        self,
        goal: Goal,
        amount: Decimal,
        transaction_type: TransactionType,
    ) -> SavingsTransaction:
        snapshot_before = goal.state.current_amount
        if transaction_type == TransactionType.DEPOSIT:
            new_amount = sanitize_money(snapshot_before + amount)
        else:
            new_amount = sanitize_money(snapshot_before - amount)

        return SavingsTransaction(
            user_id=self._current_user.id,
            type=transaction_type,
            amount=amount,
            snapshot_before=snapshot_before,
            snapshot_after=new_amount,
            applied_version=goal.state.version,
        )

    def _apply_transaction_local(
        self,
        goal: Goal,
        transaction: SavingsTransaction,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        goal.ledger.append(transaction)
        goal.state.current_amount = transaction.snapshot_after
        goal.recompute_progress()
        self._save_to_storage(correlation_id)

        self._audit_logger.log_transaction_applied(
            user_id=self._current_user.id,
            goal_id=goal.id,
            transaction_id=transaction.id,
            transaction_type=transaction.type.value,
            amount=str(transaction.amount),
            snapshot_before=str(transaction.snapshot_before),
            snapshot_after=str(transaction.snapshot_after),
            applied_version=transaction.applied_version,
            correlation_id=correlation_id,
        )

    def _rollback_last_transaction(
        self,
        goal: Goal,
        transaction: SavingsTransaction,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Undo a rejected transaction if it is still the newest ledger entry.

        Returns False, changing nothing, when a later entry was applied on
        top of it: its snapshots could no longer be restored exactly.
        """
        if goal.last_transaction is not transaction:
            return False

        goal.ledger.pop()
        goal.state.current_amount = transaction.snapshot_before
        goal.recompute_progress()
        self._save_to_storage(correlation_id)

        self._audit_logger.log_transaction_rolled_back(
            user_id=self._current_user.id,
            goal_id=goal.id,
            transaction_id=transaction.id,
            restored_amount=str(transaction.snapshot_before),
            correlation_id=correlation_id,
        )
        return True

    def _keep_unreverted(
        self,
        goal: Goal,
        transaction: SavingsTransaction,
        correlation_id: UUID,
    ) -> None:
        """Flag a rejected entry that is buried under later ones as pending."""
        logger.warning(
            "conflict_not_reverted",
            goal_id=goal.id,
            transaction_id=transaction.id,
            ledger_position=goal.ledger.index(transaction),
        )
        transaction.pending = True
        self._save_to_storage(correlation_id)

    def _keep_pending(
        self,
        goal: Goal,
        transaction: SavingsTransaction,
        error: RemoteAuthorityError,
        correlation_id: UUID,
    ) -> SyncOffline:
        logger.warning(
            "sync_failed_offline_mode",
            goal_id=goal.id,
            transaction_id=transaction.id,
            error=str(error),
        )
        if isinstance(error, RemoteProtocolError):
            self._audit_logger.log_error(
                error_type="remote_protocol",
                error_message=str(error),
                details={"goal_id": goal.id, "transaction_id": transaction.id},
                correlation_id=correlation_id,
            )

        transaction.pending = True
        self._save_to_storage(correlation_id)

        self._audit_logger.log_sync_offline(
            user_id=self._current_user.id,
            goal_id=goal.id,
            transaction_id=transaction.id,
            error_message=str(error),
            correlation_id=correlation_id,
        )
        return SyncOffline(goal=goal, transaction=transaction)


def create_key_value_store(settings: Optional[Settings] = None) -> KeyValueStoreInterface:
    """Build the configured local storage medium."""
    storage_settings = (settings or get_settings()).storage
    if storage_settings.backend == "memory":
        return InMemoryKeyValueStore()
    return JsonFileKeyValueStore(storage_settings.data_dir)


def create_remote_authority(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStoreInterface] = None,
) -> RemoteAuthorityInterface:
    """Build the configured remote authority."""
    remote_settings = (settings or get_settings()).remote
    if remote_settings.mode == "http":
        return HttpRemoteAuthority(
            base_url=remote_settings.base_url,
            timeout_seconds=remote_settings.timeout_seconds,
            connect_retries=remote_settings.connect_retries,
            retry_wait_seconds=remote_settings.retry_wait_seconds,
        )
    return SimulatedRemoteAuthority(
        store=store,
        latency_seconds=remote_settings.simulated_latency_seconds,
    )


def create_savings_manager(
    current_user: CurrentUser,
    settings: Optional[Settings] = None,
    remote: Optional[RemoteAuthorityInterface] = None,
    store: Optional[KeyValueStoreInterface] = None,
) -> SavingsManager:
    """
    Factory function to wire a SavingsManager from configuration.

    Args:
        current_user: User the manager is scoped to
        settings: Settings to use (defaults to get_settings())
        remote: Remote authority override; built from settings if omitted
        store: Key-value medium override; built from settings if omitted

    Returns:
        A manager with the user's goals already loaded
    """
    settings = settings or get_settings()
    storage_settings = settings.storage

    store = store or create_key_value_store(settings)
    repository = GoalRepository(
        store,
        schema_tag=storage_settings.schema_tag,
        key_prefix=storage_settings.key_prefix,
    )
    audit_logger = AuditLogger(
        KeyValueAuditStorage(
            store,
            key=f"{storage_settings.audit_key}_{current_user.id}",
        )
    )

    return SavingsManager(
        current_user=current_user,
        remote=remote or create_remote_authority(settings, store),
        repository=repository,
        audit_logger=audit_logger,
        settings=settings.sync,
    )
