"""
Data Models Package

This package contains all Pydantic models used in Savings Sync.
All goals, ledger entries and remote verdicts must conform to these schemas.
"""

from savings_sync.models.money import (
    Money,
    compute_progress,
    sanitize_money,
)
from savings_sync.models.goal import (
    CurrentUser,
    Goal,
    GoalState,
    GoalTarget,
    SavingsTransaction,
    TransactionType,
)
from savings_sync.models.sync import (
    RemoteGoalRecord,
    RemoteGoalState,
    RemoteSyncRequest,
    RemoteSyncResponse,
    SyncAccepted,
    SyncConflicted,
    SyncOffline,
    SyncOutcome,
    SyncResult,
)
from savings_sync.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Money
    "Money",
    "compute_progress",
    "sanitize_money",
    # Goal models
    "CurrentUser",
    "Goal",
    "GoalState",
    "GoalTarget",
    "SavingsTransaction",
    "TransactionType",
    # Sync models
    "RemoteGoalRecord",
    "RemoteGoalState",
    "RemoteSyncRequest",
    "RemoteSyncResponse",
    "SyncAccepted",
    "SyncConflicted",
    "SyncOffline",
    "SyncOutcome",
    "SyncResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
