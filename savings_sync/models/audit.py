"""
Audit Models for Savings Sync

Every goal mutation and every sync verdict is logged for audit purposes.
This provides:
1. Traceability of optimistic applies, rollbacks and pending entries
2. Debugging information when device and authority disagree
3. A history the user can inspect after going offline

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of the apply → sync → reconcile sequence has its own type.
    """
    # Goal lifecycle
    GOAL_CREATED = "goal_created"
    GOALS_LOADED = "goals_loaded"

    # Ledger
    TRANSACTION_APPLIED = "transaction_applied"
    TRANSACTION_ROLLED_BACK = "transaction_rolled_back"

    # Remote verdicts
    SYNC_ACCEPTED = "sync_accepted"
    SYNC_CONFLICTED = "sync_conflicted"
    SYNC_OFFLINE = "sync_offline"

    # System events
    STORAGE_FAILED = "storage_failed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who and what
    user_id: Optional[str] = Field(
        default=None,
        description="User the affected goals belong to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'goal', 'transaction')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by all events of one add_transaction call"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_json(self) -> str:
        """Serialize for key-value audit storage."""
        return json.dumps(self.model_dump(mode="json"))


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.goal_created(user_id, goal_id, name, ...)
        event = AuditEventBuilder.sync_conflicted(user_id, goal_id, ...)
    """

    @staticmethod
    def goal_created(
        user_id: str,
        goal_id: str,
        name: str,
        target_amount: str,
        currency: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_CREATED,
            user_id=user_id,
            entity_type="goal",
            entity_id=goal_id,
            description=f"Goal created: {name} ({target_amount} {currency})",
            details={
                "name": name,
                "target_amount": target_amount,
                "currency": currency,
            },
            is_user_action=True,
        )

    @staticmethod
    def goals_loaded(
        user_id: str,
        goal_count: int,
        storage_key: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOALS_LOADED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            description=f"Loaded {goal_count} goals from local storage",
            details={
                "goal_count": goal_count,
                "storage_key": storage_key,
            },
        )

    @staticmethod
    def transaction_applied(
        user_id: str,
        goal_id: str,
        transaction_id: str,
        transaction_type: str,
        amount: str,
        snapshot_before: str,
        snapshot_after: str,
        applied_version: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_APPLIED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"{transaction_type} of {amount} applied locally",
            details={
                "goal_id": goal_id,
                "type": transaction_type,
                "amount": amount,
                "snapshot_before": snapshot_before,
                "snapshot_after": snapshot_after,
                "applied_version": applied_version,
            },
            is_user_action=True,
        )

    @staticmethod
    def sync_accepted(
        user_id: str,
        goal_id: str,
        transaction_id: str,
        new_version: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_ACCEPTED,
            user_id=user_id,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=f"Remote accepted transaction, goal now at version {new_version}",
            details={
                "transaction_id": transaction_id,
                "new_version": new_version,
            },
        )

    @staticmethod
    def sync_conflicted(
        user_id: str,
        goal_id: str,
        transaction_id: str,
        client_version: int,
        remote_version: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_CONFLICTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="goal",
            entity_id=goal_id,
            correlation_id=correlation_id,
            description=(
                f"Remote rejected transaction: client at version {client_version}, "
                f"remote at {remote_version}"
            ),
            details={
                "transaction_id": transaction_id,
                "client_version": client_version,
                "remote_version": remote_version,
            },
        )

    @staticmethod
    def sync_offline(
        user_id: str,
        goal_id: str,
        transaction_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_OFFLINE,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Remote unreachable, transaction kept as pending",
            error_message=error_message,
            details={
                "goal_id": goal_id,
            },
        )

    @staticmethod
    def transaction_rolled_back(
        user_id: str,
        goal_id: str,
        transaction_id: str,
        restored_amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ROLLED_BACK,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction rolled back, amount restored to {restored_amount}",
            details={
                "goal_id": goal_id,
                "restored_amount": restored_amount,
            },
        )

    @staticmethod
    def storage_failed(
        user_id: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Local storage {operation} failed",
            error_message=error_message,
            details={
                "operation": operation,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
