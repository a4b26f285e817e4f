"""
Audit Logger

DESIGN DECISION: Every goal mutation and sync verdict is logged.
This provides:
1. Complete traceability of optimistic applies and rollbacks
2. Debugging capability when device and authority disagree
3. User can see history of their transactions, including offline ones

The audit logger:
- Is synchronous, so the remote call stays the engine's only await point
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from savings_sync.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from savings_sync.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("savings_sync.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                stored = self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False
            if not stored:
                self._logger.error(
                    "audit_storage_failed",
                    event_id=str(event.event_id),
                )
            return stored

        return True

    def log_goal_created(
        self,
        user_id: str,
        goal_id: str,
        name: str,
        target_amount: str,
        currency: str,
    ) -> None:
        """Log goal creation."""
        self.log(AuditEventBuilder.goal_created(
            user_id=user_id,
            goal_id=goal_id,
            name=name,
            target_amount=target_amount,
            currency=currency,
        ))

    def log_goals_loaded(
        self,
        user_id: str,
        goal_count: int,
        storage_key: str,
    ) -> None:
        self.log(AuditEventBuilder.goals_loaded(
            user_id=user_id,
            goal_count=goal_count,
            storage_key=storage_key,
        ))

    def log_transaction_applied(
        self,
        user_id: str,
        goal_id: str,
        transaction_id: str,
        transaction_type: str,
        amount: str,
        snapshot_before: str,
        snapshot_after: str,
        applied_version: int,
        correlation_id: UUID,
    ) -> None:
        """Log an optimistic local apply."""
        self.log(AuditEventBuilder.transaction_applied(
            user_id=user_id,
            goal_id=goal_id,
            transaction_id=transaction_id,
            transaction_type=transaction_type,
            amount=amount,
            snapshot_before=snapshot_before,
            snapshot_after=snapshot_after,
            applied_version=applied_version,
            correlation_id=correlation_id,
        ))

    def log_sync_accepted(
        self,
        user_id: str,
        goal_id: str,
        transaction_id: str,
        new_version: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.sync_accepted(
            user_id=user_id,
            goal_id=goal_id,
            transaction_id=transaction_id,
            new_version=new_version,
            correlation_id=correlation_id,
        ))

    def log_sync_conflicted(
        self,
        user_id: str,
        goal_id: str,
        transaction_id: str,
        client_version: int,
        remote_version: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.sync_conflicted(
            user_id=user_id,
            goal_id=goal_id,
            transaction_id=transaction_id,
            client_version=client_version,
            remote_version=remote_version,
            correlation_id=correlation_id,
        ))

    def log_sync_offline(
        self,
        user_id: str,
        goal_id: str,
        transaction_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.sync_offline(
            user_id=user_id,
            goal_id=goal_id,
            transaction_id=transaction_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_transaction_rolled_back(
        self,
        user_id: str,
        goal_id: str,
        transaction_id: str,
        restored_amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.transaction_rolled_back(
            user_id=user_id,
            goal_id=goal_id,
            transaction_id=transaction_id,
            restored_amount=restored_amount,
            correlation_id=correlation_id,
        ))

    def log_storage_failed(
        self,
        user_id: str,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed read or write of the local medium."""
        self.log(AuditEventBuilder.storage_failed(
            user_id=user_id,
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a deposit).
    Pass it through all subsequent operations.
    """
    return uuid4()
