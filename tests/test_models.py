"""
Tests for Savings Sync models

Test strategy:
1. Validation rules on goals and ledger entries
2. camelCase wire shape
3. Tagged sync results
"""

import json
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import TypeAdapter, ValidationError

from savings_sync.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
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
    RemoteSyncResponse,
    SyncAccepted,
    SyncConflicted,
    SyncOffline,
    SyncOutcome,
    SyncResult,
)


def make_goal(**kwargs) -> Goal:
    return Goal(
        name=kwargs.pop("name", "Bike"),
        target=GoalTarget(amount=kwargs.pop("target", "500"), currency="usd"),
        **kwargs,
    )


def make_transaction(**kwargs) -> SavingsTransaction:
    values = dict(
        user_id="user-1",
        type=TransactionType.DEPOSIT,
        amount="50",
        snapshot_before="100",
        snapshot_after="150",
        applied_version=1,
    )
    values.update(kwargs)
    return SavingsTransaction(**values)


class TestGoalModels:
    """Tests for goal-related Pydantic models."""

    def test_new_goal_defaults(self):
        """Test that a goal starts at version 1 with nothing saved."""
        goal = make_goal()
        assert goal.state.version == 1
        assert goal.state.current_amount == Decimal("0.00")
        assert goal.state.progress_percentage == 0.0
        assert goal.ledger == []
        assert goal.id

    def test_target_currency_is_upper_cased(self):
        """Test currency normalization."""
        assert make_goal().target.currency == "USD"

    def test_target_must_be_positive(self):
        """Test that a zero target is rejected."""
        with pytest.raises(ValidationError):
            GoalTarget(amount=0)

    def test_invalid_currency_rejected(self):
        """Test currency pattern."""
        with pytest.raises(ValidationError):
            GoalTarget(amount=10, currency="dollars")

    def test_name_required(self):
        """Test that an empty name is rejected."""
        with pytest.raises(ValidationError):
            make_goal(name="   ")

    def test_identity_fields_are_frozen(self):
        """Test that a goal's name cannot change after creation."""
        goal = make_goal()
        with pytest.raises(ValidationError):
            goal.name = "Car"

    def test_state_assignment_is_sanitized(self):
        """Test that writes to current_amount go through the sanitizer."""
        state = GoalState()
        state.current_amount = 0.1 + 0.2
        assert state.current_amount == Decimal("0.30")

    def test_state_rejects_progress_out_of_range(self):
        """Test progress bounds."""
        state = GoalState()
        with pytest.raises(ValidationError):
            state.progress_percentage = 120.0

    def test_state_version_starts_at_one(self):
        """Test that version 0 is invalid."""
        with pytest.raises(ValidationError):
            GoalState(version=0)

    def test_recompute_progress(self):
        """Test progress follows the current amount."""
        goal = make_goal()
        goal.state.current_amount = Decimal("150")
        assert goal.recompute_progress() == 30.0

    def test_serializes_with_camel_case_keys(self):
        """Test the persisted shape."""
        goal = make_goal()
        goal.ledger.append(make_transaction(snapshot_before="0", snapshot_after="50"))
        data = json.loads(goal.model_dump_json(by_alias=True))

        assert "targetDetails" in data
        assert data["state"]["currentAmount"] == 0.0
        assert "progressPercentage" in data["state"]
        entry = data["ledger"][0]
        assert entry["snapshotAfter"] == 50.0
        assert entry["appliedVersion"] == 1

    def test_loads_from_camel_case(self):
        """Test that the persisted shape validates back into a Goal."""
        goal = make_goal()
        restored = Goal.model_validate_json(goal.model_dump_json(by_alias=True))
        assert restored.model_dump() == goal.model_dump()

    def test_pending_transactions(self):
        """Test the pending view of the ledger."""
        goal = make_goal()
        goal.ledger.append(make_transaction(snapshot_before="0", snapshot_after="50"))
        goal.ledger.append(
            make_transaction(snapshot_before="50", snapshot_after="100", pending=True)
        )
        assert [tx.snapshot_after for tx in goal.pending_transactions] == [Decimal("100.00")]
        assert goal.last_transaction.pending is True

    def test_current_user_requires_id(self):
        """Test that a blank user id is rejected."""
        with pytest.raises(ValidationError):
            CurrentUser(id="")


class TestSavingsTransaction:
    """Tests for ledger entries."""

    def test_snapshot_pair_must_match_deposit(self):
        """Test that an inconsistent audit pair is rejected."""
        with pytest.raises(ValidationError):
            make_transaction(snapshot_after="160")

    def test_withdrawal_snapshot_pair(self):
        """Test a withdrawal that takes the balance negative."""
        tx = make_transaction(
            type=TransactionType.WITHDRAWAL,
            amount="300",
            snapshot_before="200",
            snapshot_after="-100",
        )
        assert tx.signed_amount == Decimal("-300.00")

    def test_negative_amount_rejected(self):
        """Test that the sign lives in the type, not the amount."""
        with pytest.raises(ValidationError):
            make_transaction(amount="-50", snapshot_after="50")

    def test_unknown_type_rejected(self):
        """Test transaction type enum."""
        with pytest.raises(ValidationError):
            make_transaction(type="TRANSFER")


class TestSyncModels:
    """Tests for the remote wire contract and engine results."""

    def test_rejection_requires_latest_goal(self):
        """Test that a conflict without remote state is malformed."""
        with pytest.raises(ValidationError):
            RemoteSyncResponse(success=False, new_version=4)

    def test_response_parses_camel_case(self):
        """Test parsing a 409 body."""
        response = RemoteSyncResponse.model_validate({
            "success": False,
            "newVersion": 4,
            "latestGoal": {"goalId": "g1", "state": {"version": 4, "currentAmount": 300}},
        })
        assert response.latest_goal.state.current_amount == Decimal("300.00")

    def test_result_flags(self):
        """Test that each variant reports exactly one outcome."""
        goal = make_goal()
        tx = make_transaction()
        record = RemoteGoalRecord(goal_id=goal.id, state=RemoteGoalState(version=4))

        accepted = SyncAccepted(goal=goal, new_version=2)
        conflicted = SyncConflicted(goal=goal, remote_state=record, local_transaction=tx)
        offline = SyncOffline(goal=goal, transaction=tx)

        assert (accepted.success, accepted.conflict, accepted.offline) == (True, False, False)
        assert (conflicted.success, conflicted.conflict, conflicted.offline) == (False, True, False)
        assert (offline.success, offline.conflict, offline.offline) == (True, False, True)

    def test_user_messages_differ(self):
        """Test that offline is never worded like a confirmed save."""
        goal = make_goal()
        tx = make_transaction()
        record = RemoteGoalRecord(goal_id=goal.id, state=RemoteGoalState(version=4))
        messages = {
            SyncAccepted(goal=goal, new_version=2).user_message,
            SyncConflicted(goal=goal, remote_state=record, local_transaction=tx).user_message,
            SyncOffline(goal=goal, transaction=tx).user_message,
        }
        assert len(messages) == 3

    def test_unreverted_conflict_keeps_change(self):
        """Test that a conflict left in the ledger is reported as still in effect."""
        goal = make_goal()
        tx = make_transaction()
        record = RemoteGoalRecord(goal_id=goal.id, state=RemoteGoalState(version=4))

        reverted = SyncConflicted(goal=goal, remote_state=record, local_transaction=tx)
        kept = SyncConflicted(goal=goal, remote_state=record, local_transaction=tx, rolled_back=False)

        assert (kept.success, kept.conflict) == (True, True)
        assert kept.user_message != reverted.user_message

    def test_accepted_version_is_authority_defined(self):
        """Test that any version the authority issues is representable."""
        accepted = SyncAccepted(goal=make_goal(), new_version=1)
        assert accepted.new_version == 1

    def test_result_union_discriminates_on_outcome(self):
        """Test that a dumped result validates back into the right variant."""
        goal = make_goal()
        dumped = SyncOffline(goal=goal, transaction=make_transaction()).model_dump()
        result = TypeAdapter(SyncResult).validate_python(dumped)
        assert isinstance(result, SyncOffline)
        assert result.outcome == SyncOutcome.UNREACHABLE


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.GOAL_CREATED,
            description="Goal created",
        )
        assert event.event_id is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to a structured log dict."""
        correlation_id = uuid4()
        event = AuditEventBuilder.sync_offline(
            user_id="user-1",
            goal_id="g1",
            transaction_id="t1",
            error_message="timeout",
            correlation_id=correlation_id,
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "sync_offline"
        assert log_dict["severity"] == "warning"
        assert log_dict["correlation_id"] == str(correlation_id)
        assert log_dict["error_message"] == "timeout"

    def test_builder_sync_conflicted(self):
        """Test the conflict event carries both versions."""
        event = AuditEventBuilder.sync_conflicted(
            user_id="user-1",
            goal_id="g1",
            transaction_id="t1",
            client_version=3,
            remote_version=4,
            correlation_id=uuid4(),
        )
        assert event.details == {"transaction_id": "t1", "client_version": 3, "remote_version": 4}
        assert event.entity_id == "g1"

    def test_to_json_round_trips(self):
        """Test the storage serialization."""
        event = AuditEventBuilder.goal_created("user-1", "g1", "Bike", "500.00", "USD")
        assert AuditEvent.model_validate_json(event.to_json()).model_dump() == event.model_dump()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
