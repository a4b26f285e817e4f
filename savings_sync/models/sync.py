"""
Synchronization Models

Two groups of models live here:

1. The remote authority wire contract (request, response, record)
2. The tagged result returned by SavingsManager.add_transaction

DESIGN DECISION: The result is a discriminated union, not a bag of
boolean flags. A caller has to look at `outcome` (or the variant
type) to know whether the change was confirmed, reverted, or is only
saved on this device - "offline" can never be mistaken for "synced".
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from savings_sync.models.goal import Goal, SavingsTransaction
from savings_sync.models.money import Money


_WIRE_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
)


# =============================================================================
# REMOTE AUTHORITY WIRE CONTRACT
# =============================================================================

class RemoteGoalState(BaseModel):
    """The authority's own view of a goal's state."""
    model_config = _WIRE_CONFIG

    version: int = Field(
        ...,
        ge=0,
    )
    current_amount: Optional[Money] = Field(
        default=None,
        description="Last amount the authority accepted, if it tracks one"
    )


class RemoteGoalRecord(BaseModel):
    """Server-side record for one goal."""
    model_config = _WIRE_CONFIG

    goal_id: str = Field(
        ...,
        min_length=1,
    )
    state: RemoteGoalState
    updated_at: Optional[datetime] = None


class RemoteSyncRequest(BaseModel):
    """Body of a sync call: the change and the version it was based on."""
    model_config = _WIRE_CONFIG

    goal_id: str = Field(
        ...,
        min_length=1,
    )
    transaction: SavingsTransaction
    client_version: int = Field(
        ...,
        ge=1,
    )


class RemoteSyncResponse(BaseModel):
    """
    Authority verdict.

    success=True  -> new_version is the version the goal now has
    success=False -> the authority was ahead; latest_goal is its state
    """
    model_config = _WIRE_CONFIG

    success: bool
    new_version: int = Field(
        ...,
        ge=0,
    )
    latest_goal: Optional[RemoteGoalRecord] = None

    @model_validator(mode='after')
    def require_latest_goal_on_conflict(self) -> 'RemoteSyncResponse':
        if not self.success and self.latest_goal is None:
            raise ValueError("A rejected sync must carry latestGoal")
        return self


# =============================================================================
# ENGINE RESULTS
# =============================================================================

class SyncOutcome(str, Enum):
    """The three mutually exclusive results of a sync attempt."""
    ACCEPTED = "accepted"
    CONFLICTED = "conflicted"
    UNREACHABLE = "unreachable"


class _SyncResultBase(BaseModel):
    @property
    def success(self) -> bool:
        """True when the user's change is still in effect locally."""
        return self.outcome != SyncOutcome.CONFLICTED

    @property
    def conflict(self) -> bool:
        return self.outcome == SyncOutcome.CONFLICTED

    @property
    def offline(self) -> bool:
        return self.outcome == SyncOutcome.UNREACHABLE


class SyncAccepted(_SyncResultBase):
    """The authority confirmed the change and issued a new version."""

    outcome: Literal[SyncOutcome.ACCEPTED] = SyncOutcome.ACCEPTED
    goal: Goal
    new_version: int

    @property
    def user_message(self) -> str:
        return "Saved."


class SyncConflicted(_SyncResultBase):
    """
    The authority had already moved past our version.

    Normally the local change has been rolled back and local_transaction
    is the detached entry, so the caller can retry or re-derive it
    against remote_state.

    When overlapping calls on the same goal are answered out of order,
    later entries may already sit on top of the rejected one. It is then
    left in the ledger flagged pending and rolled_back is False.
    """

    outcome: Literal[SyncOutcome.CONFLICTED] = SyncOutcome.CONFLICTED
    goal: Goal
    remote_state: RemoteGoalRecord
    local_transaction: SavingsTransaction
    rolled_back: bool = True

    @property
    def success(self) -> bool:
        return not self.rolled_back

    @property
    def user_message(self) -> str:
        if not self.rolled_back:
            return (
                "This goal was updated on another device. Your change is "
                "kept on this device and marked for review."
            )
        return (
            "Changes reverted: this goal was updated on another device. "
            "Review the latest amount and try again."
        )


class SyncOffline(_SyncResultBase):
    """
    The authority could not be reached.

    The change stays applied locally and is flagged pending.
    """

    outcome: Literal[SyncOutcome.UNREACHABLE] = SyncOutcome.UNREACHABLE
    goal: Goal
    transaction: SavingsTransaction

    @property
    def user_message(self) -> str:
        return "Saved offline, will sync later."


SyncResult = Annotated[
    Union[SyncAccepted, SyncConflicted, SyncOffline],
    Field(discriminator="outcome"),
]
