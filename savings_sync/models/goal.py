"""
Ledger Entity Models for Savings Sync

These models define the strict schemas for goals and their ledgers.
They are designed to:
1. Enforce the money and version invariants at runtime
2. Serialize to the camelCase shape used in local storage and on the wire
3. Keep an exact audit pair (snapshot before/after) on every transaction

DESIGN DECISION: Identity fields (id, name, target) are frozen.
Only GoalState and the ledger change after creation, and only the
SavingsManager changes them.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from savings_sync.models.money import Money, compute_progress, sanitize_money


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """
    Direction of a ledger entry.

    The amount itself is never negative; the sign lives here.
    """
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"


# =============================================================================
# IDENTITY
# =============================================================================

class CurrentUser(BaseModel):
    """The actor every goal, storage key and remote call is scoped to."""
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="Stable user identifier"
    )
    display_name: Optional[str] = Field(
        default=None,
        max_length=200,
    )


# =============================================================================
# GOAL MODELS
# =============================================================================

class GoalTarget(BaseModel):
    """What the user is saving towards. Never changes after creation."""
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    amount: Money = Field(
        ...,
        gt=0,
        description="Target amount"
    )
    currency: str = Field(
        default="USD",
        pattern="^[A-Z]{3}$",
        description="ISO 4217 currency code"
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        description="When the goal was created"
    )

    @field_validator('currency', mode='before')
    @classmethod
    def upper_currency(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


class GoalState(BaseModel):
    """
    Mutable, versioned part of a goal.

    Assignments are validated so that every write to current_amount
    is sanitized and progress can never leave [0, 100].
    """
    model_config = ConfigDict(
        validate_assignment=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    current_amount: Money = Field(
        default=Decimal("0.00"),
        description="Accumulated amount; may be negative"
    )
    progress_percentage: float = Field(
        default=0.0,
        ge=0.0,
        le=100.0,
    )
    version: int = Field(
        default=1,
        ge=1,
        description="Optimistic lock; advanced only by remote acceptance"
    )


class SavingsTransaction(BaseModel):
    """
    A single ledger entry.

    snapshot_before / snapshot_after record the goal amount around
    this entry so it can be undone exactly.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str = Field(
        default_factory=_new_id,
        min_length=1,
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Who initiated the transaction"
    )
    type: TransactionType
    amount: Money = Field(
        ...,
        ge=0,
    )
    timestamp: datetime = Field(
        default_factory=_utcnow
    )
    snapshot_before: Money
    snapshot_after: Money
    applied_version: int = Field(
        ...,
        ge=1,
        description="Goal version the change was computed against"
    )
    pending: bool = Field(
        default=False,
        description="Applied locally but never confirmed by the remote"
    )

    @property
    def signed_amount(self) -> Decimal:
        """Amount with its direction applied."""
        if self.type == TransactionType.WITHDRAWAL:
            return -self.amount
        return self.amount

    @model_validator(mode='after')
    def validate_snapshots(self) -> 'SavingsTransaction':
        """The audit pair must agree with the amount and direction."""
        expected = sanitize_money(self.snapshot_before + self.signed_amount)
        if self.snapshot_after != expected:
            raise ValueError(
                f"snapshotAfter {self.snapshot_after} does not follow from "
                f"snapshotBefore {self.snapshot_before} and {self.type.value} "
                f"of {self.amount}"
            )
        return self


class Goal(BaseModel):
    """
    A named savings target with its state and ledger.

    Persisted as-is (camelCase keys) under the owner's storage key.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str = Field(
        default_factory=_new_id,
        min_length=1,
        frozen=True,
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        frozen=True,
    )
    target: GoalTarget = Field(
        ...,
        alias="targetDetails",
        frozen=True,
    )
    state: GoalState = Field(default_factory=GoalState)
    ledger: list[SavingsTransaction] = Field(default_factory=list)

    def recompute_progress(self) -> float:
        """Refresh progress_percentage from the current amount."""
        self.state.progress_percentage = compute_progress(
            self.state.current_amount,
            self.target.amount,
        )
        return self.state.progress_percentage

    @property
    def last_transaction(self) -> Optional[SavingsTransaction]:
        return self.ledger[-1] if self.ledger else None

    @property
    def pending_transactions(self) -> list[SavingsTransaction]:
        """Entries applied while the remote authority was unreachable."""
        return [tx for tx in self.ledger if tx.pending]
