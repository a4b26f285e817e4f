"""
Money Sanitizer

Every monetary quantity that is stored or compared goes through
sanitize_money() first. Values are held as Decimal at two decimal
places so repeated deposits and withdrawals cannot accumulate
floating-point drift.

Negative values are valid money here: a withdrawal may take a goal
below zero.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated, Union

from pydantic import BeforeValidator, PlainSerializer


CENT = Decimal("0.01")

MoneyInput = Union[Decimal, int, float, str]


def sanitize_money(value: MoneyInput) -> Decimal:
    """
    Round a monetary value to the nearest hundredth.

    Halves round away from zero. Floats are converted through their
    shortest repr, so 0.1 + 0.2 becomes Decimal("0.30") and 1.005
    becomes Decimal("1.01").

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary value: {value!r}")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, float):
        amount = Decimal(repr(value))
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Not a monetary value: {value!r}")

    if not amount.is_finite():
        raise ValueError(f"Monetary value must be finite, got {value!r}")

    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Monetary value out of range: {value!r}")


def compute_progress(current: Decimal, target: Decimal) -> float:
    """Percentage of target reached, clamped to [0, 100]."""
    if target <= 0:
        return 0.0
    percentage = float(current / target * 100)
    return max(0.0, min(percentage, 100.0))


# Pydantic field type: sanitized on the way in, a JSON number on the way out
Money = Annotated[
    Decimal,
    BeforeValidator(sanitize_money),
    PlainSerializer(float, return_type=float, when_used="json"),
]
