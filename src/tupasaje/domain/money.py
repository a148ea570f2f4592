"""Decimal helpers for wallet amounts."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Union

from .errors import InvalidAmountError

MINOR_UNIT = Decimal("0.01")

AmountLike = Union[Decimal, int, float, str]


def to_decimal(value: AmountLike) -> Decimal:
    """Convert a user or wire value into a Decimal without float drift.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal("0.1")``.

    Raises:
        InvalidAmountError: If the value is not a finite number.
    """
    if isinstance(value, bool):
        raise InvalidAmountError("Please enter a valid amount")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidAmountError("Please enter a valid amount")
    if not result.is_finite():
        raise InvalidAmountError("Please enter a valid amount")
    return result


def is_minor_unit_exact(amount: Decimal) -> bool:
    return amount == amount.quantize(MINOR_UNIT)


def require_positive_amount(value: AmountLike) -> Decimal:
    """Return ``value`` as a positive Decimal exact in the minor unit.

    Raises:
        InvalidAmountError: If the amount is zero, negative or too precise.
    """
    amount = to_decimal(value)
    if amount <= 0:
        raise InvalidAmountError("The amount must be greater than 0")
    if not is_minor_unit_exact(amount):
        raise InvalidAmountError(
            f"The amount {amount} cannot be represented in the wallet currency"
        )
    return amount


def amounts_match(left: Decimal, right: Decimal) -> bool:
    """Compare two amounts within the minor unit precision."""
    return abs(left - right) < MINOR_UNIT


def to_wire_number(amount: Decimal) -> Union[int, float]:
    """Render an amount as a JSON number.

    Integral amounts become ints. Two-decimal amounts survive the float
    round-trip because ``repr`` emits the shortest exact representation.
    """
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)
