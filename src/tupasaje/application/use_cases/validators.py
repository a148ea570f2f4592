"""Pure validation functions for payment flows.

These functions contain the client-side rules that must hold before any
network call. They can be tested in isolation without a backend.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional, Sequence

from ...domain.entities import AuthenticatedUser, CounterpartyIdentity
from ...domain.errors import (
    AmountAboveMaximumError,
    AmountBelowMinimumError,
    InsufficientFundsError,
    InvalidExpiryError,
    InvalidPhoneNumberError,
    MissingRecipientError,
    SelfTransferError,
)
from ...domain.money import AmountLike, require_positive_amount
from ..formatters import normalize_phone


def validate_amount(
    value: AmountLike,
    *,
    minimum: Optional[Decimal] = None,
    maximum: Optional[Decimal] = None,
) -> Decimal:
    """Validate an entered amount and return it as a Decimal.

    Raises:
        InvalidAmountError: If the amount is not positive or too precise.
        AmountBelowMinimumError: If the amount is below ``minimum``.
        AmountAboveMaximumError: If the amount is above ``maximum``.
    """
    amount = require_positive_amount(value)
    if minimum is not None and amount < minimum:
        raise AmountBelowMinimumError(amount, minimum)
    if maximum is not None and amount > maximum:
        raise AmountAboveMaximumError(amount, maximum)
    return amount


def validate_sufficient_funds(amount: Decimal, balance: Decimal) -> None:
    """Client-side short-circuit; the server remains the authority.

    Raises:
        InsufficientFundsError: If ``amount`` exceeds ``balance``.
    """
    if amount > balance:
        raise InsufficientFundsError(amount, balance)


def validate_expiry(minutes: int, options: Sequence[int]) -> int:
    if minutes not in options:
        allowed = ", ".join(str(option) for option in options)
        raise InvalidExpiryError(f"Expiry must be one of: {allowed} minutes")
    return minutes


def validate_phone_for_search(phone: str, min_length: int) -> str:
    """Return the normalized phone number if it is long enough to search.

    Raises:
        InvalidPhoneNumberError: If fewer than ``min_length`` digits remain.
    """
    digits = normalize_phone(phone)
    if len(digits) < min_length:
        raise InvalidPhoneNumberError("Please enter a valid phone number")
    return digits


def is_self(
    current_user: AuthenticatedUser,
    *,
    user_id: Optional[str] = None,
    phone_number: Optional[str] = None,
    username: Optional[str] = None,
) -> bool:
    """Whether any known identifier points at the authenticated user."""
    if user_id is not None and str(user_id) == current_user.id:
        return True
    if phone_number and current_user.phone_number:
        if normalize_phone(phone_number) == normalize_phone(current_user.phone_number):
            return True
    if username and current_user.username:
        if normalize_username(username) == normalize_username(current_user.username):
            return True
    return False


def validate_not_self(
    current_user: AuthenticatedUser, counterparty: CounterpartyIdentity
) -> None:
    """Raises:
    SelfTransferError: If the counterparty is the authenticated user.
    """
    if is_self(
        current_user,
        user_id=counterparty.id,
        phone_number=counterparty.phone_number,
    ):
        raise SelfTransferError()


def validate_recipient(
    recipient: Optional[CounterpartyIdentity],
) -> CounterpartyIdentity:
    if recipient is None:
        raise MissingRecipientError("Select a recipient first")
    return recipient


def normalize_username(username: str) -> str:
    return username.strip().lstrip("@").lower()
