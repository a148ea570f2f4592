"""Domain-specific exceptions."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional


class WalletError(Exception):
    """Base class for payment and transfer errors.

    ``message`` is always safe to show to the user.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class PaymentValidationError(WalletError):
    """Raised when input is rejected before any network call."""


class InvalidAmountError(PaymentValidationError):
    """Raised when an amount is not positive or not exact in the minor unit."""


class AmountBelowMinimumError(InvalidAmountError):
    """Raised when an amount is below the configured minimum."""

    def __init__(self, amount: Decimal, minimum: Decimal) -> None:
        super().__init__(f"The minimum amount is {minimum}")
        self.amount = amount
        self.minimum = minimum


class AmountAboveMaximumError(InvalidAmountError):
    """Raised when an amount exceeds the configured maximum."""

    def __init__(self, amount: Decimal, maximum: Decimal) -> None:
        super().__init__(f"The amount cannot be greater than {maximum}")
        self.amount = amount
        self.maximum = maximum


class MissingRecipientError(PaymentValidationError):
    """Raised when a payment is attempted without a resolved recipient."""


class InvalidPhoneNumberError(PaymentValidationError):
    """Raised when a phone number is too short or not numeric."""


class InvalidExpiryError(PaymentValidationError):
    """Raised when a QR expiry is not one of the allowed options."""


class InsufficientFundsError(WalletError):
    """Raised when the requested amount exceeds the latest known balance."""

    offer_recharge = True

    def __init__(self, amount: Decimal, balance: Decimal) -> None:
        super().__init__("Insufficient balance to complete this payment")
        self.amount = amount
        self.balance = balance


class CounterpartyNotFoundError(WalletError):
    """Raised when a counterparty lookup resolves to nothing."""


class InvalidQRPayloadError(WalletError):
    """Raised when a scanned QR payload cannot be parsed."""


class SelfTransferError(WalletError):
    """Raised when the counterparty is the authenticated user."""

    def __init__(self, message: str = "You cannot send money to your own account") -> None:
        super().__init__(message)


class BackendError(WalletError):
    """Raised when the wallet backend rejects or fails a request.

    ``backend_message`` holds the server-provided message verbatim when present;
    ``message`` falls back to a generic text otherwise.
    """

    def __init__(
        self,
        fallback_message: str,
        *,
        status_code: Optional[int] = None,
        backend_message: Optional[str] = None,
    ) -> None:
        super().__init__(backend_message or fallback_message)
        self.status_code = status_code
        self.backend_message = backend_message

    @property
    def is_client_error(self) -> bool:
        return self.status_code is not None and 400 <= self.status_code < 500


class NetworkError(BackendError):
    """Raised when the backend could not be reached at all."""
