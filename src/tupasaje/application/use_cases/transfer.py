"""Peer-to-peer transfer: find a recipient first, then enter the amount."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, Optional

from ...domain.entities import CounterpartyIdentity, TransferRequest, utc_now
from ...domain.errors import PaymentValidationError
from ...domain.money import AmountLike
from ...domain.shared import WalletApiProtocol
from ..formatters import mask_name, normalize_phone
from .balance import BalanceOracle, BalancePreview
from .counterparty import (
    SELF_TRANSFER_MESSAGE,
    CounterpartyQuery,
    CounterpartyResolver,
    Resolution,
    ResolutionStatus,
)
from .submission import ConfirmationOutcome, OutcomeKind, TransferSubmitter
from .validators import (
    is_self,
    validate_amount,
    validate_phone_for_search,
    validate_recipient,
    validate_sufficient_funds,
)

if TYPE_CHECKING:
    from ...envs.client_env import Settings

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 255


@dataclass(frozen=True)
class TransferConfirmation:
    """What the confirmation step shows before the user commits."""

    recipient: CounterpartyIdentity
    amount: Decimal
    description: Optional[str]
    preview: Optional[BalancePreview]

    @property
    def recipient_name(self) -> str:
        return self.recipient.display_name

    @property
    def masked_recipient_name(self) -> str:
        return mask_name(self.recipient.display_name)


class TransferOrchestrator:
    """Phone or QR recipient search, amount entry and confirmed submission."""

    def __init__(
        self,
        wallet_api: WalletApiProtocol,
        resolver: CounterpartyResolver,
        balance_oracle: BalanceOracle,
        *,
        min_phone_length: int = 10,
        max_amount: Optional[Decimal] = None,
        currency: str = "COP",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._resolver = resolver
        self._balance_oracle = balance_oracle
        self._min_phone_length = min_phone_length
        self._max_amount = max_amount
        self._submitter = TransferSubmitter(
            wallet_api,
            balance_oracle,
            operation="transfer",
            currency=currency,
            clock=clock,
        )
        self._recipient: Optional[CounterpartyIdentity] = None

    @classmethod
    def from_settings(
        cls,
        wallet_api: WalletApiProtocol,
        resolver: CounterpartyResolver,
        balance_oracle: BalanceOracle,
        settings: "Settings",
        **kwargs,
    ) -> "TransferOrchestrator":
        return cls(
            wallet_api,
            resolver,
            balance_oracle,
            min_phone_length=settings.min_phone_length,
            max_amount=settings.max_amount,
            currency=settings.currency,
            **kwargs,
        )

    @property
    def recipient(self) -> Optional[CounterpartyIdentity]:
        return self._recipient

    @property
    def submitting(self) -> bool:
        return self._submitter.in_flight

    def can_search(self, phone: str) -> bool:
        """Whether the search action should be enabled for ``phone``."""
        return len(normalize_phone(phone)) >= self._min_phone_length

    async def search_by_phone(self, phone: str) -> Resolution:
        """Look up a recipient by phone number.

        Raises:
            InvalidPhoneNumberError: If the number is too short to search.
            BackendError: If the lookup fails.
        """
        digits = validate_phone_for_search(phone, self._min_phone_length)
        resolution = await self._resolver.resolve(CounterpartyQuery.phone(digits))
        return self._select(resolution)

    async def scan_qr(self, raw: str) -> Resolution:
        """Resolve a recipient from a scanned QR code.

        The scanned identity may expose a phone number the client has not
        seen yet, so the self-transfer check is repeated on it before the
        recipient is looked up by phone.
        """
        resolution = await self._resolver.resolve(CounterpartyQuery.qr(raw))
        if not resolution.is_resolved or resolution.identity is None:
            return self._select(resolution)

        phone = resolution.identity.phone_number
        if not phone:
            return self._select(resolution)
        if is_self(self._resolver.current_user, phone_number=phone):
            logger.info("Scanned QR belongs to the caller")
            return self._select(
                Resolution(
                    query=resolution.query,
                    status=ResolutionStatus.SELF_TRANSFER,
                    message=SELF_TRANSFER_MESSAGE,
                    payload=resolution.payload,
                )
            )
        return self._select(
            await self._resolver.resolve(CounterpartyQuery.phone(phone))
        )

    async def prepare(
        self, amount: AmountLike, description: Optional[str] = None
    ) -> TransferConfirmation:
        """Validate the entered amount against the selected recipient and balance.

        Raises:
            MissingRecipientError: If no recipient has been resolved.
            InvalidAmountError: If the amount is invalid.
            InsufficientFundsError: If the amount exceeds the latest balance.
            BackendError: If the balance cannot be fetched.
        """
        recipient = validate_recipient(self._recipient)
        validated = validate_amount(amount, maximum=self._max_amount)
        description = (description or "").strip() or None
        if description is not None and len(description) > MAX_DESCRIPTION_LENGTH:
            raise PaymentValidationError(
                f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters"
            )

        balance = await self._balance_oracle.current()
        validate_sufficient_funds(validated, balance.balance)

        logger.info(
            "Prepared transfer of %s to %s", validated, mask_name(recipient.display_name)
        )
        return TransferConfirmation(
            recipient=recipient,
            amount=validated,
            description=description,
            preview=self._balance_oracle.preview(validated),
        )

    async def submit(
        self, confirmation: TransferConfirmation, confirmed: bool
    ) -> ConfirmationOutcome:
        """Send the transfer if the user confirmed it."""
        if not confirmed:
            return ConfirmationOutcome(kind=OutcomeKind.CANCELLED)
        outcome = await self._submitter.submit(
            TransferRequest(
                to_user_id=confirmation.recipient.id,
                amount=confirmation.amount,
                description=confirmation.description,
            ),
            confirmation.recipient,
            payer_username=self._resolver.current_user.username,
        )
        if outcome.succeeded:
            self.reset()
        return outcome

    def reset(self) -> None:
        self._recipient = None

    def _select(self, resolution: Resolution) -> Resolution:
        self._recipient = resolution.identity if resolution.is_resolved else None
        return resolution
