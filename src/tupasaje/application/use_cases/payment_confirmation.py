"""Terminal step of a payment: resolved counterparty + amount -> transfer."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional

from ...domain.entities import AuthenticatedUser, CounterpartyIdentity, TransferRequest, utc_now
from ...domain.money import AmountLike
from ...domain.shared import WalletApiProtocol
from ..formatters import mask_name
from .balance import BalanceOracle, BalancePreview
from .submission import ConfirmationOutcome, OutcomeKind, TransferSubmitter
from .validators import validate_amount, validate_not_self, validate_recipient

logger = logging.getLogger(__name__)


class PaymentState(str, Enum):
    READY = "READY"
    PROCESSING = "PROCESSING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


_STATE_AFTER = {
    OutcomeKind.COMPLETED: PaymentState.SUCCEEDED,
    OutcomeKind.FAILED: PaymentState.FAILED,
    OutcomeKind.INSUFFICIENT_FUNDS: PaymentState.READY,
}


def transport_description(transport_type: str) -> str:
    return f"Transport payment: {transport_type}"


class PaymentConfirmationController:
    """Drives one payment attempt from confirmation to receipt.

    Inputs are validated on construction, so an invalid amount, a missing
    recipient or a self-payment never reaches the confirmation step.

    Raises:
        InvalidAmountError: If ``amount`` is not a valid positive amount.
        MissingRecipientError: If ``counterparty`` is None.
        SelfTransferError: If ``counterparty`` is the payer.
    """

    def __init__(
        self,
        wallet_api: WalletApiProtocol,
        balance_oracle: BalanceOracle,
        counterparty: Optional[CounterpartyIdentity],
        amount: AmountLike,
        *,
        payer: AuthenticatedUser,
        description: Optional[str] = None,
        transport_type: Optional[str] = None,
        max_amount: Optional[Decimal] = None,
        currency: str = "COP",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._counterparty = validate_recipient(counterparty)
        validate_not_self(payer, self._counterparty)
        self._amount = validate_amount(amount, maximum=max_amount)
        self._payer = payer
        self._balance_oracle = balance_oracle
        if description is None and transport_type:
            description = transport_description(transport_type)
        self._request = TransferRequest(
            to_user_id=self._counterparty.id,
            amount=self._amount,
            description=description,
        )
        self._submitter = TransferSubmitter(
            wallet_api,
            balance_oracle,
            operation="payment",
            currency=currency,
            clock=clock,
        )
        self._state = PaymentState.READY
        self._last_outcome: Optional[ConfirmationOutcome] = None

    @property
    def state(self) -> PaymentState:
        return self._state

    @property
    def counterparty(self) -> CounterpartyIdentity:
        return self._counterparty

    @property
    def amount(self) -> Decimal:
        return self._amount

    @property
    def last_outcome(self) -> Optional[ConfirmationOutcome]:
        return self._last_outcome

    @property
    def can_cancel(self) -> bool:
        return self._state in (PaymentState.READY, PaymentState.FAILED)

    def preview(self) -> Optional[BalancePreview]:
        """Projected balance after this payment, or None before any fetch."""
        return self._balance_oracle.preview(self._amount)

    async def confirm(self) -> ConfirmationOutcome:
        """Check funds and submit the transfer once.

        A call made while another is pending returns ``IGNORED``. After a
        failure the controller may be confirmed again.
        """
        if self._state is PaymentState.CANCELLED:
            return ConfirmationOutcome(kind=OutcomeKind.CANCELLED)
        if self._state is PaymentState.SUCCEEDED:
            logger.info("Ignoring confirm on an already completed payment")
            return ConfirmationOutcome(kind=OutcomeKind.IGNORED)

        if not self._submitter.in_flight:
            self._state = PaymentState.PROCESSING
        try:
            outcome = await self._submitter.submit(
                self._request, self._counterparty, payer_username=self._payer.username
            )
        except Exception:
            self._state = PaymentState.FAILED
            raise
        if outcome.kind is OutcomeKind.IGNORED:
            return outcome

        self._state = _STATE_AFTER[outcome.kind]
        self._last_outcome = outcome
        logger.info(
            "Payment to %s ended as %s",
            mask_name(self._counterparty.display_name),
            outcome.kind.value,
        )
        return outcome

    def cancel(self, confirmed: bool) -> bool:
        """Abandon the payment after explicit user confirmation.

        Has no effect once a submission has started or succeeded.
        """
        if not self.can_cancel:
            logger.info("Cancel ignored while payment is %s", self._state.value)
            return False
        if not confirmed:
            return False
        self._state = PaymentState.CANCELLED
        return True
