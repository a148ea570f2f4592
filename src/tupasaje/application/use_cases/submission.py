"""Guarded transfer submission shared by the payment and transfer flows."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from ...domain.entities import CounterpartyIdentity, TransferRequest, TransferResult, utc_now
from ...domain.errors import BackendError, InsufficientFundsError
from ...domain.shared import WalletApiProtocol
from ...infrastructure.metrics import (
    transfer_submission_duration_milliseconds,
    transfer_submissions_total,
)
from ..dtos import TransferDTO
from ..formatters import mask_name
from .balance import BalanceOracle
from .receipt import PaymentReceipt
from .single_flight import SingleFlightGuard
from .validators import validate_sufficient_funds

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "The payment could not be processed. Please try again."


class OutcomeKind(str, Enum):
    COMPLETED = "COMPLETED"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    FAILED = "FAILED"
    IGNORED = "IGNORED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class ConfirmationOutcome:
    """Routing decision after a confirmation attempt.

    - COMPLETED: go to the receipt view with ``receipt``.
    - INSUFFICIENT_FUNDS: stay, offer a recharge redirect.
    - FAILED: stay on the confirmation step with ``message``; retry allowed.
    - IGNORED: a submission was already in flight; nothing happened.
    - CANCELLED: the user declined or cancelled before submission.
    """

    kind: OutcomeKind
    receipt: Optional[PaymentReceipt] = None
    result: Optional[TransferResult] = None
    message: Optional[str] = None
    offer_recharge: bool = False

    @property
    def succeeded(self) -> bool:
        return self.kind is OutcomeKind.COMPLETED


class TransferSubmitter:
    """Submits exactly one transfer per attempt.

    The single-flight guard is taken synchronously before the first
    suspension point and released in ``finally``, so a second call while
    one is pending returns ``IGNORED`` without touching the backend.
    """

    def __init__(
        self,
        wallet_api: WalletApiProtocol,
        balance_oracle: BalanceOracle,
        *,
        operation: str = "transfer",
        failure_message: str = GENERIC_FAILURE_MESSAGE,
        currency: str = "COP",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._wallet_api = wallet_api
        self._balance_oracle = balance_oracle
        self._guard = SingleFlightGuard(operation)
        self._failure_message = failure_message
        self._currency = currency
        self._clock = clock

    @property
    def in_flight(self) -> bool:
        return self._guard.in_flight

    async def submit(
        self,
        request: TransferRequest,
        counterparty: CounterpartyIdentity,
        *,
        payer_username: Optional[str] = None,
    ) -> ConfirmationOutcome:
        if not self._guard.try_acquire():
            return ConfirmationOutcome(kind=OutcomeKind.IGNORED)
        try:
            return await self._submit(request, counterparty, payer_username)
        finally:
            self._guard.release()

    async def _submit(
        self,
        request: TransferRequest,
        counterparty: CounterpartyIdentity,
        payer_username: Optional[str],
    ) -> ConfirmationOutcome:
        try:
            balance = await self._balance_oracle.current()
        except BackendError as e:
            logger.warning("Could not fetch balance before transfer: %s", e.message)
            return ConfirmationOutcome(
                kind=OutcomeKind.FAILED,
                message=e.backend_message or self._failure_message,
            )
        try:
            validate_sufficient_funds(request.amount, balance.balance)
        except InsufficientFundsError as e:
            logger.info(
                "Short-circuited payment of %s: balance is %s",
                request.amount,
                balance.balance,
            )
            return ConfirmationOutcome(
                kind=OutcomeKind.INSUFFICIENT_FUNDS,
                message=e.message,
                offer_recharge=e.offer_recharge,
            )

        masked = mask_name(counterparty.display_name)
        logger.info(
            "Submitting transfer of %s to %s (attempt %s)",
            request.amount,
            masked,
            self._guard.attempt_id,
        )
        start_time = time.perf_counter()
        try:
            dto = await self._wallet_api.transfer(
                TransferDTO(
                    to_user_id=request.to_user_id,
                    amount=request.amount,
                    description=request.description,
                )
            )
        except BackendError as e:
            self._observe("failed", start_time)
            logger.warning("Transfer to %s failed: %s", masked, e.message)
            return ConfirmationOutcome(
                kind=OutcomeKind.FAILED,
                message=e.backend_message or self._failure_message,
            )
        self._observe("success", start_time)

        result = dto.to_entity()
        receipt = PaymentReceipt.from_result(
            result,
            counterparty,
            payer_username=payer_username,
            clock=self._clock,
            currency=self._currency,
        )
        await self._refresh_balance()
        return ConfirmationOutcome(
            kind=OutcomeKind.COMPLETED, receipt=receipt, result=result
        )

    async def _refresh_balance(self) -> None:
        try:
            await self._balance_oracle.refresh()
        except BackendError as e:
            logger.warning("Balance refresh after transfer failed: %s", e.message)

    def _observe(self, status: str, start_time: float) -> None:
        elapsed = (time.perf_counter() - start_time) * 1000
        transfer_submissions_total.labels(status=status).inc()
        transfer_submission_duration_milliseconds.labels(status=status).observe(
            elapsed
        )
