"""Payer-side redemption of a scanned payment QR token."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Awaitable, Callable, Optional, Union

from ...domain.errors import BackendError
from ...domain.shared import WalletApiProtocol
from ..dtos import RedeemedTransactionDTO, ValidateQRDTO
from .balance import BalanceOracle
from .qr_payload import QRPayload, parse_payment_qr
from .single_flight import SingleFlightGuard

logger = logging.getLogger(__name__)

ConfirmRedemption = Callable[[QRPayload], Union[bool, Awaitable[bool]]]

REDEMPTION_FAILED_MESSAGE = "Could not process the QR payment"


@dataclass(frozen=True)
class RedemptionResult:
    success: bool
    message: Optional[str] = None
    transaction: Optional[RedeemedTransactionDTO] = None
    amount: Optional[Decimal] = None
    declined: bool = False
    ignored: bool = False


class QRRedemptionService:
    """Redeems payment QR tokens shown by a payee.

    An expired or already-used token is a normal failure result, since
    expiry is a race between the client clock and the server clock.
    """

    def __init__(
        self, wallet_api: WalletApiProtocol, balance_oracle: BalanceOracle
    ) -> None:
        self._wallet_api = wallet_api
        self._balance_oracle = balance_oracle
        self._guard = SingleFlightGuard("qr_redeem")

    @property
    def in_flight(self) -> bool:
        return self._guard.in_flight

    async def redeem(
        self, raw_payload: str, confirm: ConfirmRedemption
    ) -> RedemptionResult:
        """Parse ``raw_payload``, ask for confirmation and redeem its token.

        Raises:
            InvalidQRPayloadError: If the payload is malformed or has no token.
            NetworkError: If the backend cannot be reached.
            BackendError: For server failures other than a rejection.
        """
        payload = parse_payment_qr(raw_payload)
        if not self._guard.try_acquire():
            return RedemptionResult(success=False, ignored=True)
        try:
            return await self._redeem(payload, confirm)
        finally:
            self._guard.release()

    async def _redeem(
        self, payload: QRPayload, confirm: ConfirmRedemption
    ) -> RedemptionResult:
        approved = confirm(payload)
        if inspect.isawaitable(approved):
            approved = await approved
        if not approved:
            return RedemptionResult(success=False, declined=True, amount=payload.amount)

        try:
            resp = await self._wallet_api.validate_qr(ValidateQRDTO(token=payload.token))
        except BackendError as e:
            if not e.is_client_error:
                raise
            logger.info("Backend rejected QR %s: %s", payload.token, e.message)
            return RedemptionResult(
                success=False, message=e.message, amount=payload.amount
            )

        if not resp.success:
            return RedemptionResult(
                success=False,
                message=resp.message or REDEMPTION_FAILED_MESSAGE,
                amount=payload.amount,
            )

        amount = resp.transaction.amount if resp.transaction else payload.amount
        logger.info("Redeemed payment QR %s for %s", payload.token, amount)
        try:
            await self._balance_oracle.refresh()
        except BackendError as e:
            logger.warning("Balance refresh after redemption failed: %s", e.message)
        return RedemptionResult(
            success=True,
            message=resp.message,
            transaction=resp.transaction,
            amount=amount,
        )
