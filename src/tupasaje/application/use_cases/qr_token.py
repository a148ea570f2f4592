"""Payee-side lifecycle of payment QR tokens."""

from __future__ import annotations

import asyncio
import functools
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Sequence, Union

from ...domain.entities import PaymentQRToken, QRStatus, utc_now
from ...domain.errors import BackendError, PaymentValidationError
from ...domain.money import AmountLike
from ...domain.shared import WalletApiProtocol
from ...infrastructure.metrics import qr_token_operations_total
from ..dtos import GeneratePaymentQRDTO
from .countdown import Countdown
from .validators import validate_amount, validate_expiry

if TYPE_CHECKING:
    from ...envs.client_env import Settings

logger = logging.getLogger(__name__)

ConfirmCancel = Callable[[str], Union[bool, Awaitable[bool]]]

DEFAULT_MIN_AMOUNT = Decimal("1000")
DEFAULT_EXPIRY_OPTIONS = (5, 15, 30, 60)


@dataclass(frozen=True)
class CancelResult:
    """Outcome of a cancellation request.

    A server rejection (token already redeemed, expired or cancelled) is a
    no-op result with the backend message, not an exception.
    """

    token: str
    cancelled: bool
    message: Optional[str] = None
    declined: bool = False


class QRTokenLifecycleManager:
    """Creates, lists, cancels and counts down payment QR tokens.

    The active list is a cache of the last server fetch; status always comes
    from the server. Each tracked token has a local ``Countdown`` used only
    for UI liveness: when it reaches zero the token is treated as expired
    locally, even if a later fetch still reports it as ACTIVE.
    """

    def __init__(
        self,
        wallet_api: WalletApiProtocol,
        *,
        min_amount: Decimal = DEFAULT_MIN_AMOUNT,
        max_amount: Optional[Decimal] = None,
        expiry_options: Sequence[int] = DEFAULT_EXPIRY_OPTIONS,
        default_expiry_minutes: int = 15,
        clock: Callable[[], datetime] = utc_now,
        tick_interval: float = 1.0,
        refresh_interval: float = 30.0,
        on_local_expiry: Optional[Callable[[PaymentQRToken], None]] = None,
    ) -> None:
        self._wallet_api = wallet_api
        self._min_amount = min_amount
        self._max_amount = max_amount
        self._expiry_options = tuple(expiry_options)
        self._default_expiry_minutes = validate_expiry(
            default_expiry_minutes, self._expiry_options
        )
        self._clock = clock
        self._tick_interval = tick_interval
        self._refresh_interval = refresh_interval
        self._on_local_expiry = on_local_expiry

        self._active: dict[str, PaymentQRToken] = {}
        self._countdowns: dict[str, Countdown] = {}
        self._locally_expired: set[str] = set()
        self._dismissed: set[str] = set()
        self._poll_task: Optional[asyncio.Task[None]] = None

    @classmethod
    def from_settings(
        cls, wallet_api: WalletApiProtocol, settings: "Settings", **kwargs
    ) -> "QRTokenLifecycleManager":
        return cls(
            wallet_api,
            min_amount=settings.min_qr_amount,
            max_amount=settings.max_amount,
            expiry_options=settings.qr_expiry_options,
            default_expiry_minutes=settings.default_qr_expiry_minutes,
            refresh_interval=settings.active_qr_refresh_seconds,
            **kwargs,
        )

    @property
    def active_tokens(self) -> list[PaymentQRToken]:
        return list(self._active.values())

    async def generate(
        self,
        amount: AmountLike,
        wallet_id: str,
        expires_in_minutes: Optional[int] = None,
    ) -> PaymentQRToken:
        """Mint a token for ``amount`` and start its countdown.

        Raises:
            PaymentValidationError: Before any network call, if the amount,
                expiry or wallet is invalid.
            BackendError: If the backend fails to generate the token.
        """
        validated = validate_amount(
            amount, minimum=self._min_amount, maximum=self._max_amount
        )
        expiry = validate_expiry(
            self._default_expiry_minutes
            if expires_in_minutes is None
            else expires_in_minutes,
            self._expiry_options,
        )
        if not wallet_id:
            raise PaymentValidationError("A wallet is required to generate a QR code")

        try:
            dto = await self._wallet_api.generate_qr(
                GeneratePaymentQRDTO(
                    amount=validated, wallet_id=wallet_id, expires_in_minutes=expiry
                )
            )
        except BackendError:
            qr_token_operations_total.labels(operation="generate", status="error").inc()
            raise
        qr_token_operations_total.labels(operation="generate", status="success").inc()

        token = dto.to_entity()
        self._active[token.token] = token
        self._track(token)
        logger.info(
            "Generated payment QR %s for %s, expires in %ss",
            token.token,
            token.amount,
            self.remaining(token.token),
        )
        return token

    async def cancel(self, token: str, confirm: ConfirmCancel) -> CancelResult:
        """Cancel ``token`` after the user confirms the destructive action.

        Raises:
            NetworkError: If the backend cannot be reached.
            BackendError: For server failures other than a rejection.
        """
        approved = confirm(token)
        if inspect.isawaitable(approved):
            approved = await approved
        if not approved:
            return CancelResult(token=token, cancelled=False, declined=True)

        try:
            resp = await self._wallet_api.cancel_qr(token)
        except BackendError as e:
            if not e.is_client_error:
                qr_token_operations_total.labels(operation="cancel", status="error").inc()
                raise
            qr_token_operations_total.labels(operation="cancel", status="rejected").inc()
            logger.info("Backend rejected cancellation of QR %s: %s", token, e.message)
            return CancelResult(token=token, cancelled=False, message=e.message)

        if not resp.success:
            qr_token_operations_total.labels(operation="cancel", status="rejected").inc()
            return CancelResult(
                token=token,
                cancelled=False,
                message=resp.message or "Could not cancel the QR code",
            )

        qr_token_operations_total.labels(operation="cancel", status="success").inc()
        self._forget(token)
        return CancelResult(token=token, cancelled=True, message=resp.message)

    async def list_active(self, wallet_id: str) -> list[PaymentQRToken]:
        """Re-fetch active tokens; the server list replaces the local one."""
        dtos = await self._wallet_api.list_active_qr(wallet_id)
        fetched = [dto.to_entity() for dto in dtos]
        fresh = {t.token: t for t in fetched if t.status is QRStatus.ACTIVE}

        for token_id in list(self._active):
            if token_id not in fresh:
                self._forget(token_id)
        self._dismissed.intersection_update(fresh)
        self._active = fresh
        for token in fresh.values():
            self._track(token)
        return self.active_tokens

    def poll_active(
        self, wallet_id: str, interval: Optional[float] = None
    ) -> asyncio.Task[None]:
        """Refresh the active list every ``interval`` seconds until stopped.

        ``interval`` defaults to the configured refresh interval.
        """
        if interval is None:
            interval = self._refresh_interval
        if self._poll_task is not None and not self._poll_task.done():
            return self._poll_task
        self._poll_task = asyncio.get_running_loop().create_task(
            self._poll(wallet_id, interval)
        )
        return self._poll_task

    def stop_polling(self) -> None:
        if self._poll_task is not None and not self._poll_task.done():
            self._poll_task.cancel()
        self._poll_task = None

    def remaining(self, token: str) -> int:
        """Seconds left on the local countdown of ``token``.

        Raises:
            KeyError: If the token is not tracked.
        """
        return self._countdowns[token].remaining

    def display_remaining(self, token: str) -> str:
        return self._countdowns[token].display

    def is_locally_expired(self, token: str) -> bool:
        return token in self._locally_expired

    def dismiss(self, token: str) -> None:
        """Stop the countdown of a token whose view was dismissed.

        The token stays untracked across refreshes until the server stops
        listing it.
        """
        self._dismissed.add(token)
        self._stop_countdown(token)

    def close(self) -> None:
        """Stop polling and every countdown; pending ticks become no-ops."""
        self.stop_polling()
        for countdown in self._countdowns.values():
            countdown.stop()
        self._countdowns.clear()

    async def _poll(self, wallet_id: str, interval: float) -> None:
        while True:
            try:
                await self.list_active(wallet_id)
            except BackendError as e:
                logger.warning("Active QR refresh failed: %s", e.message)
            await asyncio.sleep(interval)

    def _track(self, token: PaymentQRToken) -> None:
        if token.token in self._countdowns or token.token in self._dismissed:
            return
        countdown = Countdown(
            token.expires_at,
            clock=self._clock,
            tick_interval=self._tick_interval,
            on_expire=functools.partial(self._handle_local_expiry, token.token),
        )
        self._countdowns[token.token] = countdown
        countdown.start()

    def _stop_countdown(self, token: str) -> None:
        countdown = self._countdowns.pop(token, None)
        if countdown is not None:
            countdown.stop()

    def _forget(self, token: str) -> None:
        self._stop_countdown(token)
        self._active.pop(token, None)
        self._locally_expired.discard(token)
        self._dismissed.discard(token)

    def _handle_local_expiry(self, token: str) -> None:
        self._locally_expired.add(token)
        logger.info("Payment QR %s expired locally", token)
        current = self._active.get(token)
        if current is not None and self._on_local_expiry is not None:
            self._on_local_expiry(current)
