"""In-memory implementation of WalletApiProtocol for use case tests."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from tupasaje.application.dtos import (
    CancelQRResponseDTO,
    GeneratePaymentQRDTO,
    PaymentQRResponseDTO,
    RedeemedTransactionDTO,
    ScanQRDTO,
    TransactionDTO,
    TransferDTO,
    TransferResponseDTO,
    UserLookupResponseDTO,
    ValidateQRDTO,
    ValidateQRResponseDTO,
    WalletBalanceDTO,
)
from tupasaje.domain.entities import QRStatus
from tupasaje.domain.errors import BackendError


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, now: Optional[datetime] = None) -> None:
        self.now = now or datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeWalletApi:
    """Wallet backend double with call tracking and server-side QR state.

    Tokens live in ``tokens`` and only change status through this fake, the
    way they would on the real server. ``transfer_gate`` lets a test hold a
    transfer pending until the event is set.
    """

    def __init__(self, clock: Optional[FakeClock] = None) -> None:
        self.clock = clock or FakeClock()

        # Call tracking
        self.calls: list[tuple[str, dict]] = []

        # Server state
        self.balance = Decimal("50000")
        self.tokens: dict[str, PaymentQRResponseDTO] = {}
        self.users: dict[str, UserLookupResponseDTO] = {}
        self.transactions: list[TransactionDTO] = []
        self.fee = Decimal("0")

        # Configurable responses
        self.transfer_response: Optional[TransferResponseDTO] = None
        self.transfer_gate: Optional[asyncio.Event] = None

        # Error configuration, keyed by method name
        self._errors: dict[str, Exception] = {}
        self._token_seq = 0
        self._transfer_seq = 0

    # Configuration methods

    def add_user(self, user: UserLookupResponseDTO) -> None:
        self.users[user.id] = user

    def set_error(self, method: str, error: Exception) -> None:
        """Make every call to ``method`` raise ``error`` until cleared."""
        self._errors[method] = error

    def clear_error(self, method: str) -> None:
        self._errors.pop(method, None)

    def set_token_status(self, token: str, status: QRStatus) -> None:
        """Simulate a server-side transition (redeemed or expired elsewhere)."""
        self.tokens[token] = self.tokens[token].model_copy(update={"status": status})

    def calls_to(self, method: str) -> list[dict]:
        return [kwargs for name, kwargs in self.calls if name == method]

    def clear_calls(self) -> None:
        self.calls.clear()

    def _record(self, method: str, **kwargs: object) -> None:
        self.calls.append((method, kwargs))
        error = self._errors.get(method)
        if error is not None:
            raise error

    # QR payment tokens

    async def generate_qr(self, dto: GeneratePaymentQRDTO) -> PaymentQRResponseDTO:
        self._record("generate_qr", dto=dto)
        self._token_seq += 1
        token = f"qr-token-{self._token_seq}"
        minutes = dto.expires_in_minutes or 15
        response = PaymentQRResponseDTO(
            id=str(self._token_seq),
            token=token,
            amount=dto.amount,
            wallet_id=dto.wallet_id,
            expires_at=self.clock() + timedelta(minutes=minutes),
            status=QRStatus.ACTIVE,
            qr_code="data:image/png;base64,AAAA",
            payload=json.dumps({"token": token, "amount": str(dto.amount)}),
            created_at=self.clock(),
        )
        self.tokens[token] = response
        return response

    async def validate_qr(self, dto: ValidateQRDTO) -> ValidateQRResponseDTO:
        self._record("validate_qr", dto=dto)
        current = self.tokens.get(dto.token)
        if current is None:
            raise BackendError(
                "Could not process the payment",
                status_code=404,
                backend_message="QR code not found",
            )
        if current.status is not QRStatus.ACTIVE:
            raise BackendError(
                "Could not process the payment",
                status_code=400,
                backend_message="This QR code is no longer valid",
            )
        self.set_token_status(dto.token, QRStatus.REDEEMED)
        self.balance -= current.amount
        return ValidateQRResponseDTO(
            success=True,
            message="Payment completed",
            transaction=RedeemedTransactionDTO(
                id="tx-qr-1", amount=current.amount, created_at=self.clock()
            ),
        )

    async def cancel_qr(self, token: str) -> CancelQRResponseDTO:
        self._record("cancel_qr", token=token)
        current = self.tokens.get(token)
        if current is None or current.status is not QRStatus.ACTIVE:
            raise BackendError(
                "Could not cancel the QR code",
                status_code=400,
                backend_message="Only active QR codes can be cancelled",
            )
        self.set_token_status(token, QRStatus.CANCELLED)
        return CancelQRResponseDTO(success=True, message="QR code cancelled")

    async def list_active_qr(self, wallet_id: str) -> list[PaymentQRResponseDTO]:
        self._record("list_active_qr", wallet_id=wallet_id)
        return [
            t
            for t in self.tokens.values()
            if t.wallet_id == wallet_id and t.status is QRStatus.ACTIVE
        ]

    # Balance and history

    async def get_balance(self) -> WalletBalanceDTO:
        self._record("get_balance")
        return WalletBalanceDTO(balance=self.balance)

    async def get_transactions(self) -> list[TransactionDTO]:
        self._record("get_transactions")
        return list(self.transactions)

    # Counterparty lookup

    async def get_user_by_username(
        self, username: str
    ) -> Optional[UserLookupResponseDTO]:
        self._record("get_user_by_username", username=username)
        for user in self.users.values():
            if user.username and user.username.lower() == username.lower():
                return user
        return None

    async def get_user_by_phone(self, phone: str) -> Optional[UserLookupResponseDTO]:
        self._record("get_user_by_phone", phone=phone)
        for user in self.users.values():
            if user.phone_number == phone:
                return user
        return None

    async def get_user_by_id(self, user_id: str) -> Optional[UserLookupResponseDTO]:
        self._record("get_user_by_id", user_id=user_id)
        return self.users.get(user_id)

    async def scan_qr_payload(self, dto: ScanQRDTO) -> Optional[UserLookupResponseDTO]:
        self._record("scan_qr_payload", dto=dto)
        data = json.loads(dto.qr_data)
        if "userId" in data:
            return self.users.get(str(data["userId"]))
        for user in self.users.values():
            if data.get("phoneNumber") and user.phone_number == data["phoneNumber"]:
                return user
            if data.get("username") and user.username == data["username"]:
                return user
        return None

    # Transfers

    async def transfer(self, dto: TransferDTO) -> TransferResponseDTO:
        self._record("transfer", dto=dto)
        if self.transfer_gate is not None:
            await self.transfer_gate.wait()
        if self.transfer_response is not None:
            return self.transfer_response
        if dto.amount > self.balance:
            raise BackendError(
                "Could not complete the transfer",
                status_code=400,
                backend_message="Insufficient balance",
            )
        self._transfer_seq += 1
        self.balance -= dto.amount
        return TransferResponseDTO(
            transaction_id=f"tx-{self._transfer_seq}",
            reference=f"REF-{self._transfer_seq:06d}",
            amount=dto.amount,
            fee=self.fee,
            net_amount=dto.amount - self.fee,
        )
