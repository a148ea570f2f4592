"""Protocol interface for wallet backend client implementations.

This protocol defines the contract the payment use cases need from the
backend. It enables dependency injection and makes services testable by
allowing in-memory implementations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol

if TYPE_CHECKING:
    # Avoid circular imports by only importing types during type checking
    from ...application.dtos import (
        CancelQRResponseDTO,
        GeneratePaymentQRDTO,
        PaymentQRResponseDTO,
        ScanQRDTO,
        TransactionDTO,
        TransferDTO,
        TransferResponseDTO,
        UserLookupResponseDTO,
        ValidateQRDTO,
        ValidateQRResponseDTO,
        WalletBalanceDTO,
    )


class WalletApiProtocol(Protocol):
    """Protocol defining the backend capabilities consumed by the client.

    Every method is a suspension point. Implementations raise
    ``BackendError`` (or ``NetworkError``) for failed requests, except the
    lookup methods, which return ``None`` when nothing matches.
    """

    # QR payment tokens

    async def generate_qr(self, dto: "GeneratePaymentQRDTO") -> "PaymentQRResponseDTO":
        """Mint a payment QR token for the payee's wallet."""
        ...

    async def validate_qr(self, dto: "ValidateQRDTO") -> "ValidateQRResponseDTO":
        """Redeem a scanned token, paying its amount to the payee."""
        ...

    async def cancel_qr(self, token: str) -> "CancelQRResponseDTO":
        """Cancel an active token. Terminal tokens are rejected by the server."""
        ...

    async def list_active_qr(self, wallet_id: str) -> list["PaymentQRResponseDTO"]:
        """List the caller's currently active tokens."""
        ...

    # Balance and history

    async def get_balance(self) -> "WalletBalanceDTO":
        ...

    async def get_transactions(self) -> list["TransactionDTO"]:
        ...

    # Counterparty lookup

    async def get_user_by_username(
        self, username: str
    ) -> Optional["UserLookupResponseDTO"]:
        ...

    async def get_user_by_phone(self, phone: str) -> Optional["UserLookupResponseDTO"]:
        ...

    async def get_user_by_id(self, user_id: str) -> Optional["UserLookupResponseDTO"]:
        ...

    async def scan_qr_payload(
        self, dto: "ScanQRDTO"
    ) -> Optional["UserLookupResponseDTO"]:
        """Resolve the owner of a scanned QR payload."""
        ...

    # Transfers

    async def transfer(self, dto: "TransferDTO") -> "TransferResponseDTO":
        """Submit a transfer. Not idempotent on the client side."""
        ...
