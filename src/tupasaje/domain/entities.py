"""Wallet domain entities: tokens, counterparties, transfers and balances."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QRStatus(str, Enum):
    """Server-side status of a payment QR token."""

    ACTIVE = "ACTIVE"
    REDEEMED = "REDEEMED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self is not QRStatus.ACTIVE


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class UserRole(str, Enum):
    PASSENGER = "PASSENGER"
    DRIVER = "DRIVER"


class PaymentQRToken(BaseModel):
    """Payment request minted by a payee: "pay me ``amount``".

    ``status`` is only ever set from a server response. Local countdown
    expiry is tracked separately by the lifecycle manager.
    """

    model_config = ConfigDict(frozen=True)

    token: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    wallet_id: str = Field(..., min_length=1)
    expires_at: datetime
    status: QRStatus = QRStatus.ACTIVE
    qr_code: Optional[str] = Field(None, description="Scannable artifact (base64 image)")
    payload: Optional[str] = Field(None, description="Raw payload encoded in the QR")
    created_at: Optional[datetime] = None

    @field_validator("expires_at")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_serializer("amount")
    def serialize_amount(self, value: Decimal) -> str:
        return str(value)

    def remaining_seconds(self, now: datetime) -> int:
        """Whole seconds until ``expires_at``, never negative."""
        delta = (self.expires_at - now).total_seconds()
        return max(0, math.floor(delta))


class DriverInfo(BaseModel):
    """Role-specific details shown when paying a driver."""

    model_config = ConfigDict(frozen=True)

    vehicle: str = "Transport"
    plate: str = "N/A"
    rating: Optional[float] = None


class CounterpartyIdentity(BaseModel):
    """Canonical recipient resolved for the current payment attempt only."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    display_name: str
    username: Optional[str] = None
    phone_number: Optional[str] = None
    role: Optional[UserRole] = None
    driver: Optional[DriverInfo] = None


class AuthenticatedUser(BaseModel):
    """The signed-in user, as provided by the session layer."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    display_name: str = ""
    username: Optional[str] = None
    phone_number: Optional[str] = None
    role: UserRole = UserRole.PASSENGER


class TransferRequest(BaseModel):
    """Request to move ``amount`` from the caller to ``to_user_id``."""

    model_config = ConfigDict(frozen=True)

    to_user_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    description: Optional[str] = Field(None, max_length=255)


class TransferResult(BaseModel):
    """Server result of a transfer. Fee and net amount are server computed."""

    model_config = ConfigDict(frozen=True)

    transaction_id: str
    reference: str
    amount: Decimal = Field(..., gt=0)
    fee: Decimal = Field(..., ge=0)
    net_amount: Decimal
    status: TransactionStatus = TransactionStatus.COMPLETED


class WalletBalance(BaseModel):
    """Latest fetched balance; eventually consistent, never written locally."""

    model_config = ConfigDict(frozen=True)

    balance: Decimal
    currency: str = "COP"
    is_frozen: bool = False
    fetched_at: datetime = Field(default_factory=utc_now)


class Transaction(BaseModel):
    """Wallet history entry."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    status: TransactionStatus
    amount: Decimal
    fee: Decimal = Decimal("0")
    net_amount: Decimal
    reference: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime
