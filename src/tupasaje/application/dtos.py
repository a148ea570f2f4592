"""Data Transfer Objects for the wallet backend contract.

The backend speaks camelCase JSON; fields here are snake_case with camelCase
aliases. Requests are dumped with ``by_alias=True``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)
from pydantic.alias_generators import to_camel

from ..domain.entities import (
    CounterpartyIdentity,
    DriverInfo,
    PaymentQRToken,
    QRStatus,
    Transaction,
    TransactionStatus,
    TransferResult,
    UserRole,
    WalletBalance,
)
from ..domain.errors import InvalidAmountError
from ..domain.money import to_decimal, to_wire_number


def _wire_decimal(value: Any) -> Decimal:
    try:
        return to_decimal(value)
    except InvalidAmountError as e:
        raise ValueError(e.message) from e


def _wire_id(value: Any) -> Any:
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


WireDecimal = Annotated[Decimal, BeforeValidator(_wire_decimal)]
WireId = Annotated[str, BeforeValidator(_wire_id)]


class WireModel(BaseModel):
    """Base for backend DTOs: camelCase aliases, tolerant of extra fields."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------- QR payment tokens ----------


class GeneratePaymentQRDTO(WireModel):
    """DTO for requesting a new payment QR token."""

    amount: Decimal = Field(..., gt=0)
    wallet_id: str = Field(..., min_length=1)
    expires_in_minutes: Optional[int] = Field(None, gt=0)

    @field_serializer("amount")
    def serialize_amount(self, value: Decimal) -> Any:
        return to_wire_number(value)


class PaymentQRResponseDTO(WireModel):
    """DTO for a payment QR token as returned by the backend."""

    id: Optional[WireId] = None
    token: str
    type: Optional[str] = None
    amount: WireDecimal
    wallet_id: WireId
    expires_at: datetime
    status: QRStatus = QRStatus.ACTIVE
    qr_code: Optional[str] = None
    payload: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def map_legacy_status(cls, v: Any) -> Any:
        # Older backends report redeemed tokens as USED.
        if isinstance(v, str) and v.upper() == "USED":
            return QRStatus.REDEEMED
        return v

    def to_entity(self) -> PaymentQRToken:
        return PaymentQRToken(
            token=self.token,
            amount=self.amount,
            wallet_id=self.wallet_id,
            expires_at=self.expires_at,
            status=self.status,
            qr_code=self.qr_code,
            payload=self.payload,
            created_at=self.created_at,
        )


class ValidateQRDTO(WireModel):
    token: str = Field(..., min_length=1)


class RedeemedTransactionDTO(WireModel):
    id: WireId
    amount: WireDecimal
    from_: Optional[str] = Field(None, alias="from")
    to: Optional[str] = None
    created_at: Optional[datetime] = None


class ValidateQRResponseDTO(WireModel):
    """DTO for the outcome of redeeming a payment QR token."""

    success: bool
    message: Optional[str] = None
    transaction: Optional[RedeemedTransactionDTO] = None


class CancelQRResponseDTO(WireModel):
    success: bool = True
    message: Optional[str] = None


# ---------- Counterparty lookup ----------


class ScanQRDTO(WireModel):
    qr_data: str = Field(..., min_length=1)


class DriverDetailsDTO(WireModel):
    vehicle_type: Optional[str] = None
    vehicle_plate: Optional[str] = None
    average_rating: Optional[float] = None


class UserLookupResponseDTO(WireModel):
    """DTO for a user found by username, phone number, id or QR scan."""

    id: WireId
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    name: Optional[str] = None
    username: Optional[str] = None
    phone_number: Optional[str] = None
    role: Optional[str] = None
    driver: Optional[DriverDetailsDTO] = None

    def display_name(self) -> str:
        if self.full_name:
            return self.full_name
        parts = [p for p in (self.first_name, self.last_name) if p]
        if parts:
            return " ".join(parts)
        return self.name or self.username or self.id

    def to_entity(self) -> CounterpartyIdentity:
        role: Optional[UserRole] = None
        if self.role and self.role.upper() in UserRole.__members__:
            role = UserRole[self.role.upper()]
        driver: Optional[DriverInfo] = None
        if self.driver is not None:
            driver = DriverInfo(
                vehicle=self.driver.vehicle_type or "Transport",
                plate=self.driver.vehicle_plate or "N/A",
                rating=self.driver.average_rating,
            )
        return CounterpartyIdentity(
            id=self.id,
            display_name=self.display_name(),
            username=self.username,
            phone_number=self.phone_number,
            role=role,
            driver=driver,
        )


# ---------- Transfers and balance ----------


class TransferDTO(WireModel):
    """DTO for submitting a transfer."""

    to_user_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    description: Optional[str] = None

    @field_serializer("to_user_id")
    def serialize_to_user_id(self, value: str) -> Any:
        # Numeric ids travel as numbers.
        return int(value) if value.isdigit() else value

    @field_serializer("amount")
    def serialize_amount(self, value: Decimal) -> Any:
        return to_wire_number(value)


class TransferPartyDTO(WireModel):
    id: WireId
    name: Optional[str] = None


class TransferResponseDTO(WireModel):
    """DTO for a completed transfer."""

    transaction_id: WireId
    reference: str
    amount: WireDecimal
    fee: WireDecimal = Decimal("0")
    net_amount: WireDecimal
    status: TransactionStatus = TransactionStatus.COMPLETED
    from_user: Optional[TransferPartyDTO] = None
    to_user: Optional[TransferPartyDTO] = None

    def to_entity(self) -> TransferResult:
        return TransferResult(
            transaction_id=self.transaction_id,
            reference=self.reference,
            amount=self.amount,
            fee=self.fee,
            net_amount=self.net_amount,
            status=self.status,
        )


class WalletBalanceDTO(WireModel):
    balance: WireDecimal
    currency: str = "COP"
    is_frozen: bool = False

    def to_entity(self) -> WalletBalance:
        return WalletBalance(
            balance=self.balance, currency=self.currency, is_frozen=self.is_frozen
        )


class TransactionDTO(WireModel):
    """DTO for a wallet history entry."""

    id: WireId
    type: str
    status: TransactionStatus
    amount: WireDecimal
    fee: WireDecimal = Decimal("0")
    net_amount: Optional[WireDecimal] = None
    reference: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    def to_entity(self) -> Transaction:
        return Transaction(
            id=self.id,
            type=self.type,
            status=self.status,
            amount=self.amount,
            fee=self.fee,
            net_amount=self.net_amount
            if self.net_amount is not None
            else self.amount - self.fee,
            reference=self.reference,
            description=self.description,
            created_at=self.created_at,
        )


class BackendErrorBodyDTO(WireModel):
    """Error body shape used by the backend for failed requests."""

    message: Optional[Any] = None
    detail: Optional[Any] = None

    def first_message(self) -> Optional[str]:
        for value in (self.message, self.detail):
            if isinstance(value, str) and value:
                return value
            if isinstance(value, list) and value and isinstance(value[0], str):
                return value[0]
        return None
