"""Parsing of scanned QR payloads.

A payload is a JSON object carrying a redemption ``token`` (payment QR)
and/or a direct identity reference (``userId``, ``username`` or
``phoneNumber``, identification QR). Anything else is invalid.
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any, Optional

from pydantic import Field, ValidationError, field_validator, model_validator

from ...domain.errors import InvalidQRPayloadError
from ..dtos import WireDecimal, WireId, WireModel

INVALID_QR_MESSAGE = "Invalid QR code"


class QRPayload(WireModel):
    """Structured content of a scanned QR code."""

    token: Optional[str] = Field(None, min_length=1)
    amount: Optional[WireDecimal] = None
    user_id: Optional[WireId] = None
    username: Optional[str] = Field(None, min_length=1)
    phone_number: Optional[str] = Field(None, min_length=1)
    platform: Optional[str] = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v <= 0:
            raise ValueError("QR amount must be positive")
        return v

    @model_validator(mode="after")
    def require_reference(self) -> "QRPayload":
        if not (self.token or self.user_id or self.username or self.phone_number):
            raise ValueError("QR payload has neither a token nor an identity")
        return self

    @property
    def is_payment(self) -> bool:
        return self.token is not None

    @property
    def has_identity(self) -> bool:
        return bool(self.user_id or self.username or self.phone_number)


def parse_qr_payload(raw: str) -> QRPayload:
    """Parse raw scanner output into a ``QRPayload``. Pure function.

    Raises:
        InvalidQRPayloadError: If the data is not a JSON object or carries
            no usable reference.
    """
    if not raw or not raw.strip():
        raise InvalidQRPayloadError(INVALID_QR_MESSAGE)
    try:
        data: Any = json.loads(raw)
    except ValueError as e:
        raise InvalidQRPayloadError(INVALID_QR_MESSAGE) from e
    if not isinstance(data, dict):
        raise InvalidQRPayloadError(INVALID_QR_MESSAGE)
    try:
        return QRPayload.model_validate(data)
    except ValidationError as e:
        raise InvalidQRPayloadError(INVALID_QR_MESSAGE) from e


def parse_payment_qr(raw: str) -> QRPayload:
    """Parse a payload that must carry a redemption token.

    Raises:
        InvalidQRPayloadError: If the payload is malformed or has no token.
    """
    payload = parse_qr_payload(raw)
    if not payload.is_payment:
        raise InvalidQRPayloadError(INVALID_QR_MESSAGE)
    return payload
