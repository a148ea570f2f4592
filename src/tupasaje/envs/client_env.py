from __future__ import annotations

import os
from decimal import Decimal
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, model_validator


class Settings(BaseModel):
    """Typed client settings built from environment variables."""

    api_base_url: str
    api_timeout_seconds: float = Field(30.0, gt=0)
    access_token: str | None = None

    currency: str = "COP"
    min_qr_amount: Decimal = Field(Decimal("1000"), gt=0)
    max_amount: Decimal = Field(Decimal("10000000"), gt=0)
    qr_expiry_options: list[int] = [5, 15, 30, 60]
    default_qr_expiry_minutes: int = 15
    min_phone_length: int = Field(10, ge=1)
    active_qr_refresh_seconds: float = Field(30.0, gt=0)

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        if not v:
            raise ValueError("API base URL cannot be empty")
        parsed = urlparse(v)
        if parsed.scheme not in {"http", "https"}:
            raise ValueError("API base URL must start with http:// or https://")
        if not parsed.netloc:
            raise ValueError("API base URL must include a host")
        return v.rstrip("/")

    @field_validator("qr_expiry_options")
    @classmethod
    def validate_qr_expiry_options(cls, v: list[int]) -> list[int]:
        if not v:
            raise ValueError("At least one QR expiry option is required")
        if any(option <= 0 for option in v):
            raise ValueError("QR expiry options must be positive minutes")
        return sorted(set(v))

    @model_validator(mode="after")
    def validate_default_expiry(self) -> "Settings":
        if self.default_qr_expiry_minutes not in self.qr_expiry_options:
            raise ValueError("Default QR expiry must be one of the expiry options")
        if self.min_qr_amount > self.max_amount:
            raise ValueError("Minimum QR amount cannot exceed the maximum amount")
        return self


def get_settings() -> Settings:
    api_base_url = os.environ.get("TUPASAJE_API_BASE_URL")
    if not api_base_url:
        raise ValueError("TUPASAJE_API_BASE_URL is required")

    expiry_options_str = os.environ.get("TUPASAJE_QR_EXPIRY_OPTIONS", "5,15,30,60")
    return Settings(
        api_base_url=api_base_url,
        api_timeout_seconds=float(
            os.environ.get("TUPASAJE_API_TIMEOUT_SECONDS", "30")
        ),
        access_token=os.environ.get("TUPASAJE_ACCESS_TOKEN") or None,
        currency=os.environ.get("TUPASAJE_CURRENCY", "COP"),
        min_qr_amount=Decimal(os.environ.get("TUPASAJE_MIN_QR_AMOUNT", "1000")),
        max_amount=Decimal(os.environ.get("TUPASAJE_MAX_AMOUNT", "10000000")),
        qr_expiry_options=[
            int(option) for option in expiry_options_str.split(",") if option.strip()
        ],
        default_qr_expiry_minutes=int(
            os.environ.get("TUPASAJE_DEFAULT_QR_EXPIRY_MINUTES", "15")
        ),
        min_phone_length=int(os.environ.get("TUPASAJE_MIN_PHONE_LENGTH", "10")),
        active_qr_refresh_seconds=float(
            os.environ.get("TUPASAJE_ACTIVE_QR_REFRESH_SECONDS", "30")
        ),
    )
