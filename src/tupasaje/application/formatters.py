"""Display helpers for amounts, countdowns and personal data."""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal

_NON_DIGITS = re.compile(r"\D")


def format_currency(amount: Decimal, currency: str = "COP") -> str:
    """Format an amount the way Colombian pesos are displayed.

    Thousands use ``.`` and decimals ``,``; integral amounts drop decimals.

    >>> format_currency(Decimal("5000"))
    '$5.000'
    >>> format_currency(Decimal("1234.5"))
    '$1.234,50'
    """
    sign = "-" if amount < 0 else ""
    value = abs(amount)
    if value == value.to_integral_value():
        body = f"{int(value):,}".replace(",", ".")
    else:
        quantized = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        integral, _, fraction = f"{quantized:,.2f}".partition(".")
        body = f"{integral.replace(',', '.')},{fraction}"
    symbol = "$" if currency == "COP" else f"{currency} "
    return f"{sign}{symbol}{body}"


def format_countdown(seconds: int) -> str:
    """Render remaining seconds as ``m:ss``, clamped at ``0:00``."""
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    return f"{minutes}:{secs:02d}"


def normalize_phone(phone: str) -> str:
    return _NON_DIGITS.sub("", phone or "")


def mask_name(name: str) -> str:
    """Keep the first three characters of each word: ``Juan Perez`` -> ``Jua*** Per***``."""
    if not name:
        return ""
    return " ".join(f"{word[:3]}***" for word in name.split())


def mask_phone_number(phone: str) -> str:
    if len(phone) < 4:
        return phone
    return f"***{phone[-4:]}"
