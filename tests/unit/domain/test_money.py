"""Unit tests for Decimal amount helpers (pure functions)."""

from decimal import Decimal

import pytest

from tupasaje.domain.errors import InvalidAmountError
from tupasaje.domain.money import (
    amounts_match,
    require_positive_amount,
    to_decimal,
    to_wire_number,
)


class TestToDecimal:
    """Test to_decimal function."""

    def test_float_goes_through_str(self) -> None:
        """0.1 must not pick up binary float drift."""
        assert to_decimal(0.1) == Decimal("0.1")

    def test_string_with_whitespace(self) -> None:
        assert to_decimal(" 5000 ") == Decimal("5000")

    def test_decimal_passthrough(self) -> None:
        value = Decimal("12.50")
        assert to_decimal(value) is value

    @pytest.mark.parametrize("value", ["abc", "", "NaN", "Infinity", True])
    def test_invalid_values_raise(self, value: object) -> None:
        with pytest.raises(InvalidAmountError, match="valid amount"):
            to_decimal(value)  # type: ignore[arg-type]


class TestRequirePositiveAmount:
    """Test require_positive_amount function."""

    def test_zero_raises(self) -> None:
        with pytest.raises(InvalidAmountError, match="greater than 0"):
            require_positive_amount("0")

    def test_negative_raises(self) -> None:
        with pytest.raises(InvalidAmountError, match="greater than 0"):
            require_positive_amount(-100)

    def test_too_precise_is_rejected_not_rounded(self) -> None:
        with pytest.raises(InvalidAmountError, match="cannot be represented"):
            require_positive_amount("10.005")

    def test_two_decimals_allowed(self) -> None:
        assert require_positive_amount("10.50") == Decimal("10.50")


class TestAmountsMatch:
    """Test amounts_match function."""

    def test_equal_with_different_exponent(self) -> None:
        assert amounts_match(Decimal("4750"), Decimal("4750.00")) is True

    def test_one_minor_unit_apart_does_not_match(self) -> None:
        assert amounts_match(Decimal("4750"), Decimal("4749.99")) is False


class TestToWireNumber:
    """Test to_wire_number function."""

    def test_integral_amount_is_int(self) -> None:
        result = to_wire_number(Decimal("5000.00"))
        assert result == 5000
        assert isinstance(result, int)

    def test_fractional_amount_is_float(self) -> None:
        assert to_wire_number(Decimal("12.5")) == 12.5
