"""
Test suite for currency helpers

Currency code validation and Decimal parsing. All monetary values must
stay Decimal.
"""

import pytest
from decimal import Decimal

from currency_baskets.currency import (
    normalize_currency_code, to_decimal, decimal_from_string
)


class TestCurrencyCodes:
    """Test currency code normalization"""

    def test_valid_codes(self):
        assert normalize_currency_code("usd") == "USD"
        assert normalize_currency_code(" Eur ") == "EUR"

    @pytest.mark.parametrize("code", ["", "US", "USDT", "U$D", None])
    def test_invalid_codes(self, code):
        with pytest.raises(ValueError):
            normalize_currency_code(code)


class TestDecimalParsing:
    """Test conversion of user input to Decimal"""

    def test_to_decimal(self):
        assert to_decimal(5) == Decimal('5')
        assert to_decimal("1.25") == Decimal('1.25')
        value = Decimal('3.14')
        assert to_decimal(value) is value

    def test_to_decimal_refuses_float(self):
        with pytest.raises(TypeError):
            to_decimal(0.1)

    def test_to_decimal_invalid_string(self):
        with pytest.raises(ValueError):
            to_decimal("lots")

    def test_decimal_from_string(self):
        """Test accepted notations"""
        assert decimal_from_string("100.50") == Decimal('100.50')
        assert decimal_from_string(" -42 ") == Decimal('-42')
        assert decimal_from_string("1e3") == Decimal('1000')
        assert decimal_from_string("2.5E-1") == Decimal('0.25')

    @pytest.mark.parametrize("value", [
        "", "abc", None, "1,234", "12,5", "$100", "NaN", "Infinity", "-inf"
    ])
    def test_decimal_from_string_invalid(self, value):
        """Test that separators, symbols and non-finite values are refused"""
        with pytest.raises(ValueError):
            decimal_from_string(value)
