"""
Currency Support Module

Currency code validation and Decimal parsing for amounts and exchange rates.
NEVER uses float for monetary values.
"""

from decimal import Decimal, InvalidOperation, getcontext
from typing import Union
import re

# Set global decimal context for financial precision
getcontext().prec = 28  # High precision for financial calculations

CURRENCY_CODE_PATTERN = re.compile(r'^[A-Z]{3}$')

ZERO = Decimal('0')


def normalize_currency_code(code: str) -> str:
    """
    Upper-case and validate an ISO 4217 style currency code
    
    Raises:
        ValueError: If the code is not three letters
    """
    if not code or not isinstance(code, str):
        raise ValueError("Currency code must be a non-empty string")
    
    normalized = code.strip().upper()
    if not CURRENCY_CODE_PATTERN.match(normalized):
        raise ValueError(f"Invalid currency code '{code}'")
    return normalized


def to_decimal(value: Union[Decimal, int, str]) -> Decimal:
    """Convert to Decimal without passing through float"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise TypeError("Monetary values must not be floats")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal")


def decimal_from_string(value: str) -> Decimal:
    """
    Convert user input to a finite Decimal

    Only plain decimal notation (with an optional exponent) is accepted.
    Thousands separators and currency symbols are refused rather than guessed.

    Args:
        value: String representation of number
        
    Returns:
        Decimal value
        
    Raises:
        ValueError: If string is not a finite decimal number
    """
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")
    
    try:
        result = Decimal(value.strip())
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal")
    
    if not result.is_finite():
        raise ValueError(f"Value must be finite, got '{value}'")
    return result
