"""
Money Handling Module

Normalises monetary values to Decimal with two decimal places, validates
transaction amounts and formats balances for display. NEVER uses float for
balance arithmetic; floats are only accepted at the edges and converted
through their string representation.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from typing import Optional, Union
import re

from .errors import InvalidAmount

# Set global decimal context for financial precision
getcontext().prec = 28  # High precision for financial calculations

CENTS = Decimal('0.01')

AmountLike = Union[Decimal, int, float, str]


def as_money(value: AmountLike) -> Decimal:
    """
    Normalise any numeric input to a Decimal with 2 fractional digits

    Raises:
        InvalidAmount: If the value is not a number or is too large to
            represent in cents
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
        if not amount.is_finite():
            return amount
        # Values wider than the context precision cannot be quantized
        return amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmount(f"'{value}' is not a valid amount") from e


def validate_amount(amount: AmountLike, maximum: Optional[Decimal] = None) -> Decimal:
    """
    Validate a transaction amount and return it normalised

    Rules:
    - Must be a finite number.
    - Must be strictly positive after rounding to cents.
    - Must not exceed ``maximum`` when one is given.

    Raises:
        InvalidAmount: If any rule is violated
    """
    amt = as_money(amount)
    if not amt.is_finite():
        raise InvalidAmount(f"Amount must be a finite number, got {amount}")
    if amt <= Decimal('0'):
        raise InvalidAmount(f"Amount must be positive, got {amt}")
    if maximum is not None and amt > maximum:
        raise InvalidAmount(f"Amount must be <= {maximum}")
    return amt


def parse_amount(value: str) -> Decimal:
    """
    Parse user-typed text into a Decimal, handling common formats

    Accepts currency symbols, thousands separators and a comma as decimal
    separator ("R$ 1.234,56", "1,234.56", "10,5").

    Raises:
        InvalidAmount: If the text cannot be converted
    """
    if not value or not isinstance(value, str):
        raise InvalidAmount("Amount must be a non-empty string")

    # Remove currency symbols and whitespace
    clean_value = re.sub(r'[^\d.,\-+]', '', value.strip())

    if ',' in clean_value and '.' in clean_value:
        # Whichever separator comes last is the decimal separator
        if clean_value.rfind(',') > clean_value.rfind('.'):
            clean_value = clean_value.replace('.', '').replace(',', '.')
        else:
            clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        parts = clean_value.split(',')
        if len(parts[1]) <= 2:  # Likely decimal separator
            clean_value = clean_value.replace(',', '.')
        else:  # Likely thousands separator
            clean_value = clean_value.replace(',', '')

    try:
        return Decimal(clean_value)
    except InvalidOperation as e:
        raise InvalidAmount(f"Cannot convert '{value}' to an amount") from e


def format_money(amount: Decimal, symbol: str = "R$") -> str:
    """Format a balance for display"""
    return f"{symbol} {amount:,.2f}"
