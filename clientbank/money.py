"""
Money Helpers Module

Decimal precision for all monetary values. Amounts are held to two decimal
places with ROUND_HALF_UP. NEVER uses float for stored or computed balances.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from typing import Union

from .errors import InvalidInput

# Set global decimal context for financial precision
getcontext().prec = 28

CENT = Decimal('0.01')
HALF_CENT = Decimal('0.005')
HUNDRED = Decimal('100')

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convert a number to Decimal without rounding"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidInput(f"Not a numeric value: {value!r}")
    try:
        # str() first so floats keep their printed value, not their binary one
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise InvalidInput(f"Not a numeric value: {value!r}") from e
    if not result.is_finite():
        raise InvalidInput(f"Not a finite value: {value!r}")
    return result


def to_money(value: Number) -> Decimal:
    """Convert to Decimal rounded to cents: round(amount * 100) / 100"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def is_effectively_zero(amount: Number) -> bool:
    """A balance below half a cent in magnitude counts as zero"""
    return abs(to_decimal(amount)) < HALF_CENT


def percentage_of(amount: Number, percent: Number) -> Decimal:
    """Return percent% of amount, rounded to cents"""
    return to_money(to_decimal(amount) * to_decimal(percent) / HUNDRED)


def format_currency(amount: Number) -> str:
    """Format for display, e.g. -$1,234.50"""
    value = to_money(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"
