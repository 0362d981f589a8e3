"""
Money Conversion Module

Amounts cross the API boundary as decimal dollars and live everywhere else as
integer cents. Conversion goes through Decimal with ROUND_HALF_UP so the same
input always maps to the same number of cents. NEVER uses float arithmetic.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")

DollarAmount = Union[Decimal, int, float, str]


def to_decimal(amount: DollarAmount) -> Decimal:
    """Convert an incoming amount to Decimal without binary float artifacts"""
    if isinstance(amount, bool):
        raise ValueError("Amount must be numeric")
    if isinstance(amount, Decimal):
        value = amount
    else:
        try:
            # str() first so 0.1 becomes Decimal('0.1'), not 0.1000000000000000055...
            value = Decimal(str(amount).strip())
        except (InvalidOperation, ValueError):
            raise ValueError(f"Invalid amount: {amount!r}")
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    return value


def dollars_to_cents(amount: DollarAmount) -> int:
    """Round a dollar amount to the nearest cent and return integer cents"""
    try:
        rounded = to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Amount out of range: {amount!r}")
    return int(rounded * 100)


def cents_to_dollars(cents: int) -> Decimal:
    """Convert integer cents back to a two-place Decimal dollar amount"""
    return (Decimal(cents) / 100).quantize(CENT)
