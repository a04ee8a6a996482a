"""
Fixed-point money helpers.

All amounts and rates are Decimal. Floats are refused: converting a float
to Decimal carries its binary rounding error into the ledger.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

ZERO = Decimal("0")
CENT = Decimal("0.01")
RATE_QUANTUM = Decimal("0.0001")
HUNDRED = Decimal("100")

DecimalLike = Union[Decimal, int, str]


def to_decimal(value: DecimalLike) -> Decimal:
    """Convert an int, str or Decimal to Decimal. Floats raise TypeError."""
    if isinstance(value, float):
        raise TypeError(f"Refusing to convert float {value!r} to a money value")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value: DecimalLike) -> Decimal:
    """Round to currency precision (2 dp, half up)."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_rate(value: DecimalLike) -> Decimal:
    """Normalise a royalty rate to 4 dp."""
    return to_decimal(value).quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)
