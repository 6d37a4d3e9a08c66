"""Money helpers for converting between major units (pounds) and minor units (pence)."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

from ..core.constants import MINOR_UNITS_PER_MAJOR

Number = Union[Decimal, int, float, str]

TWO_PLACES = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    """Coerce to Decimal without float artefacts (0.1 -> Decimal('0.1'))."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def quantize_money(value: Number) -> Decimal:
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Number) -> int:
    """Convert a major-unit amount into an integer minor-unit amount (x100, rounded half up)."""
    minor = to_decimal(amount) * MINOR_UNITS_PER_MAJOR
    return int(minor.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount_minor: int | None) -> Decimal:
    if not amount_minor:
        return Decimal("0.00")
    return quantize_money(Decimal(int(amount_minor)) / MINOR_UNITS_PER_MAJOR)


def minor_to_float(amount_minor: int | None) -> float:
    return float(from_minor_units(amount_minor))
