"""Reward amount conversions.

The ledger stores integer minor units (cents). The accrual service and the
public API speak decimal major units.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

MINOR_UNITS_PER_MAJOR = 100
# Ledger columns are signed 64-bit integers.
MAX_MINOR_UNITS = 2**63 - 1
_CENT = Decimal("0.01")


def to_minor_units(amount: Decimal | int | float | str) -> int:
    """Convert a major-unit amount to integer minor units (half-up to the cent).

    Raises ``ValueError`` for amounts that are not finite or do not fit the
    ledger's integer columns.
    """
    if isinstance(amount, float):
        amount = repr(amount)
    try:
        value = Decimal(amount).quantize(_CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Amount cannot be expressed in minor units: {amount!r}") from None
    minor = int(value * MINOR_UNITS_PER_MAJOR)
    if abs(minor) > MAX_MINOR_UNITS:
        raise ValueError(f"Amount out of range: {amount!r}")
    return minor


def from_minor_units(amount: int) -> Decimal:
    return (Decimal(amount) / MINOR_UNITS_PER_MAJOR).quantize(_CENT)


def as_major_float(amount: int) -> float:
    """Major units as a JSON-friendly float (API responses)."""
    return float(from_minor_units(amount))


__all__ = ["MINOR_UNITS_PER_MAJOR", "MAX_MINOR_UNITS", "to_minor_units", "from_minor_units", "as_major_float"]
