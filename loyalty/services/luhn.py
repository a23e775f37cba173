"""Luhn checksum validation for order and withdrawal identifiers.

Pure functions; the gate every identifier passes before it may touch the
ledger store.
"""
from __future__ import annotations

from loyalty.exceptions import InvalidChecksumError

_DIGITS = frozenset("0123456789")


def is_valid_luhn(identifier: str) -> bool:
    if not identifier or not set(identifier) <= _DIGITS:
        return False
    total = 0
    # Walk from the check digit leftwards, doubling every second digit.
    for position, char in enumerate(reversed(identifier)):
        digit = ord(char) - ord("0")
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def validate_luhn(identifier: str) -> None:
    """Raise ``InvalidChecksumError`` unless ``identifier`` is a Luhn-valid digit string."""
    if not is_valid_luhn(identifier):
        raise InvalidChecksumError(identifier)


__all__ = ["is_valid_luhn", "validate_luhn"]
