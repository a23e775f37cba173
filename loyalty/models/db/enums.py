"""Central Enum definitions for order states.

``OrderStatus`` is what the ledger stores; ``AccrualStatus`` is what the
external accrual service reports. The two differ only in ``REGISTERED``,
which the service uses for orders the ledger calls ``NEW``.
"""
from __future__ import annotations
import enum


class OrderStatus(str, enum.Enum):
    NEW = "NEW"
    PROCESSING = "PROCESSING"
    INVALID = "INVALID"
    PROCESSED = "PROCESSED"


class AccrualStatus(str, enum.Enum):
    REGISTERED = "REGISTERED"
    PROCESSING = "PROCESSING"
    INVALID = "INVALID"
    PROCESSED = "PROCESSED"


__all__ = [
    "OrderStatus",
    "AccrualStatus",
]
