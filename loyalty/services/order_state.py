"""Order status state machine.

Statuses only move forward: NEW < PROCESSING < {PROCESSED, INVALID}.
PROCESSED and INVALID are terminal. Repeating a non-terminal status is
allowed (a settlement that reports no progress is a harmless no-op), and a
jump straight from NEW to a terminal status is valid since the worker does
not have to observe every intermediate state.
"""
from __future__ import annotations

from loyalty.models.db.enums import AccrualStatus, OrderStatus

STATUS_RANK: dict[OrderStatus, int] = {
    OrderStatus.NEW: 0,
    OrderStatus.PROCESSING: 1,
    OrderStatus.PROCESSED: 2,
    OrderStatus.INVALID: 2,
}

TERMINAL_STATUSES = frozenset({OrderStatus.PROCESSED, OrderStatus.INVALID})
PENDING_STATUSES = frozenset({OrderStatus.NEW, OrderStatus.PROCESSING})

_EXTERNAL_TO_INTERNAL: dict[AccrualStatus, OrderStatus] = {
    AccrualStatus.REGISTERED: OrderStatus.NEW,
    AccrualStatus.PROCESSING: OrderStatus.PROCESSING,
    AccrualStatus.INVALID: OrderStatus.INVALID,
    AccrualStatus.PROCESSED: OrderStatus.PROCESSED,
}


def to_order_status(external: AccrualStatus) -> OrderStatus:
    return _EXTERNAL_TO_INTERNAL[external]


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    if is_terminal(current):
        return False
    return STATUS_RANK[new] >= STATUS_RANK[current]


def allowed_predecessors(new: OrderStatus) -> frozenset[OrderStatus]:
    """Statuses an order may currently hold for a write of ``new`` to be accepted."""
    return frozenset(s for s in PENDING_STATUSES if can_transition(s, new))


__all__ = [
    "STATUS_RANK",
    "TERMINAL_STATUSES",
    "PENDING_STATUSES",
    "to_order_status",
    "is_terminal",
    "can_transition",
    "allowed_predecessors",
]
