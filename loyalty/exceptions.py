"""Typed exception hierarchy for the loyalty service.

Every error carries a class-level ``code`` (machine readable, API safe) and
keeps its context as attributes so handlers never parse messages.

    LoyaltyError
    +-- ValidationError
    |   +-- InvalidChecksumError     caller error, rejected before any store mutation
    |   +-- InvalidAmountError
    +-- InsufficientFundsError       business rule rejection, no partial effect
    +-- StoreError                   persistence failure (non-fatal inside a sweep)
        +-- OrderNotFoundError
        +-- OrderConflictError
        +-- UserAlreadyExistsError

Accrual service outcomes (not found, rate limited, unavailable, transport
failure) are values, not exceptions; see ``loyalty.services.accrual_client``.
"""
from __future__ import annotations


class LoyaltyError(Exception):
    """Base exception for all loyalty service errors."""

    code: str = "LOYALTY_ERROR"


class ValidationError(LoyaltyError):
    code: str = "VALIDATION_ERROR"


class InvalidChecksumError(ValidationError):
    """Identifier is empty, not all digits, or fails the Luhn check."""

    code: str = "INVALID_CHECKSUM"

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Invalid order number: {identifier!r}")


class InvalidAmountError(ValidationError):
    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: int):
        self.amount = amount
        super().__init__(f"Amount must be positive, got {amount}")


class InsufficientFundsError(LoyaltyError):
    """Withdrawal would drive the owner's available balance below zero."""

    code: str = "INSUFFICIENT_FUNDS"

    def __init__(self, owner_id: int, requested: int, available: int):
        self.owner_id = owner_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient funds for user {owner_id}: requested {requested}, available {available}"
        )


class StoreError(LoyaltyError):
    """Ledger store could not complete an operation."""

    code: str = "STORE_ERROR"


class OrderNotFoundError(StoreError):
    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(f"Order not found: {order_number}")


class OrderConflictError(StoreError):
    """Order number was already registered by another user."""

    code: str = "ORDER_CONFLICT"

    def __init__(self, order_number: str, owner_id: int):
        self.order_number = order_number
        self.owner_id = owner_id
        super().__init__(f"Order {order_number} already registered by another user")


class UserAlreadyExistsError(StoreError):
    code: str = "USER_ALREADY_EXISTS"

    def __init__(self, login: str):
        self.login = login
        super().__init__(f"User with login {login!r} already exists")


__all__ = [
    "LoyaltyError",
    "ValidationError",
    "InvalidChecksumError",
    "InvalidAmountError",
    "InsufficientFundsError",
    "StoreError",
    "OrderNotFoundError",
    "OrderConflictError",
    "UserAlreadyExistsError",
]
