"""Balance ledger logic: the two gates through which user input reaches the ledger.

``withdraw`` is the only way a balance can decrease; order settlement by the
reconciliation worker is the only way it can increase. Both functions check
the identifier's checksum before the store is touched.
"""
from __future__ import annotations

from typing import Optional

from loyalty.exceptions import InvalidAmountError
from loyalty.services.ledger_store import LedgerStore, OrderRecord, WithdrawalRecord
from loyalty.services.luhn import validate_luhn
from loyalty.utils import get_logger, log_business_event

logger = get_logger(__name__)


def withdraw(
    store: LedgerStore,
    owner_id: int,
    order_reference: str,
    amount: int,
    *,
    request_id: Optional[str] = None,
) -> WithdrawalRecord:
    """Spend ``amount`` minor units of the owner's balance against ``order_reference``.

    Raises:
        InvalidChecksumError: reference is not a Luhn-valid number (checked first).
        InvalidAmountError: amount is not positive.
        InsufficientFundsError: amount exceeds the available balance; nothing is recorded.
    """
    validate_luhn(order_reference)
    if amount <= 0:
        raise InvalidAmountError(amount)

    record = store.create_withdrawal(owner_id, order_reference, amount)
    log_business_event(
        event_type="withdrawal_created",
        details={"order_reference": order_reference, "amount": amount},
        user_id=owner_id,
        request_id=request_id,
    )
    return record


def submit_order(
    store: LedgerStore,
    owner_id: int,
    order_number: str,
    *,
    request_id: Optional[str] = None,
) -> tuple[OrderRecord, bool]:
    """Register an order for accrual evaluation; returns ``(order, created)``."""
    validate_luhn(order_number)
    order, created = store.register_order(owner_id, order_number)
    if created:
        log_business_event(
            event_type="order_registered",
            details={"order_number": order_number},
            user_id=owner_id,
            request_id=request_id,
        )
    else:
        logger.info("Order already registered by the same user", order_number=order_number, user_id=owner_id)
    return order, created


__all__ = ["withdraw", "submit_order"]
