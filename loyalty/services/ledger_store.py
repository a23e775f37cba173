"""Ledger store: the only owner of users, orders and withdrawals.

The reconciliation worker and the request handlers both go through this
class. Each method opens its own session from the injected ``sessionmaker``
so nothing is cached between calls; every read reflects the database.

Consistency rules enforced here:
* Order status writes are conditional UPDATEs keyed by order number and
  restricted to the statuses that may legally precede the new one, so a
  terminal order is never rewritten and a status never regresses, whatever
  order concurrent writers commit in.
* Balance is derived on every read (sum of PROCESSED accrual minus sum of
  withdrawals); there is no stored running total.
* ``create_withdrawal`` reads the balance, compares and inserts inside one
  transaction while holding the owner's lock: an in-process lock per owner
  plus ``SELECT ... FOR UPDATE`` on the owner row (honoured by PostgreSQL,
  a no-op on sqlite where the in-process lock is what serialises).
"""
from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from loyalty.exceptions import (
    InsufficientFundsError,
    InvalidAmountError,
    OrderConflictError,
    OrderNotFoundError,
    StoreError,
    UserAlreadyExistsError,
)
from loyalty.models.db import Order, User, Withdrawal
from loyalty.models.db.enums import OrderStatus
from loyalty.services.order_state import PENDING_STATUSES, allowed_predecessors
from loyalty.utils import get_logger
from loyalty.utils.time import ensure_utc, utc_now

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class UserRecord:
    id: int
    login: str
    password_hash: str
    api_key: str


@dataclass(frozen=True, slots=True)
class OrderRecord:
    number: str
    owner_id: int
    status: OrderStatus
    accrual: int | None
    registered_at: datetime


@dataclass(frozen=True, slots=True)
class WithdrawalRecord:
    owner_id: int
    order_reference: str
    amount: int
    processed_at: datetime


@dataclass(frozen=True, slots=True)
class BalanceSnapshot:
    accrued: int
    withdrawn: int

    @property
    def available(self) -> int:
        return self.accrued - self.withdrawn


class OwnerLocks:
    """Process-local lock per owner id (lazily created, never evicted)."""

    def __init__(self) -> None:
        self._locks: dict[int, threading.Lock] = {}
        self._guard = threading.Lock()

    def get(self, owner_id: int) -> threading.Lock:
        lock = self._locks.get(owner_id)
        if lock is None:
            with self._guard:
                lock = self._locks.setdefault(owner_id, threading.Lock())
        return lock


def _order_record(order: Order) -> OrderRecord:
    return OrderRecord(
        number=order.number,
        owner_id=order.user_id,
        status=order.status,
        accrual=order.accrual,
        registered_at=ensure_utc(order.registered_at or utc_now()),  # type: ignore[arg-type]
    )


def _withdrawal_record(row: Withdrawal) -> WithdrawalRecord:
    return WithdrawalRecord(
        owner_id=row.user_id,
        order_reference=row.order_reference,
        amount=row.amount,
        processed_at=ensure_utc(row.processed_at or utc_now()),  # type: ignore[arg-type]
    )


def _user_record(user: User) -> UserRecord:
    return UserRecord(id=user.id, login=user.login, password_hash=user.password_hash, api_key=user.api_key)


class LedgerStore:
    def __init__(self, session_factory: Callable[[], Session], *, owner_locks: OwnerLocks | None = None):
        self._session_factory = session_factory
        self._owner_locks = owner_locks or OwnerLocks()

    # ------------------------------------------------------------------ #
    # Users
    # ------------------------------------------------------------------ #
    def create_user(self, login: str, password_hash: str) -> UserRecord:
        with self._session_factory() as session:
            user = User(login=login, password_hash=password_hash, api_key=f"lp_{secrets.token_hex(16)}")
            session.add(user)
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise UserAlreadyExistsError(login) from e
            except SQLAlchemyError as e:
                session.rollback()
                raise StoreError(f"Failed to create user {login!r}: {e}") from e
            session.refresh(user)
            return _user_record(user)

    def get_user_by_login(self, login: str) -> UserRecord | None:
        with self._session_factory() as session:
            user = session.query(User).filter(User.login == login).one_or_none()
            return _user_record(user) if user else None

    def get_user_by_api_key(self, api_key: str) -> UserRecord | None:
        with self._session_factory() as session:
            user = session.query(User).filter(User.api_key == api_key).one_or_none()
            return _user_record(user) if user else None

    # ------------------------------------------------------------------ #
    # Orders
    # ------------------------------------------------------------------ #
    def register_order(self, owner_id: int, order_number: str) -> tuple[OrderRecord, bool]:
        """Insert a NEW order. Returns ``(order, created)``.

        Re-submitting one's own order returns the existing row with
        ``created=False``; another user's number raises ``OrderConflictError``.
        Callers must have validated the checksum already.
        """
        with self._session_factory() as session:
            order = Order(number=order_number, user_id=owner_id, status=OrderStatus.NEW)
            session.add(order)
            try:
                session.commit()
                session.refresh(order)
                return _order_record(order), True
            except IntegrityError:
                session.rollback()
            except SQLAlchemyError as e:
                session.rollback()
                raise StoreError(f"Failed to register order {order_number}: {e}") from e

            existing = session.query(Order).filter(Order.number == order_number).one_or_none()
            if existing is None:
                # unique violation on something other than the number
                raise StoreError(f"Failed to register order {order_number}")
            if existing.user_id != owner_id:
                raise OrderConflictError(order_number, existing.user_id)
            return _order_record(existing), False

    def list_user_orders(self, owner_id: int) -> list[OrderRecord]:
        with self._session_factory() as session:
            rows = (
                session.query(Order)
                .filter(Order.user_id == owner_id)
                .order_by(Order.registered_at.asc(), Order.id.asc())
                .all()
            )
            return [_order_record(o) for o in rows]

    def get_order(self, order_number: str) -> OrderRecord | None:
        with self._session_factory() as session:
            order = session.query(Order).filter(Order.number == order_number).one_or_none()
            return _order_record(order) if order else None

    def list_pending_orders(self) -> list[str]:
        """Numbers of every order still awaiting a verdict (NEW or PROCESSING)."""
        try:
            with self._session_factory() as session:
                rows = session.execute(
                    select(Order.number)
                    .where(Order.status.in_(tuple(PENDING_STATUSES)))
                    .order_by(Order.id.asc())
                ).scalars().all()
                return list(rows)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to list pending orders: {e}") from e

    def apply_settlement(self, order_number: str, new_status: OrderStatus, accrual_amount: int | None = None) -> bool:
        """Write the accrual service's verdict for one order.

        Returns True when the row changed. Terminal orders and would-be
        regressions are left untouched and return False; repeating a
        settlement is therefore harmless.
        """
        accrual = None
        if new_status == OrderStatus.PROCESSED:
            accrual = int(accrual_amount or 0)
            if accrual < 0:
                raise InvalidAmountError(accrual)

        predecessors = allowed_predecessors(new_status)
        with self._session_factory() as session:
            try:
                conditions = [Order.number == order_number, Order.status.in_(tuple(predecessors))]
                if new_status in PENDING_STATUSES:
                    # same-status repeats for NEW/PROCESSING would be no-op writes
                    conditions.append(Order.status != new_status)
                result = session.execute(
                    update(Order)
                    .where(*conditions)
                    .values(status=new_status, accrual=accrual)
                    .execution_options(synchronize_session=False)
                )
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                raise StoreError(f"Failed to settle order {order_number}: {e}") from e

            if result.rowcount:
                return True
            exists = session.execute(select(Order.id).where(Order.number == order_number)).first()
            if exists is None:
                raise OrderNotFoundError(order_number)
            return False

    # ------------------------------------------------------------------ #
    # Balance & withdrawals
    # ------------------------------------------------------------------ #
    def _balance(self, session: Session, owner_id: int) -> BalanceSnapshot:
        accrued = session.execute(
            select(func.coalesce(func.sum(Order.accrual), 0))
            .where(Order.user_id == owner_id, Order.status == OrderStatus.PROCESSED)
        ).scalar_one()
        withdrawn = session.execute(
            select(func.coalesce(func.sum(Withdrawal.amount), 0))
            .where(Withdrawal.user_id == owner_id)
        ).scalar_one()
        return BalanceSnapshot(accrued=int(accrued), withdrawn=int(withdrawn))

    def get_balance(self, owner_id: int) -> BalanceSnapshot:
        try:
            with self._session_factory() as session:
                return self._balance(session, owner_id)
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to read balance for user {owner_id}: {e}") from e

    def compute_available_balance(self, owner_id: int) -> int:
        return self.get_balance(owner_id).available

    def create_withdrawal(self, owner_id: int, order_reference: str, amount: int) -> WithdrawalRecord:
        """Admit a withdrawal only if it keeps the owner's balance non-negative.

        Balance read, comparison and insert form one unit of work per owner.
        """
        if amount <= 0:
            raise InvalidAmountError(amount)

        with self._owner_locks.get(owner_id):
            with self._session_factory() as session:
                try:
                    owner = (
                        session.query(User)
                        .filter(User.id == owner_id)
                        .with_for_update()
                        .one_or_none()
                    )
                    if owner is None:
                        raise StoreError(f"User {owner_id} not found")
                    available = self._balance(session, owner_id).available
                    if amount > available:
                        session.rollback()
                        raise InsufficientFundsError(owner_id, amount, available)
                    row = Withdrawal(user_id=owner_id, order_reference=order_reference, amount=amount)
                    session.add(row)
                    session.commit()
                except SQLAlchemyError as e:
                    session.rollback()
                    raise StoreError(f"Failed to create withdrawal for user {owner_id}: {e}") from e
                session.refresh(row)
                return _withdrawal_record(row)

    def list_user_withdrawals(self, owner_id: int) -> list[WithdrawalRecord]:
        with self._session_factory() as session:
            rows = (
                session.query(Withdrawal)
                .filter(Withdrawal.user_id == owner_id)
                .order_by(Withdrawal.processed_at.desc(), Withdrawal.id.desc())
                .all()
            )
            return [_withdrawal_record(w) for w in rows]


__all__ = [
    "LedgerStore",
    "OwnerLocks",
    "UserRecord",
    "OrderRecord",
    "WithdrawalRecord",
    "BalanceSnapshot",
]
