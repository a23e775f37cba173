from concurrent.futures import ThreadPoolExecutor

import pytest

from loyalty.exceptions import (
    InsufficientFundsError,
    InvalidAmountError,
    OrderConflictError,
    OrderNotFoundError,
    UserAlreadyExistsError,
)
from loyalty.models.db.enums import OrderStatus


def test_create_user_and_lookup(store, user_factory):
    user = user_factory(login="ledger_alice")
    assert user.api_key.startswith("lp_")
    assert store.get_user_by_login("ledger_alice").id == user.id
    assert store.get_user_by_api_key(user.api_key).login == "ledger_alice"
    assert store.get_user_by_api_key("lp_unknown") is None


def test_duplicate_login_rejected(user_factory):
    user_factory(login="ledger_dup")
    with pytest.raises(UserAlreadyExistsError):
        user_factory(login="ledger_dup")


def test_register_order_created_then_repeat_and_conflict(store, user_factory, luhn_number):
    owner = user_factory()
    other = user_factory()
    number = luhn_number()

    order, created = store.register_order(owner.id, number)
    assert created
    assert order.status == OrderStatus.NEW
    assert order.accrual is None
    assert order.registered_at.tzinfo is not None

    again, created_again = store.register_order(owner.id, number)
    assert not created_again
    assert again.number == number

    with pytest.raises(OrderConflictError) as exc_info:
        store.register_order(other.id, number)
    assert exc_info.value.owner_id == owner.id


def test_pending_orders_exclude_terminal(store, user_factory, order_factory, luhn_number):
    owner = user_factory()
    new = order_factory(owner.id, luhn_number())
    processing = order_factory(owner.id, luhn_number(), OrderStatus.PROCESSING)
    processed = order_factory(owner.id, luhn_number(), OrderStatus.PROCESSED, 100)
    invalid = order_factory(owner.id, luhn_number(), OrderStatus.INVALID)

    pending = store.list_pending_orders()
    assert new.number in pending
    assert processing.number in pending
    assert processed.number not in pending
    assert invalid.number not in pending


def test_settlement_is_idempotent_and_terminal(store, user_factory, order_factory, luhn_number):
    owner = user_factory()
    number = order_factory(owner.id, luhn_number()).number

    assert store.apply_settlement(number, OrderStatus.PROCESSED, 50050) is True
    # repeating the same verdict changes nothing
    assert store.apply_settlement(number, OrderStatus.PROCESSED, 50050) is False
    # a later conflicting verdict does not rewrite a terminal order
    assert store.apply_settlement(number, OrderStatus.INVALID) is False
    assert store.apply_settlement(number, OrderStatus.PROCESSED, 1) is False

    order = store.get_order(number)
    assert order.status == OrderStatus.PROCESSED
    assert order.accrual == 50050
    assert store.get_balance(owner.id).accrued == 50050


def test_settlement_never_regresses(store, user_factory, order_factory, luhn_number):
    owner = user_factory()
    number = order_factory(owner.id, luhn_number(), OrderStatus.PROCESSING).number

    assert store.apply_settlement(number, OrderStatus.NEW) is False
    assert store.apply_settlement(number, OrderStatus.PROCESSING) is False
    assert store.get_order(number).status == OrderStatus.PROCESSING


def test_settlement_of_unknown_order(store):
    with pytest.raises(OrderNotFoundError):
        store.apply_settlement("4000000000000002", OrderStatus.PROCESSED, 10)


def test_accrual_only_counted_for_processed_orders(store, user_factory, order_factory, luhn_number):
    owner = user_factory()
    order_factory(owner.id, luhn_number(), OrderStatus.PROCESSED, 1000)
    order_factory(owner.id, luhn_number(), OrderStatus.INVALID)
    order_factory(owner.id, luhn_number(), OrderStatus.PROCESSING)

    snapshot = store.get_balance(owner.id)
    assert snapshot.accrued == 1000
    assert snapshot.withdrawn == 0
    assert store.compute_available_balance(owner.id) == 1000


def test_withdrawal_rejected_without_partial_effect(store, user_factory, order_factory, luhn_number):
    owner = user_factory()
    order_factory(owner.id, luhn_number(), OrderStatus.PROCESSED, 500)

    with pytest.raises(InsufficientFundsError) as exc_info:
        store.create_withdrawal(owner.id, luhn_number(), 501)
    assert exc_info.value.available == 500
    assert store.list_user_withdrawals(owner.id) == []

    with pytest.raises(InvalidAmountError):
        store.create_withdrawal(owner.id, luhn_number(), 0)

    record = store.create_withdrawal(owner.id, luhn_number(), 500)
    assert record.amount == 500
    assert store.get_balance(owner.id).available == 0


def test_withdrawals_listed_newest_first(store, user_factory, order_factory, luhn_number):
    owner = user_factory()
    order_factory(owner.id, luhn_number(), OrderStatus.PROCESSED, 1000)
    first = luhn_number()
    second = luhn_number()
    store.create_withdrawal(owner.id, first, 100)
    store.create_withdrawal(owner.id, second, 200)

    history = store.list_user_withdrawals(owner.id)
    assert [w.order_reference for w in history] == [second, first]


def test_concurrent_withdrawals_never_overdraw(store, user_factory, order_factory, luhn_number):
    owner = user_factory()
    order_factory(owner.id, luhn_number(), OrderStatus.PROCESSED, 1000)
    references = [luhn_number() for _ in range(10)]

    def attempt(reference):
        try:
            store.create_withdrawal(owner.id, reference, 300)
            return True
        except InsufficientFundsError:
            return False

    with ThreadPoolExecutor(max_workers=5) as pool:
        results = list(pool.map(attempt, references))

    assert results.count(True) == 3
    snapshot = store.get_balance(owner.id)
    assert snapshot.withdrawn == 900
    assert snapshot.available == 100
