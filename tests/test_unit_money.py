from decimal import Decimal

import pytest

from loyalty.utils.money import MAX_MINOR_UNITS, as_major_float, from_minor_units, to_minor_units


@pytest.mark.parametrize(
    "amount,expected",
    [
        (Decimal("500.5"), 50050),
        (Decimal("729.98"), 72998),
        (Decimal("0.005"), 1),
        (Decimal("0.004"), 0),
        (751, 75100),
        (500.5, 50050),
        ("420", 42000),
    ],
)
def test_to_minor_units(amount, expected):
    assert to_minor_units(amount) == expected


def test_float_input_does_not_pick_up_binary_noise():
    # 0.1 + 0.2 == 0.30000000000000004 as a float
    assert to_minor_units(0.1 + 0.2) == 30


def test_from_minor_units():
    assert from_minor_units(50050) == Decimal("500.50")
    assert as_major_float(8050) == 80.5
    assert as_major_float(0) == 0.0


@pytest.mark.parametrize(
    "amount",
    [Decimal("1e30"), 1e30, Decimal("92233720368547758.08"), Decimal("-1e30"), "Infinity", "NaN", "abc"],
)
def test_unrepresentable_amounts_raise_value_error(amount):
    with pytest.raises(ValueError):
        to_minor_units(amount)


def test_largest_storable_amount():
    assert to_minor_units(Decimal("92233720368547758.07")) == MAX_MINOR_UNITS
