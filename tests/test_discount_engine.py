from decimal import Decimal

import pytest

from point_of_sale import DiscountEngine, DiscountKind, DiscountRule, Money


UNIT = Money(1050, "GBP")
ZERO = Money(0, "GBP")


def free_units(threshold, param):
    return DiscountRule(threshold, Decimal(str(param)), DiscountKind.FREE_UNITS)


def amount_off(threshold, param):
    return DiscountRule(threshold, Decimal(str(param)), DiscountKind.AMOUNT_OFF)


def test_no_rule():
    assert DiscountEngine.compute(None, 10, UNIT, 100) == (ZERO, 0)


@pytest.mark.parametrize("quantity", range(0, 13))
def test_free_units_fire_once_per_complete_group(quantity):
    amount, triggered = DiscountEngine.compute(free_units(2, 1), quantity, UNIT, 100)
    assert triggered == quantity // 3
    if quantity < 3:
        assert amount == ZERO
    else:
        assert amount == UNIT


def test_free_units_amount_is_one_unit_regardless_of_param():
    amount, triggered = DiscountEngine.compute(free_units(2, 3), 10, UNIT, 100)
    assert (amount, triggered) == (UNIT, 2)


def test_free_units_with_zero_param_groups_by_threshold():
    assert DiscountEngine.compute(free_units(2, 0), 5, UNIT, 100) == (UNIT, 2)


def test_free_units_with_fractional_param():
    # group of 3.5 units
    assert DiscountEngine.compute(free_units(2, 1.5), 7, UNIT, 100) == (UNIT, 2)
    assert DiscountEngine.compute(free_units(2, 1.5), 3, UNIT, 100) == (ZERO, 0)


@pytest.mark.parametrize("quantity, triggered", [(7, 2), (3, 1), (6, 2), (9, 3)])
def test_amount_off_triggers(quantity, triggered):
    amount, fired = DiscountEngine.compute(amount_off(3, 2.5), quantity, Money(2000, "GBP"), 100)
    assert amount == Money(250, "GBP")
    assert fired == triggered


def test_amount_off_below_threshold():
    assert DiscountEngine.compute(amount_off(3, 2.5), 2, Money(2000, "GBP"), 100) == (ZERO, 0)


def test_amount_off_rounds_half_up_to_minor_units():
    amount, _ = DiscountEngine.compute(amount_off(1, 2.5), 1, Money(800, "JPY"), 1)
    assert amount == Money(3, "JPY")


def test_amount_off_uses_the_multiplier():
    amount, _ = DiscountEngine.compute(amount_off(1, 1.25), 1, Money(5000, "KWD"), 1000)
    assert amount == Money(1250, "KWD")
