from decimal import Decimal

import pytest

from retail_core.money import fmt_money, line_amount, money_sum, non_negative, percent, safe_div, to_money, to_quantity


def test_to_money_rounds_half_up_to_cents():
    assert to_money("10.005") == Decimal("10.01")
    assert to_money(0.1) == Decimal("0.10")
    assert to_money(None) == Decimal("0.00")
    assert to_money("") == Decimal("0.00")


@pytest.mark.parametrize("bad", ["abc", "nan", "inf", True])
def test_to_money_rejects_non_numbers(bad):
    with pytest.raises(ValueError):
        to_money(bad)


def test_to_quantity_requires_whole_non_negative():
    assert to_quantity("3") == 3
    with pytest.raises(ValueError):
        to_quantity("2.5")
    with pytest.raises(ValueError):
        to_quantity(-1)


def test_helpers():
    assert non_negative("-5") == Decimal("0.00")
    assert money_sum(["1.10", None, 2]) == Decimal("3.10")
    assert line_amount(3, "19.99") == Decimal("59.97")
    assert fmt_money("1234.5", "Rs") == "Rs 1,234.50"


def test_division_guard():
    assert safe_div(10, 0) == 0
    assert percent(50, 0) == Decimal("0.00")
    assert percent(25, 200) == Decimal("12.50")
