from decimal import Decimal

import pytest

from retail_core.errors import InsufficientStock, InvalidQuantity
from retail_core.services.cart import CartLine, DraftCart, compute_totals


def _line(pid, qty, price, cost="0"):
    return CartLine(product_id=pid, quantity=qty, unit_price=Decimal(price), unit_cost=Decimal(cost))


def test_totals_with_discount_and_full_payment():
    lines = [_line(1, 2, "100"), _line(2, 1, "50")]
    t = compute_totals(lines, discount=20, paid_amount=230)
    assert t.subtotal == Decimal("250.00")
    assert t.total == Decimal("230.00")
    assert t.remaining == Decimal("0.00")
    assert t.is_fully_paid is True


def test_discount_above_subtotal_floors_total_and_profit_at_zero():
    t = compute_totals([_line(1, 1, "40", "30")], discount=100)
    assert t.total == Decimal("0.00")
    assert t.profit == Decimal("0.00")
    assert t.is_fully_paid is True


def test_profit_uses_unit_cost():
    t = compute_totals([_line(1, 2, "100", "60"), _line(2, 1, "50", "30")], discount=10)
    assert t.profit == Decimal("90.00")


def test_negative_discount_rejected():
    with pytest.raises(ValueError):
        compute_totals([_line(1, 1, "10")], discount=-1)


def test_zero_quantity_line_rejected():
    with pytest.raises(InvalidQuantity):
        compute_totals([_line(1, 0, "10")])


def test_adding_same_product_merges_lines(product_a):
    cart = DraftCart()
    cart.add_product(product_a, 2)
    line = cart.add_product(product_a, 3)
    assert len(cart) == 1
    assert line.quantity == 5
    assert line.unit_price == product_a.sale_price


def test_cart_rejects_more_than_on_hand(product_b):
    cart = DraftCart()
    cart.add_product(product_b, 4)
    with pytest.raises(InsufficientStock):
        cart.add_product(product_b, 2)
    with pytest.raises(InsufficientStock):
        cart.set_quantity(product_b.id, 6)
    assert cart.line_for(product_b.id).quantity == 4


def test_set_price_remove_and_clear(product_a, product_b):
    cart = DraftCart()
    cart.add_product(product_a, 1)
    cart.add_product(product_b, 1)
    cart.set_price(product_a.id, "90")
    assert cart.totals().subtotal == Decimal("140.00")
    cart.remove_line(product_b.id)
    assert cart.line_for(product_b.id) is None
    cart.clear()
    assert cart.is_empty()
