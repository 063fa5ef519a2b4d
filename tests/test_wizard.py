from decimal import Decimal

import pytest

from retail_core.errors import StepValidationError
from retail_core.services.stock import get_product
from retail_core.services.wizard import SaleWizard


def test_forward_moves_are_gated(conn, customer, product_a):
    w = SaleWizard()
    with pytest.raises(StepValidationError) as exc:
        w.next()
    assert exc.value.step == "customer"

    w.draft.customer_id = customer.id
    assert w.next() == "products"
    with pytest.raises(StepValidationError):
        w.next()

    w.draft.cart.add_product(product_a, 2)
    assert w.next() == "payment"
    w.draft.set_paid_amount("500")
    with pytest.raises(StepValidationError):
        w.next()
    w.draft.set_paid_amount("50")
    assert w.next() == "review"
    assert w.back() == "payment"


def test_walk_in_must_pay_in_full_at_payment_step(product_a):
    w = SaleWizard()
    w.draft.walk_in = True
    w.next()
    w.draft.cart.add_product(product_a, 1)
    w.next()
    with pytest.raises(StepValidationError, match="Walk-in"):
        w.next()
    w.draft.set_paid_amount("100")
    assert w.next() == "review"


def test_go_to_checks_every_earlier_step(customer):
    w = SaleWizard()
    w.draft.customer_id = customer.id
    with pytest.raises(StepValidationError) as exc:
        w.go_to("review")
    assert exc.value.step == "products"
    assert w.step == "customer"


def test_confirm_only_from_review(conn, actor, customer, product_a, today):
    w = SaleWizard()
    with pytest.raises(StepValidationError):
        w.confirm(conn, actor, today=today)

    w.draft.customer_id = customer.id
    w.draft.cart.add_product(product_a, 3)
    w.draft.set_discount("20")
    w.draft.set_paid_amount("80")
    w.go_to("review")
    res = w.confirm(conn, actor, today=today)

    assert res.sale.total_amount == Decimal("280.00")
    assert res.due.remaining_amount == Decimal("200.00")
    assert get_product(conn, product_a.id).quantity == 7

    w.reset()
    assert (w.step, w.draft.cart.is_empty()) == ("customer", True)
