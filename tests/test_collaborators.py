from decimal import Decimal

import pytest

from retail_core.errors import ConfirmationRequired, TransportFailure
from retail_core.models import Payment, Sale
from retail_core.services.cart import CartLine
from retail_core.services.collaborators import (
    FetchResult,
    MutationRejected,
    fetch_snapshot,
    payment_payload,
    run_mutation,
    sale_payload,
)
from retail_core.services.confirmation import ADMIN_PASSWORD_FIELD, with_admin_password


def _sale(**kw):
    base = dict(
        id=None, customer_id=3, branch_id=1, sale_date="2024-06-15",
        total_amount=Decimal("9999"), paid_amount=Decimal("100"), discount=Decimal("20"),
        profit=Decimal("0"), is_fully_paid=True,
    )
    base.update(kw)
    return Sale(**base)


def test_sale_payload_recomputes_totals():
    lines = [
        CartLine(product_id=1, quantity=2, unit_price=Decimal("100"), unit_cost=Decimal("60")),
        CartLine(product_id=2, quantity=1, unit_price=Decimal("50"), unit_cost=Decimal("30")),
    ]
    body = sale_payload(_sale(), lines)
    assert body["total_amount"] == 230.0
    assert body["profit"] == 80.0
    assert body["is_fully_paid"] is False
    assert body["sale_items"] == [
        {"product_id": 1, "quantity": 2, "unit_price": 100.0},
        {"product_id": 2, "quantity": 1, "unit_price": 50.0},
    ]
    assert ADMIN_PASSWORD_FIELD not in body


def test_sale_payload_carries_password():
    lines = [CartLine(product_id=1, quantity=1, unit_price=Decimal("10"))]
    body = sale_payload(_sale(discount=Decimal("0"), paid_amount=Decimal("10")), lines, admin_password="pw")
    assert body[ADMIN_PASSWORD_FIELD] == "pw"
    with pytest.raises(ConfirmationRequired):
        with_admin_password({}, "   ")


def test_payment_payload_shape():
    p = Payment(id=4, due_id=2, amount=Decimal("12.50"), payment_date="2024-06-01", payment_method="cash", description="x")
    assert payment_payload(p) == {
        "id": 4, "due_id": 2, "amount": 12.5, "payment_date": "2024-06-01",
        "payment_method": "cash", "description": "x",
    }


def test_fetch_snapshot_is_a_copy():
    source = {"dues": [{"id": 1, "remaining_amount": 100}]}
    snap = fetch_snapshot(lambda path, **_: FetchResult(data=source), "/dues")
    source["dues"][0]["remaining_amount"] = 0
    assert snap.data["dues"][0]["remaining_amount"] == 100


def test_fetch_error_raises_transport_failure():
    with pytest.raises(TransportFailure):
        fetch_snapshot(lambda path, **_: FetchResult(error="timeout"), "/sales")


def test_run_mutation():
    calls = []

    def mutator(path, method, payload):
        calls.append((path, method, payload))
        return {"ok": True}

    assert run_mutation(mutator, "/payments", "post", {"amount": 1}) == {"ok": True}
    assert calls == [("/payments", "POST", {"amount": 1})]
    with pytest.raises(ValueError):
        run_mutation(mutator, "/payments", "GET")


def test_rejected_mutation_surfaces_status():
    def mutator(path, method, payload):
        raise MutationRejected("Invalid admin password", status=403)

    with pytest.raises(TransportFailure) as exc:
        run_mutation(mutator, "/sales/1", "DELETE")
    assert exc.value.status == 403
    assert "Invalid admin password" in str(exc.value)
