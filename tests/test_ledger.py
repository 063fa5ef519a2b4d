from datetime import date
from decimal import Decimal

import pytest

from retail_core.errors import DueClosed, InvalidPaymentAmount, InvalidTransition, OverpaymentRejected, StaleDueState
from retail_core.services import ledger

TODAY = date(2024, 6, 15)


def _due(total="1000", advance="0", due_date=None):
    return ledger.open_due(
        due_type="customer",
        owner_id=1,
        total_amount=total,
        advance_paid=advance,
        due_date=due_date,
        category="sale",
        today=TODAY,
    )


def test_three_installments_settle_the_due():
    due = _due()
    seen = []
    for amount in ("300", "300", "400"):
        due = ledger.apply_amount(due, amount, TODAY)
        ledger.check_invariants(due)
        seen.append((due.remaining_amount, due.status))
    assert seen == [
        (Decimal("700.00"), "partial"),
        (Decimal("400.00"), "partial"),
        (Decimal("0.00"), "paid"),
    ]


def test_overpayment_is_rejected_and_due_unchanged():
    due = ledger.apply_amount(_due(), "900", TODAY)
    with pytest.raises(OverpaymentRejected):
        ledger.apply_amount(due, "100.01", TODAY)
    assert due.paid_amount == Decimal("900.00")
    assert due.remaining_amount == Decimal("100.00")


@pytest.mark.parametrize("amount", ["0", "-5"])
def test_non_positive_payment_rejected(amount):
    with pytest.raises(InvalidPaymentAmount):
        ledger.apply_amount(_due(), amount, TODAY)


def test_apply_then_reverse_restores_state():
    due = _due(advance="100")
    after = ledger.reverse_amount(ledger.apply_amount(due, "250", TODAY), "250", TODAY)
    assert (after.paid_amount, after.remaining_amount, after.status) == (
        due.paid_amount,
        due.remaining_amount,
        due.status,
    )


def test_status_derivation():
    assert ledger.derive_status("100", "0", None, TODAY) == "pending"
    assert ledger.derive_status("100", "40", None, TODAY) == "partial"
    assert ledger.derive_status("100", "100", "2024-01-01", TODAY) == "paid"
    assert ledger.derive_status("100", "40", "2024-06-14", TODAY) == "overdue"
    assert ledger.derive_status("100", "0", "2024-06-15", TODAY) == "pending"


def test_advance_cannot_exceed_total():
    with pytest.raises(OverpaymentRejected):
        _due(total="100", advance="150")


def test_recompute_from_history():
    due = _due(advance="100")
    fresh = ledger.recompute(due, ["200", "50.50"], TODAY)
    assert fresh.paid_amount == Decimal("350.50")
    assert fresh.remaining_amount == Decimal("649.50")
    with pytest.raises(StaleDueState):
        ledger.recompute(due, ["950"], TODAY)


def test_edit_total_cannot_go_below_paid():
    due = ledger.apply_amount(_due(), "600", TODAY)
    with pytest.raises(OverpaymentRejected):
        ledger.edit_total(due, "500", TODAY)
    edited = ledger.edit_total(due, "600", TODAY)
    assert edited.status == "paid"


def test_cancelled_is_terminal():
    cancelled = ledger.cancel(_due())
    assert cancelled.status == "cancelled"
    assert ledger.cancel(cancelled) is cancelled
    with pytest.raises(DueClosed):
        ledger.apply_amount(cancelled, "10", TODAY)
    assert ledger.refresh(cancelled, TODAY).status == "cancelled"


def test_paid_due_cannot_be_cancelled():
    paid = ledger.apply_amount(_due(total="50"), "50", TODAY)
    with pytest.raises(InvalidTransition):
        ledger.cancel(paid)
