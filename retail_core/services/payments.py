"""
Settlement of dues.

Every operation re-reads the due and rebuilds paid/remaining/status from the
opening advance plus the stored payment history before validating, then writes
the due back guarded by its version counter. A payment row and its ledger
update are committed together or not at all.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

from retail_core.db import q, q1, transaction, x, xc
from retail_core.errors import DueClosed, NotFound, RetailCoreError, StaleDueState
from retail_core.models import PAYMENT_METHODS, ActorContext, Due, DueStatus, Payment
from retail_core.money import NumberLike, to_money
from retail_core.services import ledger
from retail_core.services.confirmation import require_confirmation
from retail_core.services.dues import get_due, write_due
from retail_core.utils import iso_date, iso_now, iso_today

_log = logging.getLogger(__name__)

DueRef = Union[Due, int]
PaymentRef = Union[Payment, int]


@dataclass
class PaymentResult:
    due: Due
    payment: Optional[Payment] = None


def _due_id(due: DueRef) -> int:
    return int(due.id if isinstance(due, Due) else due)


def _payment_id(payment: PaymentRef) -> int:
    return int(payment.id if isinstance(payment, Payment) else payment)


def _normalize_method(method: Optional[str]) -> str:
    m = (method or "cash").strip().lower().replace(" ", "_")
    if m not in PAYMENT_METHODS:
        raise ValueError(f"Unsupported payment method: {method}. Use one of {', '.join(PAYMENT_METHODS)}.")
    return m


def _normalize_description(description: Optional[str]) -> str:
    d = (description or "").strip()
    if not d:
        raise ValueError("Description is required.")
    if len(d) > 500:
        raise ValueError("Description too long (max 500 characters).")
    return d


def _load(conn, due: DueRef, today: Optional[date]) -> tuple[Due, Due]:
    """
    Stored row plus its ledger truth. A caller snapshot whose total no longer
    matches the stored one is stale: the caller must refresh before paying.
    """
    stored = get_due(conn, _due_id(due))
    if isinstance(due, Due) and due.total_amount != stored.total_amount:
        raise StaleDueState(stored.id, due.total_amount, stored.total_amount)
    history = [r["amount"] for r in q(conn, "SELECT amount FROM payments WHERE due_id=?", (stored.id,))]
    return stored, ledger.recompute(stored, history, today)


def _history_without(conn, due_id: int, payment_id: int) -> list[str]:
    rows = q(conn, "SELECT amount FROM payments WHERE due_id=? AND id<>?", (int(due_id), int(payment_id)))
    return [r["amount"] for r in rows]


def get_payment(conn, payment_id: int) -> Payment:
    r = q1(
        conn,
        "SELECT p.*, d.due_type FROM payments p JOIN dues d ON d.id = p.due_id WHERE p.id=?",
        (int(payment_id),),
    )
    if r is None:
        raise NotFound("payment", payment_id)
    return Payment.from_row(r)


def list_payments(conn, *, due_id: Optional[int] = None, branch_id: Optional[int] = None) -> list[Payment]:
    where, params = ["1=1"], []
    if due_id is not None:
        where.append("p.due_id=?")
        params.append(int(due_id))
    if branch_id is not None:
        where.append("p.branch_id=?")
        params.append(int(branch_id))
    rows = q(
        conn,
        f"""
        SELECT p.*, d.due_type
        FROM payments p
        JOIN dues d ON d.id = p.due_id
        WHERE {' AND '.join(where)}
        ORDER BY p.payment_date DESC, p.id DESC
        """,
        params,
    )
    return [Payment.from_row(r) for r in rows]


def apply_payment(
    conn,
    actor: ActorContext,
    due: DueRef,
    amount: NumberLike,
    *,
    payment_method: str = "cash",
    description: Optional[str] = None,
    payment_date: Optional[str] = None,
    today: Optional[date] = None,
) -> PaymentResult:
    """
    Settle `amount` against a due. Requires 0 < amount <= remaining; an amount
    above the remaining balance raises OverpaymentRejected and leaves the ledger
    untouched.
    """
    method = _normalize_method(payment_method)
    desc = _normalize_description(description)
    paid_on = iso_date(payment_date) or iso_today()
    value = to_money(amount)

    with transaction(conn):
        stored, truth = _load(conn, due, today)
        try:
            after = ledger.apply_amount(truth, value, today)
        except RetailCoreError as e:
            _log.warning("Payment of %s on due %s rejected: %s", value, stored.id, e)
            raise

        payment_id = x(
            conn,
            """
            INSERT INTO payments (due_id, branch_id, user_id, amount, payment_date, payment_method, description, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (stored.id, int(actor.branch_id), actor.user_id, value, paid_on, method, desc, iso_now()),
            commit=False,
        )
        written = write_due(conn, stored, after)
        payment = get_payment(conn, payment_id)

    _log.info(
        "Payment %s of %s applied to due %s by user %s: remaining=%s status=%s",
        payment.id, value, written.id, actor.user_id, written.remaining_amount, written.status,
    )
    return PaymentResult(due=written, payment=payment)


def reverse_payment(
    conn,
    actor: ActorContext,
    due: DueRef,
    payment: PaymentRef,
    *,
    admin_password: Optional[str],
    today: Optional[date] = None,
) -> PaymentResult:
    """
    Delete a payment and rebuild the due from the remaining history. Deleting a
    payment that is already gone is a no-op.
    """
    require_confirmation(admin_password, "delete a payment")
    due_id, payment_id = _due_id(due), _payment_id(payment)

    with transaction(conn):
        row = q1(conn, "SELECT id, due_id, amount FROM payments WHERE id=?", (payment_id,))
        if row is None:
            _log.info("Payment %s already removed; nothing to reverse", payment_id)
            return PaymentResult(due=get_due(conn, due_id))
        if int(row["due_id"]) != due_id:
            raise RetailCoreError(f"Payment {payment_id} does not belong to due {due_id}.")

        stored = get_due(conn, due_id)
        if isinstance(due, Due) and due.total_amount != stored.total_amount:
            raise StaleDueState(stored.id, due.total_amount, stored.total_amount)
        if stored.status == DueStatus.CANCELLED.value:
            raise DueClosed(stored.id, stored.status)

        after = ledger.recompute(stored, _history_without(conn, due_id, payment_id), today)
        xc(conn, "DELETE FROM payments WHERE id=?", (payment_id,))
        written = write_due(conn, stored, after)

    _log.info(
        "Payment %s (%s) reversed on due %s by user %s: remaining=%s status=%s",
        payment_id, row["amount"], due_id, actor.user_id, written.remaining_amount, written.status,
    )
    return PaymentResult(due=written)


def edit_payment(
    conn,
    actor: ActorContext,
    due: DueRef,
    payment: PaymentRef,
    new_amount: NumberLike,
    *,
    admin_password: Optional[str],
    payment_method: Optional[str] = None,
    description: Optional[str] = None,
    payment_date: Optional[str] = None,
    today: Optional[date] = None,
) -> PaymentResult:
    """
    Reverse-then-apply in one step: the new amount is validated against the
    balance as it stands without this payment, and nothing in between is ever
    written.
    """
    require_confirmation(admin_password, "edit a payment")
    due_id, payment_id = _due_id(due), _payment_id(payment)
    value = to_money(new_amount)

    with transaction(conn):
        current = get_payment(conn, payment_id)
        if current.due_id != due_id:
            raise RetailCoreError(f"Payment {payment_id} does not belong to due {due_id}.")

        stored = get_due(conn, due_id)
        if isinstance(due, Due) and due.total_amount != stored.total_amount:
            raise StaleDueState(stored.id, due.total_amount, stored.total_amount)

        base = ledger.recompute(stored, _history_without(conn, due_id, payment_id), today)
        after = ledger.apply_amount(base, value, today)

        method = _normalize_method(payment_method) if payment_method is not None else current.payment_method
        desc = _normalize_description(description) if description is not None else current.description
        paid_on = iso_date(payment_date) or current.payment_date

        xc(
            conn,
            "UPDATE payments SET amount=?, payment_method=?, description=?, payment_date=? WHERE id=?",
            (value, method, desc, paid_on, payment_id),
        )
        written = write_due(conn, stored, after)
        edited = get_payment(conn, payment_id)

    _log.info(
        "Payment %s on due %s edited by user %s: %s -> %s (remaining=%s)",
        payment_id, due_id, actor.user_id, current.amount, value, written.remaining_amount,
    )
    return PaymentResult(due=written, payment=edited)
