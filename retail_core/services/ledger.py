"""
Due ledger state machine.

Amount-driven transitions are a pure function of (total, paid, due_date, today):

    paid == 0            -> pending  (overdue once due_date has passed)
    0 < paid < total     -> partial  (overdue once due_date has passed)
    paid >= total        -> paid

`cancelled` is only entered through cancel() and is terminal: no payment,
reversal or recompute moves a due out of it.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from retail_core.errors import (
    DueClosed,
    InvalidPaymentAmount,
    InvalidTransition,
    OverpaymentRejected,
    StaleDueState,
)
from retail_core.models import DUE_CATEGORIES, Due, DueStatus, DueType
from retail_core.money import ZERO, NumberLike, money_sum, non_negative, to_money
from retail_core.utils import as_date

CANCELLED = DueStatus.CANCELLED.value


def remaining_of(total: NumberLike, paid: NumberLike) -> Decimal:
    return non_negative(to_money(total) - to_money(paid))


def derive_status(
    total: NumberLike,
    paid: NumberLike,
    due_date: Optional[str] = None,
    today: Optional[date] = None,
) -> str:
    t, p = to_money(total), to_money(paid)
    if p >= t:
        return DueStatus.PAID.value
    d = as_date(due_date)
    if d is not None and d < (today or date.today()):
        return DueStatus.OVERDUE.value
    if p == ZERO:
        return DueStatus.PENDING.value
    return DueStatus.PARTIAL.value


def check_invariants(due: Due) -> None:
    if due.paid_amount < 0 or due.paid_amount > due.total_amount:
        raise StaleDueState(due.id or 0, due.total_amount, due.paid_amount)
    if due.remaining_amount != due.total_amount - due.paid_amount:
        raise StaleDueState(due.id or 0, due.total_amount - due.paid_amount, due.remaining_amount)


def _with_paid(due: Due, paid: Decimal, today: Optional[date]) -> Due:
    if due.status == CANCELLED:
        return replace(due, paid_amount=paid, remaining_amount=remaining_of(due.total_amount, paid))
    return replace(
        due,
        paid_amount=paid,
        remaining_amount=remaining_of(due.total_amount, paid),
        status=derive_status(due.total_amount, paid, due.due_date, today),
    )


def open_due(
    *,
    due_type: str,
    owner_id: int,
    total_amount: NumberLike,
    advance_paid: NumberLike = 0,
    due_date: Optional[str] = None,
    category: str = "other",
    today: Optional[date] = None,
    **extra,
) -> Due:
    """Build a new, unsaved Due with its derived fields filled in."""
    if due_type not in {t.value for t in DueType}:
        raise ValueError(f"Invalid due type '{due_type}'. Use customer, supplier or branch.")
    if category not in DUE_CATEGORIES:
        raise ValueError(f"Invalid due category '{category}'.")
    total = to_money(total_amount)
    if total <= 0:
        raise ValueError("Due total must be greater than 0.")
    advance = to_money(advance_paid)
    if advance < 0:
        raise InvalidPaymentAmount(advance, message="Paid amount cannot be negative.")
    if advance > total:
        raise OverpaymentRejected(advance, total, "Paid amount cannot exceed the due total.")

    due = Due(
        id=None,
        due_type=due_type,
        owner_id=int(owner_id),
        total_amount=total,
        advance_paid=advance,
        due_date=due_date,
        category=category,
        **extra,
    )
    return _with_paid(due, advance, today)


def apply_amount(due: Due, amount: NumberLike, today: Optional[date] = None) -> Due:
    if due.status == CANCELLED:
        raise DueClosed(due.id or 0, due.status)
    a = to_money(amount)
    if a <= 0:
        raise InvalidPaymentAmount(a, due.remaining_amount)
    if a > due.remaining_amount:
        raise OverpaymentRejected(a, due.remaining_amount)
    return _with_paid(due, due.paid_amount + a, today)


def reverse_amount(due: Due, amount: NumberLike, today: Optional[date] = None) -> Due:
    if due.status == CANCELLED:
        raise DueClosed(due.id or 0, due.status)
    a = to_money(amount)
    if a <= 0:
        raise InvalidPaymentAmount(a)
    return _with_paid(due, non_negative(due.paid_amount - a), today)


def recompute(due: Due, payment_amounts: Iterable[NumberLike], today: Optional[date] = None) -> Due:
    """
    Rebuild paid/remaining/status from the opening advance plus the full payment
    history. A history that no longer fits the total means the total was changed
    underneath us.
    """
    paid = due.advance_paid + money_sum(payment_amounts)
    if paid > due.total_amount:
        raise StaleDueState(due.id or 0, due.total_amount, paid)
    return _with_paid(due, paid, today)


def edit_total(due: Due, new_total: NumberLike, today: Optional[date] = None) -> Due:
    if due.status == CANCELLED:
        raise DueClosed(due.id or 0, due.status)
    total = to_money(new_total)
    if total <= 0:
        raise ValueError("Due total must be greater than 0.")
    if total < due.paid_amount:
        raise OverpaymentRejected(
            due.paid_amount - total,
            ZERO,
            f"Total {total} is below the {due.paid_amount} already paid.",
        )
    return _with_paid(replace(due, total_amount=total), due.paid_amount, today)


def cancel(due: Due) -> Due:
    if due.status == CANCELLED:
        return due
    if due.status == DueStatus.PAID.value:
        raise InvalidTransition("due", due.status, CANCELLED)
    return replace(due, status=CANCELLED)


def refresh(due: Due, today: Optional[date] = None) -> Due:
    """Re-evaluate status against `today` (overdue sweep)."""
    if due.status == CANCELLED:
        return due
    return _with_paid(due, due.paid_amount, today)
