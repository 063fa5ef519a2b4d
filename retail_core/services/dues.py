from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Optional

from retail_core.db import q, q1, transaction, x, xc
from retail_core.errors import NotFound, StaleDueState
from retail_core.models import ActorContext, Due, DueStatus, SaleStatus
from retail_core.money import NumberLike, to_money
from retail_core.services import ledger
from retail_core.services.confirmation import require_confirmation
from retail_core.utils import iso_date, iso_now

_log = logging.getLogger(__name__)


# -------------------------
# Row access
# -------------------------

def get_due(conn, due_id: int) -> Due:
    r = q1(conn, "SELECT * FROM dues WHERE id=?", (int(due_id),))
    if r is None:
        raise NotFound("due", due_id)
    return Due.from_row(r)


def list_dues(
    conn,
    *,
    branch_id: Optional[int] = None,
    due_type: Optional[str] = None,
    owner_id: Optional[int] = None,
    status: Optional[str] = None,
) -> list[Due]:
    where, params = ["1=1"], []
    if branch_id is not None:
        where.append("branch_id=?")
        params.append(int(branch_id))
    if due_type:
        where.append("due_type=?")
        params.append(str(due_type))
    if owner_id is not None:
        where.append("owner_id=?")
        params.append(int(owner_id))
    if status:
        where.append("status=?")
        params.append(str(status))
    rows = q(conn, f"SELECT * FROM dues WHERE {' AND '.join(where)} ORDER BY id DESC", params)
    return [Due.from_row(r) for r in rows]


def due_for_sale(conn, sale_id: int) -> Optional[Due]:
    r = q1(conn, "SELECT * FROM dues WHERE sale_id=? ORDER BY id LIMIT 1", (int(sale_id),))
    return Due.from_row(r) if r else None


def payment_amounts(conn, due_id: int) -> list[str]:
    rows = q(conn, "SELECT amount FROM payments WHERE due_id=? ORDER BY id", (int(due_id),))
    return [r["amount"] for r in rows]


# -------------------------
# Writers (run inside a caller's transaction)
# -------------------------

def insert_due(conn, due: Due) -> Due:
    due_id = x(
        conn,
        """
        INSERT INTO dues (
            branch_id, due_type, owner_id, category, sale_id, stock_movement_id,
            total_amount, advance_paid, paid_amount, remaining_amount,
            status, due_date, description, created_at, version
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0)
        """,
        (
            int(due.branch_id),
            due.due_type,
            int(due.owner_id),
            due.category,
            due.sale_id,
            due.stock_movement_id,
            due.total_amount,
            due.advance_paid,
            due.paid_amount,
            due.remaining_amount,
            due.status,
            due.due_date,
            due.description,
            iso_now(),
        ),
        commit=False,
    )
    _log.info("Opened %s due %s for owner %s: total=%s", due.due_type, due_id, due.owner_id, due.total_amount)
    return replace(due, id=int(due_id), version=0)


def write_due(conn, before: Due, after: Due) -> Due:
    """
    Persist `after` only if the row still carries `before.version`; otherwise
    another writer got there first.
    """
    n = xc(
        conn,
        """
        UPDATE dues
        SET total_amount=?, paid_amount=?, remaining_amount=?, status=?,
            due_date=?, description=?, version=version+1
        WHERE id=? AND version=?
        """,
        (
            after.total_amount,
            after.paid_amount,
            after.remaining_amount,
            after.status,
            after.due_date,
            after.description,
            int(before.id),
            int(before.version),
        ),
    )
    if n != 1:
        current = q1(conn, "SELECT version FROM dues WHERE id=?", (int(before.id),))
        _log.warning("Stale write on due %s (version %s)", before.id, before.version)
        raise StaleDueState(int(before.id), before.version, current["version"] if current else None)
    written = replace(after, version=before.version + 1)
    sync_sale_from_due(conn, written)
    return written


def sync_sale_from_due(conn, due: Due) -> None:
    """
    A sale paid on credit has paid_amount = total - remaining of its due. Recompute
    the sale header from the due whenever the due's amounts change.
    """
    if due.sale_id is None or due.status == DueStatus.CANCELLED.value:
        return
    s = q1(conn, "SELECT total_amount, status FROM sales WHERE id=?", (int(due.sale_id),))
    if s is None or s["status"] == SaleStatus.CANCELLED.value:
        return
    total = to_money(s["total_amount"])
    paid = ledger.remaining_of(total, due.remaining_amount)
    fully = paid >= total
    status = SaleStatus.COMPLETED.value if fully else SaleStatus.ACTIVE.value
    x(
        conn,
        "UPDATE sales SET paid_amount=?, is_fully_paid=?, status=? WHERE id=?",
        (paid, 1 if fully else 0, status, int(due.sale_id)),
        commit=False,
    )


def load_authoritative(conn, due_id: int, today: Optional[date] = None) -> tuple[Due, Due]:
    """
    Return (stored row, recomputed from payment history). The second one is the
    ledger truth; the first one carries the version used for the guarded write.
    """
    stored = get_due(conn, due_id)
    return stored, ledger.recompute(stored, payment_amounts(conn, due_id), today)


# -------------------------
# Public operations
# -------------------------

def create_due(
    conn,
    actor: ActorContext,
    *,
    due_type: str,
    owner_id: int,
    total_amount: NumberLike,
    paid_amount: NumberLike = 0,
    due_date: Optional[str] = None,
    category: str = "other",
    description: Optional[str] = None,
    today: Optional[date] = None,
) -> Due:
    due = ledger.open_due(
        due_type=due_type,
        owner_id=owner_id,
        total_amount=total_amount,
        advance_paid=paid_amount,
        due_date=iso_date(due_date),
        category=category,
        today=today,
        branch_id=int(actor.branch_id),
        description=(description or "").strip() or None,
    )
    with transaction(conn):
        return insert_due(conn, due)


def edit_due(
    conn,
    actor: ActorContext,
    due_id: int,
    *,
    admin_password: Optional[str],
    total_amount: Optional[NumberLike] = None,
    due_date: Optional[str] = None,
    description: Optional[str] = None,
    expected_total: Optional[NumberLike] = None,
    today: Optional[date] = None,
) -> Due:
    require_confirmation(admin_password, "edit a due")
    with transaction(conn):
        stored, due = load_authoritative(conn, due_id, today)
        if expected_total is not None and to_money(expected_total) != stored.total_amount:
            raise StaleDueState(stored.id, to_money(expected_total), stored.total_amount)

        if due_date is not None:
            due = replace(due, due_date=iso_date(due_date))
        if description is not None:
            due = replace(due, description=description.strip() or None)
        if total_amount is not None and to_money(total_amount) != due.total_amount:
            due = ledger.edit_total(due, total_amount, today)
        else:
            due = ledger.refresh(due, today)

        written = write_due(conn, stored, due)
    _log.info("Due %s edited by user %s: total=%s status=%s", due_id, actor.user_id, written.total_amount, written.status)
    return written


def cancel_due(conn, actor: ActorContext, due_id: int, *, admin_password: Optional[str]) -> Due:
    require_confirmation(admin_password, "cancel a due")
    with transaction(conn):
        stored = get_due(conn, due_id)
        if stored.status == DueStatus.CANCELLED.value:
            return stored
        written = write_due(conn, stored, ledger.cancel(stored))
    _log.info("Due %s cancelled by user %s (remaining %s)", due_id, actor.user_id, written.remaining_amount)
    return written


def refresh_overdue(conn, today: Optional[date] = None) -> int:
    """Re-evaluate open dues against `today`; returns how many changed status."""
    changed = 0
    with transaction(conn):
        rows = q(conn, "SELECT * FROM dues WHERE status IN ('pending', 'partial', 'overdue')")
        for r in rows:
            stored = Due.from_row(r)
            fresh = ledger.refresh(stored, today)
            if fresh.status != stored.status:
                write_due(conn, stored, fresh)
                changed += 1
    if changed:
        _log.info("Overdue sweep updated %d due(s)", changed)
    return changed
