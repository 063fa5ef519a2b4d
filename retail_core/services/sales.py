from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from retail_core.db import q, q1, transaction, x
from retail_core.errors import InvalidPaymentAmount, NotFound, OverpaymentRejected, RetailCoreError
from retail_core.models import ActorContext, Due, DueStatus, Sale, SaleItem, SaleStatus
from retail_core.money import NumberLike, to_money
from retail_core.services import ledger
from retail_core.services.cart import CartLine, CartTotals, compute_totals
from retail_core.services.confirmation import require_confirmation
from retail_core.services.dues import due_for_sale, insert_due, write_due
from retail_core.services.stock import commit_sale_stock, get_product, restore_sale_stock
from retail_core.utils import iso_date, iso_now, iso_today

_log = logging.getLogger(__name__)

DEFAULT_LARGE_CREDIT_THRESHOLD = Decimal("1000.00")


@dataclass
class SaleResult:
    sale: Sale
    totals: CartTotals
    due: Optional[Due] = None


def _normalize_customer(conn, customer_id: Optional[int]) -> Optional[int]:
    if customer_id in (None, "", 0):
        return None
    r = q1(conn, "SELECT id FROM customers WHERE id=?", (int(customer_id),))
    if r is None:
        raise NotFound("customer", customer_id)
    return int(r["id"])


def _priced_lines(conn, lines: Iterable) -> list[CartLine]:
    """
    Rebuild the cart from the database: cost always comes from the product's
    current purchase price, whatever the caller sent.
    """
    out: list[CartLine] = []
    for l in lines:
        product = get_product(conn, int(l.product_id))
        out.append(
            CartLine(
                product_id=product.id,
                quantity=int(l.quantity),
                unit_price=to_money(l.unit_price),
                unit_cost=product.purchase_price,
                name=product.name,
            )
        )
    return out


def preview_sale(conn, lines: Iterable, *, discount: NumberLike = 0, paid_amount: NumberLike = 0) -> CartTotals:
    return compute_totals(_priced_lines(conn, lines), discount, paid_amount)


def confirm_sale(
    conn,
    actor: ActorContext,
    lines: Iterable,
    *,
    customer_id: Optional[int],
    paid_amount: NumberLike = 0,
    discount: NumberLike = 0,
    sale_date: Optional[str] = None,
    note: Optional[str] = None,
    due_date: Optional[str] = None,
    admin_password: Optional[str] = None,
    large_credit_threshold: NumberLike = DEFAULT_LARGE_CREDIT_THRESHOLD,
    today: Optional[date] = None,
) -> SaleResult:
    """
    Persist a checkout. Totals and profit are recomputed here from the lines and
    stored product costs; stock is taken for every line or for none.

    Any unpaid remainder of a customer sale becomes a customer due linked to the
    sale. Walk-in sales (no customer) must be paid in full.
    """
    lines = list(lines)
    if not lines:
        raise RetailCoreError("At least one item is required.")

    with transaction(conn):
        customer = _normalize_customer(conn, customer_id)
        priced = _priced_lines(conn, lines)
        totals = compute_totals(priced, discount, paid_amount)

        if totals.paid_amount > totals.total:
            raise OverpaymentRejected(
                totals.paid_amount, totals.total, "Paid amount cannot be greater than total amount."
            )
        if customer is None and not totals.is_fully_paid:
            raise InvalidPaymentAmount(
                totals.paid_amount, totals.total, "Walk-in sales must be paid in full; select a customer for credit."
            )
        if totals.total > to_money(large_credit_threshold) and not totals.is_fully_paid:
            require_confirmation(admin_password, "confirm a large credit sale")

        commit_sale_stock(conn, priced)

        status = SaleStatus.COMPLETED.value if totals.is_fully_paid else SaleStatus.ACTIVE.value
        sold_on = iso_date(sale_date) or iso_today()
        sale_id = x(
            conn,
            """
            INSERT INTO sales (
                customer_id, branch_id, user_id, sale_date,
                discount, total_amount, paid_amount, profit,
                is_fully_paid, status, note, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                customer,
                int(actor.branch_id),
                actor.user_id,
                sold_on,
                totals.discount,
                totals.total,
                totals.paid_amount,
                totals.profit,
                1 if totals.is_fully_paid else 0,
                status,
                (note or "").strip() or None,
                iso_now(),
            ),
            commit=False,
        )

        for l in priced:
            x(
                conn,
                "INSERT INTO sale_items (sale_id, product_id, quantity, unit_price, unit_cost) VALUES (?, ?, ?, ?, ?)",
                (int(sale_id), l.product_id, l.quantity, l.unit_price, l.unit_cost),
                commit=False,
            )

        due = None
        if totals.remaining > 0:
            due = insert_due(
                conn,
                ledger.open_due(
                    due_type="customer",
                    owner_id=int(customer),
                    total_amount=totals.remaining,
                    due_date=iso_date(due_date),
                    category="sale",
                    today=today,
                    branch_id=int(actor.branch_id),
                    sale_id=int(sale_id),
                    description=f"Balance of sale #{sale_id}",
                ),
            )

        sale = get_sale(conn, sale_id)

    _log.info(
        "Sale %s confirmed by user %s: total=%s paid=%s profit=%s due=%s",
        sale.id, actor.user_id, sale.total_amount, sale.paid_amount, sale.profit, due.id if due else None,
    )
    return SaleResult(sale=sale, totals=totals, due=due)


def cancel_sale(conn, actor: ActorContext, sale_id: int, *, admin_password: Optional[str]) -> Sale:
    """
    Soft-cancel: restore stock, mark the sale cancelled and close its unpaid due.
    Cancelling a cancelled sale changes nothing.
    """
    require_confirmation(admin_password, "cancel a sale")
    with transaction(conn):
        sale = get_sale(conn, sale_id, with_items=False)
        if sale.is_cancelled:
            _log.info("Sale %s already cancelled; nothing to do", sale_id)
            return get_sale(conn, sale_id)

        restored = restore_sale_stock(conn, sale.id)
        x(
            conn,
            "UPDATE sales SET status=?, cancelled_at=? WHERE id=?",
            (SaleStatus.CANCELLED.value, iso_now(), sale.id),
            commit=False,
        )

        due = due_for_sale(conn, sale.id)
        if due is not None and due.status not in (DueStatus.PAID.value, DueStatus.CANCELLED.value):
            write_due(conn, due, ledger.cancel(due))

        cancelled = get_sale(conn, sale.id)

    _log.info("Sale %s cancelled by user %s; %d unit(s) restored", sale_id, actor.user_id, restored)
    return cancelled


# -------------------------
# Queries
# -------------------------

def list_sale_items(conn, sale_id: int) -> list[SaleItem]:
    rows = q(conn, "SELECT * FROM sale_items WHERE sale_id=? ORDER BY id", (int(sale_id),))
    return [SaleItem.from_row(r) for r in rows]


def get_sale(conn, sale_id: int, *, with_items: bool = True) -> Sale:
    r = q1(conn, "SELECT * FROM sales WHERE id=?", (int(sale_id),))
    if r is None:
        raise NotFound("sale", sale_id)
    return Sale.from_row(r, list_sale_items(conn, sale_id) if with_items else None)


def list_sales(
    conn,
    *,
    branch_id: Optional[int] = None,
    customer_id: Optional[int] = None,
    status: Optional[str] = None,
    with_items: bool = False,
) -> list[Sale]:
    where, params = ["1=1"], []
    if branch_id is not None:
        where.append("branch_id=?")
        params.append(int(branch_id))
    if customer_id is not None:
        where.append("customer_id=?")
        params.append(int(customer_id))
    if status:
        where.append("status=?")
        params.append(str(status))
    rows = q(conn, f"SELECT * FROM sales WHERE {' AND '.join(where)} ORDER BY sale_date DESC, id DESC", params)
    return [Sale.from_row(r, list_sale_items(conn, r["id"]) if with_items else None) for r in rows]
