from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from retail_core.db import q, q1, transaction, x, xc
from retail_core.errors import InsufficientStock, InvalidQuantity, NotFound, OverpaymentRejected
from retail_core.models import ActorContext, Product
from retail_core.money import NumberLike, line_amount, non_negative, to_money, to_quantity
from retail_core.services import ledger
from retail_core.services.dues import insert_due
from retail_core.utils import iso_date, iso_now, iso_today

_log = logging.getLogger(__name__)

MOVEMENT_TYPES = ("arrival", "dispatch", "transfer_in", "transfer_out", "adjustment")
PRODUCT_STATUSES = ("active", "in-active", "out_of_stock", "archived")


@dataclass
class MovementResult:
    movement_id: int
    product_id: int
    quantity_on_hand: int
    due_id: Optional[int] = None


# -------------------------
# Products
# -------------------------

def get_product(conn, product_id: int) -> Product:
    r = q1(conn, "SELECT * FROM products WHERE id=?", (int(product_id),))
    if r is None:
        raise NotFound("product", product_id)
    return Product.from_row(r)


def list_products(conn, *, branch_id: Optional[int] = None, include_archived: bool = False) -> list[Product]:
    where, params = ["1=1"], []
    if branch_id is not None:
        where.append("branch_id=?")
        params.append(int(branch_id))
    if not include_archived:
        where.append("status <> 'archived'")
    rows = q(conn, f"SELECT * FROM products WHERE {' AND '.join(where)} ORDER BY name", params)
    return [Product.from_row(r) for r in rows]


def create_product(
    conn,
    actor: ActorContext,
    *,
    name: str,
    quantity: int = 0,
    purchase_price: NumberLike = 0,
    sale_price: NumberLike = 0,
    company: Optional[str] = None,
    status: str = "active",
) -> Product:
    name = (name or "").strip()
    if len(name) < 2:
        raise ValueError("Product name must be at least 2 characters.")
    if status not in PRODUCT_STATUSES:
        raise ValueError(f"Invalid product status '{status}'.")
    qty = to_quantity(quantity)
    cost, price = to_money(purchase_price), to_money(sale_price)
    if cost < 0 or price < 0:
        raise ValueError("Prices cannot be negative.")
    if price < cost:
        raise ValueError("Sales price should be greater than or equal to purchase price.")

    product_id = x(
        conn,
        """
        INSERT INTO products (branch_id, name, company, quantity, purchase_price, sale_price, status)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (int(actor.branch_id), name, company, qty, cost, price, status),
    )
    return get_product(conn, product_id)


# -------------------------
# Guard
# -------------------------

def ensure_available(product: Product, requested: int) -> None:
    """Reject (never clamp) a request for more units than are on hand."""
    if int(requested) < 1:
        raise InvalidQuantity("Quantity must be at least 1.")
    if int(requested) > int(product.quantity):
        raise InsufficientStock(product.id, int(requested), int(product.quantity), product.name)


def _quantities_by_product(pairs: Iterable[tuple[int, int]]) -> "OrderedDict[int, int]":
    wanted: OrderedDict[int, int] = OrderedDict()
    for product_id, qty in pairs:
        wanted[int(product_id)] = wanted.get(int(product_id), 0) + int(qty)
    return wanted


def _sync_status(conn, product_id: int) -> None:
    """Flip active <-> out_of_stock to match on-hand quantity; other statuses are left alone."""
    xc(
        conn,
        "UPDATE products SET status='out_of_stock' WHERE id=? AND quantity=0 AND status='active'",
        (int(product_id),),
    )
    xc(
        conn,
        "UPDATE products SET status='active' WHERE id=? AND quantity>0 AND status='out_of_stock'",
        (int(product_id),),
    )


def _take(conn, product_id: int, qty: int) -> None:
    n = xc(
        conn,
        "UPDATE products SET quantity = quantity - ? WHERE id=? AND quantity >= ?",
        (int(qty), int(product_id), int(qty)),
    )
    if n != 1:
        r = q1(conn, "SELECT name, quantity FROM products WHERE id=?", (int(product_id),))
        if r is None:
            raise NotFound("product", product_id)
        _log.warning("Stock take of %s on product %s rejected: %s on hand", qty, product_id, r["quantity"])
        raise InsufficientStock(int(product_id), int(qty), int(r["quantity"]), str(r["name"]))
    _sync_status(conn, product_id)


def _put_back(conn, product_id: int, qty: int) -> None:
    xc(conn, "UPDATE products SET quantity = quantity + ? WHERE id=?", (int(qty), int(product_id)))
    _sync_status(conn, product_id)


def commit_sale_stock(conn, lines: Iterable) -> None:
    """
    Decrement on-hand stock for every line of one sale. Must run inside the
    caller's transaction: the first shortfall raises and the whole sale rolls back.
    """
    for product_id, qty in _quantities_by_product((l.product_id, l.quantity) for l in lines).items():
        _take(conn, product_id, qty)


def restore_sale_stock(conn, sale_id: int) -> int:
    """Put every item of `sale_id` back on its product. Returns units restored."""
    items = q(conn, "SELECT product_id, quantity FROM sale_items WHERE sale_id=?", (int(sale_id),))
    restored = 0
    for product_id, qty in _quantities_by_product((r["product_id"], r["quantity"]) for r in items).items():
        _put_back(conn, product_id, qty)
        restored += qty
    return restored


# -------------------------
# Stock movements
# -------------------------

def record_stock_movement(
    conn,
    actor: ActorContext,
    *,
    product_id: int,
    movement_type: str,
    quantity: int,
    unit_price: NumberLike = 0,
    paid_amount: NumberLike = 0,
    supplier_id: Optional[int] = None,
    reference_branch_id: Optional[int] = None,
    movement_date: Optional[str] = None,
    due_date: Optional[str] = None,
    notes: Optional[str] = None,
    auto_update_product: bool = True,
    today: Optional[date] = None,
) -> MovementResult:
    """
    Apply a stock movement and, for inbound stock bought on credit, open the
    matching due: arrivals owe the supplier, transfers in owe the sending branch.
    """
    if movement_type not in MOVEMENT_TYPES:
        raise ValueError(f"Invalid movement type '{movement_type}'.")
    qty = to_quantity(quantity)
    if qty < 1 and movement_type != "adjustment":
        raise InvalidQuantity("Quantity must be at least 1.")
    if movement_type == "arrival" and not supplier_id:
        raise ValueError("Supplier is required for stock arrivals.")
    if movement_type in ("transfer_in", "transfer_out") and not reference_branch_id:
        raise ValueError("Reference branch is required for transfers.")

    price = to_money(unit_price)
    if price < 0:
        raise ValueError("Unit price cannot be negative.")
    total = line_amount(qty, price)
    paid = to_money(paid_amount)
    if paid < 0:
        raise ValueError("Paid amount cannot be negative.")
    if paid > total:
        raise OverpaymentRejected(paid, total, "Paid amount cannot exceed total amount.")

    moved_on = iso_date(movement_date) or iso_today()

    with transaction(conn):
        product = get_product(conn, product_id)

        if auto_update_product:
            if movement_type in ("arrival", "transfer_in"):
                _put_back(conn, product.id, qty)
            elif movement_type in ("dispatch", "transfer_out"):
                ensure_available(product, qty)
                _take(conn, product.id, qty)
            else:
                xc(conn, "UPDATE products SET quantity=? WHERE id=?", (qty, product.id))
                _sync_status(conn, product.id)

        movement_id = x(
            conn,
            """
            INSERT INTO stock_movements (
                branch_id, user_id, product_id, movement_type, supplier_id, reference_branch_id,
                quantity, unit_price, total_amount, paid_amount, movement_date, notes, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                int(actor.branch_id),
                actor.user_id,
                product.id,
                movement_type,
                supplier_id,
                reference_branch_id,
                qty,
                price,
                total,
                paid,
                moved_on,
                notes,
                iso_now(),
            ),
            commit=False,
        )

        due_id = None
        unpaid = non_negative(total - paid)
        if unpaid > 0 and movement_type in ("arrival", "transfer_in"):
            owner_type, owner_id, category = (
                ("supplier", supplier_id, "purchase")
                if movement_type == "arrival"
                else ("branch", reference_branch_id, "transfer")
            )
            due = ledger.open_due(
                due_type=owner_type,
                owner_id=int(owner_id),
                total_amount=unpaid,
                due_date=iso_date(due_date),
                category=category,
                today=today,
                branch_id=int(actor.branch_id),
                stock_movement_id=int(movement_id),
                description=f"{movement_type} of {qty} x {product.name}",
            )
            due_id = insert_due(conn, due).id

        on_hand = int(get_product(conn, product.id).quantity)

    _log.info(
        "Stock %s: product=%s qty=%s on_hand=%s due=%s", movement_type, product.id, qty, on_hand, due_id
    )
    return MovementResult(movement_id=int(movement_id), product_id=product.id, quantity_on_hand=on_hand, due_id=due_id)


def inventory_summary(conn, *, branch_id: Optional[int] = None) -> list[dict]:
    rows = []
    for p in list_products(conn, branch_id=branch_id):
        rows.append(
            {
                "product_id": p.id,
                "name": p.name,
                "status": p.status,
                "quantity": p.quantity,
                "purchase_price": p.purchase_price,
                "sale_price": p.sale_price,
                "stock_value": line_amount(p.quantity, p.sale_price),
            }
        )
    return rows
