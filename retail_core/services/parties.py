from __future__ import annotations

from typing import Optional

from retail_core.db import q, q1, x
from retail_core.errors import NotFound
from retail_core.models import ActorContext, Customer

PARTY_STATUSES = ("active", "inactive", "archived")


def _clean_name(name: Optional[str]) -> str:
    s = (name or "").strip()
    if len(s) < 2:
        raise ValueError("Name must be at least 2 characters.")
    return s


def create_branch(conn, *, name: str, city: Optional[str] = None, is_main_branch: bool = False) -> int:
    return x(
        conn,
        "INSERT INTO branches (name, city, is_main_branch) VALUES (?, ?, ?)",
        (_clean_name(name), city, 1 if is_main_branch else 0),
    )


def list_branches(conn):
    return q(conn, "SELECT * FROM branches ORDER BY name")


def get_branch_name(conn, branch_id: int) -> str:
    r = q1(conn, "SELECT name FROM branches WHERE id=?", (int(branch_id),))
    if r is None:
        raise NotFound("branch", branch_id)
    return str(r["name"])


def create_customer(
    conn,
    actor: ActorContext,
    *,
    name: str,
    phone: Optional[str] = None,
    status: str = "active",
) -> Customer:
    if status not in PARTY_STATUSES:
        raise ValueError(f"Invalid customer status '{status}'.")
    customer_id = x(
        conn,
        "INSERT INTO customers (branch_id, name, phone, status) VALUES (?, ?, ?, ?)",
        (int(actor.branch_id), _clean_name(name), (phone or "").strip() or None, status),
    )
    return get_customer(conn, customer_id)


def get_customer(conn, customer_id: int) -> Customer:
    r = q1(conn, "SELECT * FROM customers WHERE id=?", (int(customer_id),))
    if r is None:
        raise NotFound("customer", customer_id)
    return Customer.from_row(r)


def list_customers(conn, *, branch_id: Optional[int] = None, include_archived: bool = True) -> list[Customer]:
    where, params = ["1=1"], []
    if branch_id is not None:
        where.append("branch_id=?")
        params.append(int(branch_id))
    if not include_archived:
        where.append("status <> 'archived'")
    rows = q(conn, f"SELECT * FROM customers WHERE {' AND '.join(where)} ORDER BY name", params)
    return [Customer.from_row(r) for r in rows]


def create_supplier(conn, actor: ActorContext, *, name: str, phone: Optional[str] = None) -> int:
    return x(
        conn,
        "INSERT INTO suppliers (branch_id, name, phone) VALUES (?, ?, ?)",
        (int(actor.branch_id), _clean_name(name), (phone or "").strip() or None),
    )


def list_suppliers(conn, *, branch_id: Optional[int] = None):
    if branch_id is None:
        return q(conn, "SELECT * FROM suppliers ORDER BY name")
    return q(conn, "SELECT * FROM suppliers WHERE branch_id=? ORDER BY name", (int(branch_id),))


def owner_name(conn, due_type: str, owner_id: int) -> str:
    table = {"customer": "customers", "supplier": "suppliers", "branch": "branches"}.get(due_type)
    if table is None:
        raise ValueError(f"Invalid due type '{due_type}'.")
    r = q1(conn, f"SELECT name FROM {table} WHERE id=?", (int(owner_id),))
    return str(r["name"]) if r else f"{due_type} #{owner_id}"
