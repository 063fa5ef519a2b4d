# tests/conftest.py
# ---------------------------------------------------------------------
# - Every test gets its own SQLite file under tmp_path (schema applied)
# - conn.row_factory = sqlite3.Row, PRAGMA foreign_keys=ON (see db._connect)
# - Handy fixtures: branch, actor, customer, supplier, products
# - TODAY is fixed so overdue / time-range logic is deterministic
# ---------------------------------------------------------------------
from __future__ import annotations

from datetime import date

import pytest

from retail_core.db import connect
from retail_core.models import ActorContext
from retail_core.services.parties import create_branch, create_customer, create_supplier
from retail_core.services.stock import create_product

TODAY = date(2024, 6, 15)


@pytest.fixture()
def today() -> date:
    return TODAY


@pytest.fixture()
def conn(tmp_path):
    con = connect(tmp_path / "test.db")
    try:
        yield con
    finally:
        con.close()


@pytest.fixture()
def branch_id(conn) -> int:
    return create_branch(conn, name="Main Branch", city="Lahore", is_main_branch=True)


@pytest.fixture()
def other_branch_id(conn) -> int:
    return create_branch(conn, name="Branch B", city="Karachi")


@pytest.fixture()
def actor(branch_id) -> ActorContext:
    return ActorContext(user_id=7, branch_id=branch_id)


@pytest.fixture()
def customer(conn, actor):
    return create_customer(conn, actor, name="Ali Traders", phone="0300-1111111")


@pytest.fixture()
def supplier_id(conn, actor) -> int:
    return create_supplier(conn, actor, name="Textile Mills")


@pytest.fixture()
def product_a(conn, actor):
    return create_product(conn, actor, name="Cotton Lawn", quantity=10, purchase_price="60", sale_price="100")


@pytest.fixture()
def product_b(conn, actor):
    return create_product(conn, actor, name="Khaddar", quantity=5, purchase_price="30", sale_price="50")
