from __future__ import annotations

import random
from datetime import date, timedelta
from typing import Optional

from retail_core.db import ensure_schema, q, transaction, x, xc
from retail_core.models import ActorContext
from retail_core.services.cart import CartLine
from retail_core.services.parties import create_customer, create_supplier
from retail_core.services.payments import apply_payment
from retail_core.services.sales import confirm_sale
from retail_core.services.stock import create_product, list_products, record_stock_movement


DEFAULT_BRANCHES = [("Main Branch", "Lahore", 1), ("Branch B", "Karachi", 0)]
DEMO_CUSTOMERS = [("Ali Traders", "0300-1111111"), ("Sara Fabrics", "0301-2222222"), ("Bilal & Sons", None)]
DEMO_SUPPLIERS = [("Textile Mills Ltd", "042-3333333")]
DEMO_PRODUCTS = [
    # name, company, qty, purchase price, sale price
    ("Cotton Lawn", "Gul Ahmed", 400, "180.00", "250.00"),
    ("Khaddar", "Khaadi", 250, "220.00", "300.00"),
    ("Chiffon", "Sapphire", 120, "350.00", "480.00"),
    ("Linen Blend Premium", "Alkaram", 80, "400.00", "560.00"),
]


def upsert_reference_data(conn) -> None:
    ensure_schema(conn)

    for name, city, is_main in DEFAULT_BRANCHES:
        x(
            conn,
            "INSERT OR IGNORE INTO branches(name, city, is_main_branch) VALUES (?, ?, ?)",
            (name, city, int(is_main)),
        )


def wipe_all(conn) -> None:
    # Keep schema, delete data (order matters for FKs).
    with transaction(conn):
        for t in ["payments", "dues", "stock_movements", "sale_items", "sales", "products", "suppliers", "customers", "branches"]:
            xc(conn, f"DELETE FROM {t};")


def load_demo_data(conn, *, seed: int = 7, today: Optional[date] = None) -> None:
    random.seed(seed)
    today = today or date.today()
    upsert_reference_data(conn)

    branch = q(conn, "SELECT * FROM branches ORDER BY is_main_branch DESC, id LIMIT 1")[0]
    actor = ActorContext(user_id=1, branch_id=int(branch["id"]))

    customers = [create_customer(conn, actor, name=n, phone=p) for n, p in DEMO_CUSTOMERS]
    supplier_id = create_supplier(conn, actor, name=DEMO_SUPPLIERS[0][0], phone=DEMO_SUPPLIERS[0][1])
    for name, company, qty, cost, price in DEMO_PRODUCTS:
        create_product(conn, actor, name=name, company=company, quantity=qty, purchase_price=cost, sale_price=price)

    # One credit purchase -> supplier due
    products = list_products(conn, branch_id=actor.branch_id)
    record_stock_movement(
        conn,
        actor,
        product_id=products[0].id,
        movement_type="arrival",
        quantity=100,
        unit_price=products[0].purchase_price,
        paid_amount="5000",
        supplier_id=supplier_id,
        movement_date=(today - timedelta(days=40)).isoformat(),
        due_date=(today + timedelta(days=20)).isoformat(),
        notes="Demo arrival",
        today=today,
    )

    # Sales spread over the last ~5 months, some on credit
    for i in range(10):
        products = list_products(conn, branch_id=actor.branch_id)
        picks = random.sample(products, k=random.randint(1, 3))
        lines = [CartLine(product_id=p.id, quantity=random.randint(1, 6), unit_price=p.sale_price) for p in picks]
        gross = sum(l.amount for l in lines)
        customer = random.choice(customers)
        paid = gross if i % 3 == 0 else (gross / 2).quantize(gross)
        sold_on = today - timedelta(days=random.randint(0, 150))

        result = confirm_sale(
            conn,
            actor,
            lines,
            customer_id=customer.id,
            paid_amount=paid,
            sale_date=sold_on.isoformat(),
            due_date=(sold_on + timedelta(days=30)).isoformat(),
            admin_password="demo",
            today=today,
        )
        if result.due is not None and i % 2 == 0:
            pay_on = min(today, sold_on + timedelta(days=random.randint(1, 20)))
            apply_payment(
                conn,
                actor,
                result.due,
                (result.due.remaining_amount / 2).quantize(result.due.remaining_amount),
                payment_method=random.choice(["cash", "bank_transfer", "digital_wallet"]),
                description="Installment",
                payment_date=pay_on.isoformat(),
                today=today,
            )
