from datetime import date
from decimal import Decimal

from retail_core.models import Customer, Due, Payment, Product, Sale, SaleItem
from retail_core.services.analytics import (
    TimeRange,
    build_dashboard,
    customer_summaries,
    customer_summary_frame,
    in_range,
    load_dashboard,
    monthly_trend,
    monthly_trend_frame,
    payments_by_due_type,
    payments_by_method,
    product_breakdown,
    product_breakdown_frame,
    product_stock_data,
    range_cutoff,
    sales_totals,
)
from retail_core.services.payments import apply_payment
from retail_core.services.sales import cancel_sale, confirm_sale
from retail_core.services.cart import CartLine

TODAY = date(2024, 6, 15)


def _sale(id, customer_id, total, paid, sale_date="2024-06-10", status="completed", profit="0", items=()):
    total, paid = Decimal(total), Decimal(paid)
    return Sale(
        id=id,
        customer_id=customer_id,
        branch_id=1,
        sale_date=sale_date,
        total_amount=total,
        paid_amount=paid,
        discount=Decimal("0"),
        profit=Decimal(profit),
        is_fully_paid=paid >= total,
        status=status,
        items=list(items),
    )


def _payment(id, due_id, amount, payment_date, method="cash", due_type="customer"):
    return Payment(
        id=id, due_id=due_id, amount=Decimal(amount), payment_date=payment_date,
        payment_method=method, description="p", due_type=due_type,
    )


def test_time_range_cutoffs():
    assert range_cutoff("all", TODAY) is None
    assert range_cutoff(TimeRange.LAST30, TODAY) == date(2024, 5, 16)
    assert range_cutoff("thisMonth", TODAY) == date(2024, 6, 1)
    assert in_range("2024-05-16", "last30", TODAY)
    assert not in_range("2024-05-15", "last30", TODAY)
    assert not in_range(None, "thisMonth", TODAY)


def test_customer_without_sales_is_listed_with_zeros():
    customers = [Customer(id=1, name="Ali"), Customer(id=2, name="Sara")]
    rows = customer_summaries(customers, [_sale(10, 1, "200", "50")], [])
    by_id = {r.customer_id: r for r in rows}
    assert by_id[2].net_balance == Decimal("0.00")
    assert by_id[2].total_due_amount == Decimal("0.00")
    assert by_id[1].net_balance == Decimal("150.00")


def test_remaining_dues_skip_paid_and_cancelled():
    customers = [Customer(id=1, name="Ali")]
    sales = [_sale(10, 1, "200", "50")]
    dues = [
        Due(id=1, due_type="customer", owner_id=1, total_amount=Decimal("150"), remaining_amount=Decimal("150"), sale_id=10, status="pending"),
        Due(id=2, due_type="customer", owner_id=1, total_amount=Decimal("80"), remaining_amount=Decimal("30"), status="partial"),
        Due(id=3, due_type="customer", owner_id=1, total_amount=Decimal("70"), remaining_amount=Decimal("70"), status="cancelled"),
        Due(id=4, due_type="supplier", owner_id=1, total_amount=Decimal("90"), remaining_amount=Decimal("90"), status="pending"),
    ]
    (row,) = customer_summaries(customers, sales, dues)
    assert row.total_remaining_dues_amount == Decimal("180.00")


def test_sales_totals_exclude_cancelled_and_guard_division():
    empty = sales_totals([], "all", TODAY)
    assert (empty.count, empty.profit_margin, empty.collection_rate) == (0, Decimal("0.00"), Decimal("0.00"))

    sales = [
        _sale(1, None, "200", "200", profit="50"),
        _sale(2, 1, "300", "100", profit="60"),
        _sale(3, 1, "999", "0", status="cancelled"),
        _sale(4, 1, "100", "100", sale_date="2024-01-01", profit="10"),
    ]
    t = sales_totals(sales, "thisMonth", TODAY)
    assert (t.count, t.amount, t.paid, t.profit) == (2, Decimal("500.00"), Decimal("300.00"), Decimal("110.00"))
    assert (t.fully_paid_count, t.partially_paid_count) == (1, 1)
    assert t.profit_margin == Decimal("22.00")
    assert t.collection_rate == Decimal("60.00")


def test_monthly_trend_keeps_empty_buckets():
    payments = [
        _payment(1, 1, "100", "2024-06-02"),
        _payment(2, 1, "50", "2024-06-20"),
        _payment(3, 1, "25", "2024-03-05"),
        _payment(4, 1, "999", "2023-12-31"),
    ]
    trend = monthly_trend(payments, TODAY)
    assert [b["month"] for b in trend] == ["2024-01", "2024-02", "2024-03", "2024-04", "2024-05", "2024-06"]
    amounts = {b["month"]: b["amount"] for b in trend}
    assert amounts["2024-04"] == Decimal("0.00")
    assert amounts["2024-03"] == Decimal("25.00")
    assert amounts["2024-06"] == Decimal("150.00")

    df = monthly_trend_frame(trend)
    assert list(df.index) == [b["month"] for b in trend]
    assert df.loc["2024-06", "amount"] == 150.0


def test_dashboard_trend_follows_time_range():
    payments = [_payment(1, 1, "100", "2024-03-05"), _payment(2, 1, "40", "2024-06-03")]

    this_month = {b["month"]: b["amount"] for b in build_dashboard(payments=payments, time_range="thisMonth", today=TODAY).monthly_due_payments}
    assert len(this_month) == 6
    assert this_month["2024-03"] == Decimal("0.00")
    assert this_month["2024-06"] == Decimal("40.00")

    everything = {b["month"]: b["amount"] for b in build_dashboard(payments=payments, today=TODAY).monthly_due_payments}
    assert everything["2024-03"] == Decimal("100.00")


def test_payment_counts_by_type_and_method():
    payments = [
        _payment(1, 1, "10", "2024-06-01", "cash", "customer"),
        _payment(2, 2, "10", "2024-06-02", "cheque", "supplier"),
        _payment(3, 3, "10", "2024-06-03", "cash", None),
        _payment(4, 2, "10", "2023-01-01", "cash", "supplier"),
    ]
    dues = [Due(id=3, due_type="branch", owner_id=2, total_amount=Decimal("10"))]
    assert payments_by_due_type(payments, dues, "last30", TODAY) == {"customer": 1, "supplier": 1, "branch": 1}
    assert payments_by_method(payments, "all", TODAY) == {"cash": 3, "cheque": 1}


def test_product_breakdown_sorted_by_quantity():
    items_a = [SaleItem(product_id=1, quantity=2, unit_price=Decimal("100"), unit_cost=Decimal("60"))]
    items_b = [
        SaleItem(product_id=2, quantity=5, unit_price=Decimal("50"), unit_cost=Decimal("30")),
        SaleItem(product_id=1, quantity=1, unit_price=Decimal("100"), unit_cost=Decimal("60")),
    ]
    sales = [_sale(1, None, "200", "200", items=items_a), _sale(2, None, "350", "350", items=items_b)]
    products = [
        Product(id=1, name="Cotton Lawn", quantity=3, purchase_price=Decimal("60"), sale_price=Decimal("100")),
        Product(id=2, name="Linen Blend Premium Wide", quantity=0, purchase_price=Decimal("30"), sale_price=Decimal("50")),
    ]
    rows = product_breakdown(sales, products, "all", TODAY)
    assert [(r.product_id, r.quantity_sold) for r in rows] == [(2, 5), (1, 3)]
    assert rows[1].revenue == Decimal("300.00")
    assert rows[1].profit == Decimal("120.00")

    df = product_breakdown_frame(rows)
    assert list(df["product_name"]) == ["Linen Blend Premium Wide", "Cotton Lawn"]

    stock = product_stock_data(products)
    assert stock[1]["name"] == "Linen Blend Pre..."
    assert stock[0]["name"] == "Cotton Lawn"


def test_build_dashboard_latest_dates_and_empty_inputs():
    a = build_dashboard(today=TODAY)
    assert a.most_selling_product is None
    assert a.latest_sale_date is None
    assert len(a.monthly_due_payments) == 6
    assert customer_summary_frame(a.customer_due_summary).empty

    sales = [_sale(1, None, "10", "10", sale_date="2024-06-01"), _sale(2, None, "10", "10", sale_date="2024-06-12")]
    payments = [_payment(1, 1, "5", "2024-06-14")]
    a = build_dashboard(sales=sales, payments=payments, today=TODAY)
    assert a.latest_sale_date == "2024-06-12"
    assert a.latest_due_payment_date == "2024-06-14"


def test_load_dashboard_from_database(conn, actor, customer, product_a, product_b, today):
    res = confirm_sale(
        conn,
        actor,
        [CartLine(product_id=product_a.id, quantity=2, unit_price=Decimal("100"))],
        customer_id=customer.id,
        paid_amount=50,
        sale_date="2024-06-10",
        today=today,
    )
    apply_payment(conn, actor, res.due, "50", description="part", payment_date="2024-06-12", today=today)
    dropped = confirm_sale(
        conn,
        actor,
        [CartLine(product_id=product_b.id, quantity=1, unit_price=Decimal("50"))],
        customer_id=None,
        paid_amount=50,
        sale_date="2024-06-11",
        today=today,
    )
    cancel_sale(conn, actor, dropped.sale.id, admin_password="secret")

    a = load_dashboard(conn, branch_id=actor.branch_id, time_range="thisMonth", today=today)
    assert a.sales.count == 1
    assert a.sales.amount == Decimal("200.00")
    assert a.sales.paid == Decimal("100.00")
    assert a.total_remaining_customer_dues == Decimal("100.00")
    assert a.due_payments_by_type["customer"] == 1
    assert a.most_selling_product.product_name == "Cotton Lawn"
    assert a.latest_sale_date == "2024-06-10"
    (row,) = a.customer_due_summary
    assert row.net_balance == Decimal("100.00")
