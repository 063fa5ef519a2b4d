"""
Dashboard rollups over sales, dues and payments.

Everything here is a pure fold over the records passed in; nothing is stored.
The time-range filter applies to sales (by sale_date) and payments (by
payment_date), and the monthly trend is built from the filtered payments.
Customer balances are cumulative and ignore it.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional, Sequence, Union

import pandas as pd

from retail_core.models import Customer, Due, DueStatus, Payment, Product, Sale, SaleStatus
from retail_core.money import ZERO, line_amount, money_sum, percent, to_money
from retail_core.services.dues import list_dues
from retail_core.services.parties import list_customers
from retail_core.services.payments import list_payments
from retail_core.services.sales import list_sales
from retail_core.services.stock import list_products
from retail_core.utils import as_date, days_ago, month_key, trailing_month_keys

TREND_MONTHS = 6
STOCK_NAME_LIMIT = 15


class TimeRange(str, Enum):
    ALL = "all"
    LAST30 = "last30"
    THIS_MONTH = "thisMonth"


TimeRangeLike = Union[TimeRange, str]


@dataclass
class CustomerDueSummary:
    customer_id: int
    customer_name: str
    total_due_amount: Decimal = ZERO
    total_paid_amount: Decimal = ZERO
    net_balance: Decimal = ZERO
    total_remaining_dues_amount: Decimal = ZERO


@dataclass
class SalesTotals:
    count: int = 0
    amount: Decimal = ZERO
    paid: Decimal = ZERO
    discount: Decimal = ZERO
    profit: Decimal = ZERO
    fully_paid_count: int = 0
    partially_paid_count: int = 0
    profit_margin: Decimal = ZERO
    collection_rate: Decimal = ZERO


@dataclass
class ProductSales:
    product_id: int
    product_name: str
    quantity_sold: int = 0
    revenue: Decimal = ZERO
    profit: Decimal = ZERO


@dataclass
class DashboardAnalytics:
    time_range: str
    total_products: int
    total_inventory_value: Decimal
    product_stock_data: list[dict]
    product_sales_breakdown: list[ProductSales]
    most_selling_product: Optional[ProductSales]
    total_customers: int
    total_active_customers: int
    total_customer_dues: Decimal
    total_customer_payments: Decimal
    total_remaining_customer_dues: Decimal
    customer_due_summary: list[CustomerDueSummary]
    sales: SalesTotals
    due_payments_by_type: dict[str, int]
    payments_by_method: dict[str, int]
    monthly_due_payments: list[dict]
    latest_due_payment_date: Optional[str]
    latest_sale_date: Optional[str]


# -------------------------
# Time filter
# -------------------------

def range_cutoff(time_range: TimeRangeLike, today: Optional[date] = None) -> Optional[date]:
    today = today or date.today()
    tr = TimeRange(time_range)
    if tr is TimeRange.LAST30:
        return days_ago(today, 30)
    if tr is TimeRange.THIS_MONTH:
        return today.replace(day=1)
    return None


def in_range(value: Optional[str], time_range: TimeRangeLike, today: Optional[date] = None) -> bool:
    cutoff = range_cutoff(time_range, today)
    if cutoff is None:
        return True
    d = as_date(value)
    return d is not None and d >= cutoff


def _live_sales(sales: Iterable[Sale]) -> list[Sale]:
    # Cancelled sales keep their record but carry no financial effect.
    return [s for s in sales if s.status != SaleStatus.CANCELLED.value]


# -------------------------
# Rollups
# -------------------------

def customer_summaries(
    customers: Sequence[Customer],
    sales: Iterable[Sale],
    dues: Iterable[Due],
) -> list[CustomerDueSummary]:
    """
    One row per customer, including customers without sales (all zeros).
    Remaining dues count every open (not paid, not cancelled) customer due,
    whether it is linked through a sale or owned by the customer directly. A
    cancelled due is written off, so whatever it still showed as remaining is
    not owed and is left out.
    """
    sales_by_customer: dict[int, list[Sale]] = defaultdict(list)
    sale_owner: dict[int, int] = {}
    for s in _live_sales(sales):
        if s.customer_id is not None:
            sales_by_customer[s.customer_id].append(s)
            if s.id is not None:
                sale_owner[s.id] = s.customer_id

    remaining_by_customer: dict[int, Decimal] = defaultdict(lambda: ZERO)
    closed = {DueStatus.PAID.value, DueStatus.CANCELLED.value}
    for d in dues:
        if d.status in closed:
            continue
        owner = None
        if d.sale_id is not None and d.sale_id in sale_owner:
            owner = sale_owner[d.sale_id]
        elif d.due_type == "customer":
            owner = d.owner_id
        if owner is not None:
            remaining_by_customer[owner] += to_money(d.remaining_amount)

    out: list[CustomerDueSummary] = []
    for c in customers:
        cs = sales_by_customer.get(c.id, [])
        due_total = money_sum(s.total_amount for s in cs)
        paid_total = money_sum(s.paid_amount for s in cs)
        out.append(
            CustomerDueSummary(
                customer_id=c.id,
                customer_name=c.name,
                total_due_amount=due_total,
                total_paid_amount=paid_total,
                net_balance=due_total - paid_total,
                total_remaining_dues_amount=remaining_by_customer.get(c.id, ZERO),
            )
        )
    return out


def sales_totals(sales: Iterable[Sale], time_range: TimeRangeLike = TimeRange.ALL, today: Optional[date] = None) -> SalesTotals:
    picked = [s for s in _live_sales(sales) if in_range(s.sale_date, time_range, today)]
    amount = money_sum(s.total_amount for s in picked)
    paid = money_sum(s.paid_amount for s in picked)
    profit = money_sum(s.profit for s in picked)
    fully = sum(1 for s in picked if s.is_fully_paid)
    return SalesTotals(
        count=len(picked),
        amount=amount,
        paid=paid,
        discount=money_sum(s.discount for s in picked),
        profit=profit,
        fully_paid_count=fully,
        partially_paid_count=len(picked) - fully,
        profit_margin=percent(profit, amount),
        collection_rate=percent(paid, amount),
    )


def _owner_type(p: Payment, due_types: dict[int, str]) -> Optional[str]:
    t = p.due_type or due_types.get(p.due_id)
    if t == "sale":
        return "customer"
    return t


def payments_by_due_type(
    payments: Iterable[Payment],
    dues: Iterable[Due] = (),
    time_range: TimeRangeLike = TimeRange.ALL,
    today: Optional[date] = None,
) -> dict[str, int]:
    due_types = {d.id: d.due_type for d in dues if d.id is not None}
    counts = {"customer": 0, "supplier": 0, "branch": 0}
    for p in payments:
        if not in_range(p.payment_date, time_range, today):
            continue
        t = _owner_type(p, due_types)
        if t in counts:
            counts[t] += 1
    return counts


def payments_by_method(
    payments: Iterable[Payment],
    time_range: TimeRangeLike = TimeRange.ALL,
    today: Optional[date] = None,
) -> dict[str, int]:
    counts: dict[str, int] = defaultdict(int)
    for p in payments:
        if in_range(p.payment_date, time_range, today):
            counts[p.payment_method] += 1
    return dict(counts)


def monthly_trend(payments: Iterable[Payment], today: Optional[date] = None, months: int = TREND_MONTHS) -> list[dict]:
    """Trailing calendar months, oldest first; months without payments report 0."""
    keys = trailing_month_keys(today or date.today(), months)
    buckets = {k: ZERO for k in keys}
    for p in payments:
        k = month_key(p.payment_date)
        if k in buckets:
            buckets[k] += to_money(p.amount)
    return [{"month": k, "amount": buckets[k]} for k in keys]


def product_breakdown(
    sales: Iterable[Sale],
    products: Sequence[Product] = (),
    time_range: TimeRangeLike = TimeRange.ALL,
    today: Optional[date] = None,
) -> list[ProductSales]:
    names = {p.id: p.name for p in products}
    rows: dict[int, ProductSales] = {}
    for s in _live_sales(sales):
        if not in_range(s.sale_date, time_range, today):
            continue
        for it in s.items:
            row = rows.get(it.product_id)
            if row is None:
                row = rows[it.product_id] = ProductSales(
                    product_id=it.product_id,
                    product_name=names.get(it.product_id, f"#{it.product_id}"),
                )
            row.quantity_sold += int(it.quantity)
            row.revenue += line_amount(it.quantity, it.unit_price)
            row.profit += to_money(Decimal(it.quantity) * (it.unit_price - it.unit_cost))
    return sorted(rows.values(), key=lambda r: (-r.quantity_sold, -r.revenue, r.product_id))


def product_stock_data(products: Iterable[Product]) -> list[dict]:
    out = []
    for p in products:
        name = p.name if len(p.name) <= STOCK_NAME_LIMIT else p.name[:STOCK_NAME_LIMIT] + "..."
        out.append({"name": name, "quantity": int(p.quantity)})
    return out


def _latest(values: Iterable[Optional[str]]) -> Optional[str]:
    vals = [v for v in values if v]
    return max(vals) if vals else None


def build_dashboard(
    *,
    customers: Sequence[Customer] = (),
    products: Sequence[Product] = (),
    sales: Sequence[Sale] = (),
    payments: Sequence[Payment] = (),
    dues: Sequence[Due] = (),
    time_range: TimeRangeLike = TimeRange.ALL,
    today: Optional[date] = None,
) -> DashboardAnalytics:
    today = today or date.today()
    tr = TimeRange(time_range)

    summaries = customer_summaries(customers, sales, dues)
    breakdown = product_breakdown(sales, products, tr, today)
    recent_payments = [p for p in payments if in_range(p.payment_date, tr, today)]
    recent_sales = [s for s in _live_sales(sales) if in_range(s.sale_date, tr, today)]

    return DashboardAnalytics(
        time_range=tr.value,
        total_products=len(products),
        total_inventory_value=money_sum(line_amount(p.quantity, p.sale_price) for p in products),
        product_stock_data=product_stock_data(products),
        product_sales_breakdown=breakdown,
        most_selling_product=breakdown[0] if breakdown else None,
        total_customers=len(customers),
        total_active_customers=sum(1 for c in customers if c.status == "active"),
        total_customer_dues=money_sum(c.total_due_amount for c in summaries),
        total_customer_payments=money_sum(c.total_paid_amount for c in summaries),
        total_remaining_customer_dues=money_sum(c.total_remaining_dues_amount for c in summaries),
        customer_due_summary=summaries,
        sales=sales_totals(sales, tr, today),
        due_payments_by_type=payments_by_due_type(payments, dues, tr, today),
        payments_by_method=payments_by_method(payments, tr, today),
        monthly_due_payments=monthly_trend(recent_payments, today),
        latest_due_payment_date=_latest(p.payment_date for p in recent_payments),
        latest_sale_date=_latest(s.sale_date for s in recent_sales),
    )


# -------------------------
# Frames for the dashboard page
# -------------------------

def customer_summary_frame(summaries: Iterable[CustomerDueSummary]) -> pd.DataFrame:
    cols = [
        "customer_id",
        "customer_name",
        "total_due_amount",
        "total_paid_amount",
        "net_balance",
        "total_remaining_dues_amount",
    ]
    df = pd.DataFrame([asdict(s) for s in summaries], columns=cols)
    for col in cols[2:]:
        df[col] = df[col].astype(float)
    return df


def monthly_trend_frame(trend: Iterable[dict]) -> pd.DataFrame:
    df = pd.DataFrame(list(trend), columns=["month", "amount"])
    df["amount"] = df["amount"].astype(float)
    return df.set_index("month")


def product_breakdown_frame(breakdown: Iterable[ProductSales]) -> pd.DataFrame:
    cols = ["product_id", "product_name", "quantity_sold", "revenue", "profit"]
    df = pd.DataFrame([asdict(b) for b in breakdown], columns=cols)
    for col in ("revenue", "profit"):
        df[col] = df[col].astype(float)
    return df


def load_dashboard(
    conn,
    *,
    branch_id: Optional[int] = None,
    time_range: TimeRangeLike = TimeRange.ALL,
    today: Optional[date] = None,
) -> DashboardAnalytics:
    """Read one branch's records and fold them (the page's entry point)."""
    return build_dashboard(
        customers=list_customers(conn, branch_id=branch_id),
        products=list_products(conn, branch_id=branch_id),
        sales=list_sales(conn, branch_id=branch_id, with_items=True),
        payments=list_payments(conn, branch_id=branch_id),
        dues=list_dues(conn, branch_id=branch_id),
        time_range=time_range,
        today=today,
    )
