from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

from retail_core.money import ZERO, to_money


class SaleStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DueStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class DueType(str, Enum):
    CUSTOMER = "customer"
    SUPPLIER = "supplier"
    BRANCH = "branch"


DUE_CATEGORIES = ("sale", "purchase", "credit", "transfer", "other")
PAYMENT_METHODS = ("cash", "bank_transfer", "digital_wallet", "cheque")


@dataclass(frozen=True)
class ActorContext:
    """The authenticated user and the branch they act for."""

    user_id: Optional[int]
    branch_id: int


def _opt_int(v: Any) -> Optional[int]:
    return None if v is None else int(v)


@dataclass
class Customer:
    id: int
    name: str
    branch_id: Optional[int] = None
    phone: Optional[str] = None
    status: str = "active"

    @classmethod
    def from_row(cls, r: Mapping[str, Any]) -> "Customer":
        return cls(
            id=int(r["id"]),
            name=str(r["name"]),
            branch_id=_opt_int(r["branch_id"]),
            phone=r["phone"],
            status=str(r["status"]),
        )


@dataclass
class Product:
    id: int
    name: str
    quantity: int
    purchase_price: Decimal
    sale_price: Decimal
    status: str = "active"
    branch_id: Optional[int] = None
    company: Optional[str] = None

    @classmethod
    def from_row(cls, r: Mapping[str, Any]) -> "Product":
        return cls(
            id=int(r["id"]),
            name=str(r["name"]),
            quantity=int(r["quantity"]),
            purchase_price=to_money(r["purchase_price"]),
            sale_price=to_money(r["sale_price"]),
            status=str(r["status"]),
            branch_id=_opt_int(r["branch_id"]),
            company=r["company"],
        )


@dataclass(frozen=True)
class SaleItem:
    product_id: int
    quantity: int
    unit_price: Decimal
    # Purchase price at sale time; never re-read from the product afterwards.
    unit_cost: Decimal = ZERO
    id: Optional[int] = None
    sale_id: Optional[int] = None

    @classmethod
    def from_row(cls, r: Mapping[str, Any]) -> "SaleItem":
        return cls(
            product_id=int(r["product_id"]),
            quantity=int(r["quantity"]),
            unit_price=to_money(r["unit_price"]),
            unit_cost=to_money(r["unit_cost"]),
            id=int(r["id"]),
            sale_id=int(r["sale_id"]),
        )

    def to_record(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
        }


@dataclass
class Sale:
    id: Optional[int]
    customer_id: Optional[int]
    branch_id: int
    sale_date: str
    total_amount: Decimal
    paid_amount: Decimal
    discount: Decimal
    profit: Decimal
    is_fully_paid: bool
    status: str = SaleStatus.ACTIVE.value
    note: Optional[str] = None
    user_id: Optional[int] = None
    items: list[SaleItem] = field(default_factory=list)

    @property
    def is_cancelled(self) -> bool:
        return self.status == SaleStatus.CANCELLED.value

    @classmethod
    def from_row(cls, r: Mapping[str, Any], items: Optional[list[SaleItem]] = None) -> "Sale":
        return cls(
            id=int(r["id"]),
            customer_id=_opt_int(r["customer_id"]),
            branch_id=int(r["branch_id"]),
            sale_date=str(r["sale_date"]),
            total_amount=to_money(r["total_amount"]),
            paid_amount=to_money(r["paid_amount"]),
            discount=to_money(r["discount"]),
            profit=to_money(r["profit"]),
            is_fully_paid=bool(r["is_fully_paid"]),
            status=str(r["status"]),
            note=r["note"],
            user_id=_opt_int(r["user_id"]),
            items=list(items or []),
        )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "sale_date": self.sale_date,
            "total_amount": self.total_amount,
            "paid_amount": self.paid_amount,
            "discount": self.discount,
            "profit": self.profit,
            "is_fully_paid": self.is_fully_paid,
            "status": self.status,
            "note": self.note,
            "branch_id": self.branch_id,
            "user_id": self.user_id,
        }


@dataclass
class Due:
    id: Optional[int]
    due_type: str
    owner_id: int
    total_amount: Decimal
    paid_amount: Decimal = ZERO
    remaining_amount: Decimal = ZERO
    status: str = DueStatus.PENDING.value
    due_date: Optional[str] = None
    category: str = "other"
    advance_paid: Decimal = ZERO
    sale_id: Optional[int] = None
    stock_movement_id: Optional[int] = None
    branch_id: Optional[int] = None
    description: Optional[str] = None
    version: int = 0

    @classmethod
    def from_row(cls, r: Mapping[str, Any]) -> "Due":
        return cls(
            id=int(r["id"]),
            due_type=str(r["due_type"]),
            owner_id=int(r["owner_id"]),
            total_amount=to_money(r["total_amount"]),
            paid_amount=to_money(r["paid_amount"]),
            remaining_amount=to_money(r["remaining_amount"]),
            status=str(r["status"]),
            due_date=r["due_date"],
            category=str(r["category"]),
            advance_paid=to_money(r["advance_paid"]),
            sale_id=_opt_int(r["sale_id"]),
            stock_movement_id=_opt_int(r["stock_movement_id"]),
            branch_id=_opt_int(r["branch_id"]),
            description=r["description"],
            version=int(r["version"]),
        )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "total_amount": self.total_amount,
            "paid_amount": self.paid_amount,
            "remaining_amount": self.remaining_amount,
            "status": self.status,
            "due_type": self.due_type,
            "due_date": self.due_date,
        }


@dataclass
class Payment:
    id: Optional[int]
    due_id: int
    amount: Decimal
    payment_date: str
    payment_method: str
    description: str
    branch_id: Optional[int] = None
    user_id: Optional[int] = None
    # Owner type of the due paid into; filled by joined queries for analytics.
    due_type: Optional[str] = None

    @classmethod
    def from_row(cls, r: Mapping[str, Any]) -> "Payment":
        keys = r.keys()
        return cls(
            id=int(r["id"]),
            due_id=int(r["due_id"]),
            amount=to_money(r["amount"]),
            payment_date=str(r["payment_date"]),
            payment_method=str(r["payment_method"]),
            description=str(r["description"]),
            branch_id=_opt_int(r["branch_id"]),
            user_id=_opt_int(r["user_id"]),
            due_type=r["due_type"] if "due_type" in keys else None,
        )

    def to_record(self) -> dict:
        return {
            "id": self.id,
            "due_id": self.due_id,
            "amount": self.amount,
            "payment_date": self.payment_date,
            "payment_method": self.payment_method,
            "description": self.description,
        }
