from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Callable, Optional

from retail_core.errors import StepValidationError
from retail_core.models import ActorContext
from retail_core.money import ZERO, NumberLike, to_money
from retail_core.services.cart import CartTotals, DraftCart
from retail_core.services.sales import DEFAULT_LARGE_CREDIT_THRESHOLD, SaleResult, confirm_sale
from retail_core.utils import iso_today

STEPS = ("customer", "products", "payment", "review")
STEP_LABELS = {
    "customer": "Customer Details",
    "products": "Add Products",
    "payment": "Payment & Summary",
    "review": "Review & Confirm",
}


@dataclass
class SaleDraft:
    customer_id: Optional[int] = None
    walk_in: bool = False
    sale_date: str = field(default_factory=iso_today)
    note: Optional[str] = None
    due_date: Optional[str] = None
    cart: DraftCart = field(default_factory=DraftCart)
    discount: Decimal = ZERO
    paid_amount: Decimal = ZERO

    def set_discount(self, value: NumberLike) -> None:
        self.discount = to_money(value)

    def set_paid_amount(self, value: NumberLike) -> None:
        self.paid_amount = to_money(value)

    def totals(self) -> CartTotals:
        return self.cart.totals(self.discount, self.paid_amount)


def _check_customer(d: SaleDraft) -> None:
    if not d.customer_id and not d.walk_in:
        raise StepValidationError("customer", "Please select a customer.")


def _check_products(d: SaleDraft) -> None:
    if d.cart.is_empty():
        raise StepValidationError("products", "Please add at least one product.")


def _check_payment(d: SaleDraft) -> None:
    try:
        t = d.totals()
    except ValueError as e:
        raise StepValidationError("payment", str(e)) from e
    if t.paid_amount > t.total:
        raise StepValidationError("payment", "Paid amount cannot be greater than total amount.")
    if not d.customer_id and not t.is_fully_paid:
        raise StepValidationError("payment", "Walk-in sales must be paid in full.")


_GATES: dict[str, Callable[[SaleDraft], None]] = {
    "customer": _check_customer,
    "products": _check_products,
    "payment": _check_payment,
    "review": lambda d: None,
}


class SaleWizard:
    """
    Linear checkout: customer -> products -> payment -> review. Moving forward
    runs the current step's gate; moving back is always allowed. Only the review
    step can confirm, and confirming re-checks every gate.
    """

    def __init__(self, draft: Optional[SaleDraft] = None):
        self.draft = draft or SaleDraft()
        self._index = 0

    @property
    def step(self) -> str:
        return STEPS[self._index]

    @property
    def step_label(self) -> str:
        return STEP_LABELS[self.step]

    @property
    def index(self) -> int:
        return self._index

    def validate(self, step: Optional[str] = None) -> None:
        _GATES[step or self.step](self.draft)

    def next(self) -> str:
        self.validate()
        self._index = min(self._index + 1, len(STEPS) - 1)
        return self.step

    def back(self) -> str:
        self._index = max(self._index - 1, 0)
        return self.step

    def go_to(self, step: str) -> str:
        if step not in STEPS:
            raise ValueError(f"Unknown step '{step}'.")
        target = STEPS.index(step)
        # Jumping forward must pass every gate on the way.
        for s in STEPS[:target]:
            self.validate(s)
        self._index = target
        return self.step

    def reset(self) -> None:
        self.draft = SaleDraft()
        self._index = 0

    def confirm(
        self,
        conn,
        actor: ActorContext,
        *,
        admin_password: Optional[str] = None,
        large_credit_threshold: NumberLike = DEFAULT_LARGE_CREDIT_THRESHOLD,
        today: Optional[date] = None,
    ) -> SaleResult:
        if self.step != "review":
            raise StepValidationError(self.step, "Finish the previous steps before confirming.")
        for s in STEPS:
            self.validate(s)
        d = self.draft
        return confirm_sale(
            conn,
            actor,
            d.cart.lines,
            customer_id=d.customer_id,
            paid_amount=d.paid_amount,
            discount=d.discount,
            sale_date=d.sale_date,
            note=d.note,
            due_date=d.due_date,
            admin_password=admin_password,
            large_credit_threshold=large_credit_threshold,
            today=today,
        )
