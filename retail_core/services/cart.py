from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Iterable, Optional

from retail_core.errors import InvalidQuantity, NotFound
from retail_core.models import Product
from retail_core.money import ZERO, NumberLike, line_amount, non_negative, to_money
from retail_core.services.stock import ensure_available


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int
    unit_price: Decimal
    unit_cost: Decimal = ZERO
    name: Optional[str] = None

    @property
    def amount(self) -> Decimal:
        return line_amount(self.quantity, self.unit_price)

    @property
    def margin(self) -> Decimal:
        return to_money(Decimal(self.quantity) * (self.unit_price - self.unit_cost))


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    profit: Decimal
    paid_amount: Decimal
    remaining: Decimal
    is_fully_paid: bool


def _validated_line(line: CartLine) -> CartLine:
    if int(line.quantity) < 1:
        raise InvalidQuantity(f"Quantity must be at least 1 (product {line.product_id}).")
    price = to_money(line.unit_price)
    if price < 0:
        raise ValueError("Unit price cannot be negative.")
    return replace(line, quantity=int(line.quantity), unit_price=price, unit_cost=to_money(line.unit_cost))


def compute_totals(
    lines: Iterable[CartLine],
    discount: Optional[NumberLike] = 0,
    paid_amount: Optional[NumberLike] = 0,
) -> CartTotals:
    """
    Price a cart.

    subtotal = sum(qty * price); total = max(0, subtotal - discount);
    profit = max(0, sum(qty * (price - cost)) - discount).
    A discount larger than the subtotal zeroes the total, it is not an error.
    """
    disc = to_money(discount)
    if disc < 0:
        raise ValueError("Discount cannot be negative.")
    paid = to_money(paid_amount)
    if paid < 0:
        raise ValueError("Paid amount cannot be negative.")

    checked = [_validated_line(l) for l in lines]
    subtotal = sum((l.amount for l in checked), ZERO)
    margin = sum((l.margin for l in checked), ZERO)

    total = non_negative(subtotal - disc)
    profit = non_negative(margin - disc)
    return CartTotals(
        subtotal=subtotal,
        discount=disc,
        total=total,
        profit=profit,
        paid_amount=paid,
        remaining=non_negative(total - paid),
        is_fully_paid=paid >= total,
    )


class DraftCart:
    """
    Unconfirmed cart. Lines are keyed by product; adding a product that is already
    in the cart bumps its quantity. Every quantity change is checked against the
    product's on-hand stock and rejected (never clamped) when it exceeds it.
    Nothing here touches persisted stock.
    """

    def __init__(self) -> None:
        self._lines: list[CartLine] = []
        self._products: dict[int, Product] = {}

    @property
    def lines(self) -> tuple[CartLine, ...]:
        return tuple(self._lines)

    def is_empty(self) -> bool:
        return not self._lines

    def __len__(self) -> int:
        return len(self._lines)

    def _index(self, product_id: int) -> int:
        for i, l in enumerate(self._lines):
            if l.product_id == int(product_id):
                return i
        raise NotFound("cart line", product_id)

    def line_for(self, product_id: int) -> Optional[CartLine]:
        try:
            return self._lines[self._index(product_id)]
        except NotFound:
            return None

    def add_product(self, product: Product, quantity: int = 1, unit_price: Optional[NumberLike] = None) -> CartLine:
        if int(quantity) < 1:
            raise InvalidQuantity("Quantity must be at least 1.")
        self._products[product.id] = product

        existing = self.line_for(product.id)
        if existing is not None:
            new_qty = existing.quantity + int(quantity)
            ensure_available(product, new_qty)
            line = replace(existing, quantity=new_qty)
            self._lines[self._index(product.id)] = line
            return line

        ensure_available(product, int(quantity))
        price = product.sale_price if unit_price is None else to_money(unit_price)
        if price < 0:
            raise ValueError("Unit price cannot be negative.")
        line = CartLine(
            product_id=product.id,
            quantity=int(quantity),
            unit_price=price,
            unit_cost=product.purchase_price,
            name=product.name,
        )
        self._lines.append(line)
        return line

    def set_quantity(self, product_id: int, quantity: int) -> CartLine:
        i = self._index(product_id)
        if int(quantity) < 1:
            raise InvalidQuantity("Quantity must be at least 1.")
        ensure_available(self._products[int(product_id)], int(quantity))
        self._lines[i] = replace(self._lines[i], quantity=int(quantity))
        return self._lines[i]

    def set_price(self, product_id: int, unit_price: NumberLike) -> CartLine:
        i = self._index(product_id)
        price = to_money(unit_price)
        if price < 0:
            raise ValueError("Unit price cannot be negative.")
        self._lines[i] = replace(self._lines[i], unit_price=price)
        return self._lines[i]

    def remove_line(self, product_id: int) -> None:
        i = self._index(product_id)
        del self._lines[i]
        self._products.pop(int(product_id), None)

    def clear(self) -> None:
        self._lines.clear()
        self._products.clear()

    def totals(self, discount: Optional[NumberLike] = 0, paid_amount: Optional[NumberLike] = 0) -> CartTotals:
        return compute_totals(self._lines, discount, paid_amount)
