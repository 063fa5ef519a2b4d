from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional, Union

NumberLike = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Optional[NumberLike]) -> Decimal:
    """
    Parse `value` into a Decimal quantized to cents (ROUND_HALF_UP).

    None and "" are treated as zero. Floats go through str() so 0.1 stays 0.10
    instead of picking up binary noise. NaN / infinity raise ValueError.
    """
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        raise ValueError("Amount must be a number.")
    try:
        d = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"Amount must be a number, got {value!r}.")
    if not d.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}.")
    return d.quantize(CENT, rounding=ROUND_HALF_UP)


def to_quantity(value: Optional[NumberLike]) -> int:
    """Whole, non-negative unit count."""
    if value is None or value == "" or isinstance(value, bool):
        raise ValueError("Quantity is required.")
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"Quantity must be a whole number, got {value!r}.")
    if not d.is_finite() or d != d.to_integral_value():
        raise ValueError(f"Quantity must be a whole number, got {value!r}.")
    q = int(d)
    if q < 0:
        raise ValueError("Quantity cannot be negative.")
    return q


def non_negative(value: NumberLike) -> Decimal:
    m = to_money(value)
    return m if m > ZERO else ZERO


def money_sum(values: Iterable[Optional[NumberLike]]) -> Decimal:
    total = ZERO
    for v in values:
        total += to_money(v)
    return total


def line_amount(quantity: int, unit_price: NumberLike) -> Decimal:
    return to_money(Decimal(int(quantity)) * to_money(unit_price))


def safe_div(n: NumberLike, d: NumberLike) -> Decimal:
    dn = Decimal(str(d))
    if dn == 0:
        return Decimal(0)
    return Decimal(str(n)) / dn


def percent(n: NumberLike, d: NumberLike, places: int = 2) -> Decimal:
    """n / d * 100, rounded; 0 when the denominator is 0."""
    q = Decimal(1).scaleb(-places)
    return (safe_div(n, d) * 100).quantize(q, rounding=ROUND_HALF_UP)


def fmt_money(v: NumberLike, currency: str = "") -> str:
    s = f"{to_money(v):,.2f}"
    return f"{currency} {s}" if currency else s
