from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional


class RetailCoreError(ValueError):
    """Root of every recoverable condition raised by the engine."""

    kind = "error"


class NotFound(RetailCoreError):
    kind = "not_found"

    def __init__(self, entity: str, key: Any):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity.capitalize()} {key} not found.")


class InvalidQuantity(RetailCoreError):
    kind = "invalid_quantity"


class InsufficientStock(RetailCoreError):
    kind = "insufficient_stock"

    def __init__(self, product_id: int, requested: int, available: int, name: Optional[str] = None):
        self.product_id = product_id
        self.requested = int(requested)
        self.available = int(available)
        self.name = name
        label = f'"{name}"' if name else f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {label}: requested {self.requested}, only {self.available} available."
        )


class InvalidPaymentAmount(RetailCoreError):
    kind = "invalid_payment_amount"

    def __init__(self, amount: Decimal, remaining: Optional[Decimal] = None, message: Optional[str] = None):
        self.amount = amount
        self.remaining = remaining
        if message is None:
            if remaining is None:
                message = f"Payment amount must be greater than 0 (got {amount})."
            else:
                message = f"Payment amount {amount} is not within 0 and remaining balance {remaining}."
        super().__init__(message)


class OverpaymentRejected(InvalidPaymentAmount):
    kind = "overpayment_rejected"

    def __init__(self, amount: Decimal, remaining: Decimal, message: Optional[str] = None):
        super().__init__(
            amount,
            remaining,
            message or f"Payment of {amount} exceeds the remaining balance of {remaining}.",
        )


class StaleDueState(RetailCoreError):
    kind = "stale_due_state"

    def __init__(self, due_id: int, expected: Any, actual: Any):
        self.due_id = due_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Due {due_id} changed since it was loaded (expected {expected}, found {actual}). Refresh and retry."
        )


class DueClosed(RetailCoreError):
    kind = "due_closed"

    def __init__(self, due_id: int, status: str):
        self.due_id = due_id
        self.status = status
        super().__init__(f"Due {due_id} is {status}; no further payments are accepted.")


class InvalidTransition(RetailCoreError):
    kind = "invalid_transition"

    def __init__(self, entity: str, current: str, requested: str):
        self.entity = entity
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move {entity} from '{current}' to '{requested}'.")


class ConfirmationRequired(RetailCoreError):
    kind = "confirmation_required"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Admin password is required to {operation}.")


class StepValidationError(RetailCoreError):
    kind = "step_validation"

    def __init__(self, step: str, message: str):
        self.step = step
        super().__init__(message)


class TransportFailure(RetailCoreError):
    kind = "transport_failure"

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)
