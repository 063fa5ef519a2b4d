"""
Contracts for the remote collaborators the engine talks to.

Fetching and mutating are injected callables; the engine never does transport
itself. A fetch result is copied on receipt so later edits on either side cannot
leak into the snapshot the engine computed from.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Protocol

from retail_core.errors import TransportFailure
from retail_core.models import Payment, Sale, SaleItem
from retail_core.services.cart import CartLine, compute_totals
from retail_core.services.confirmation import with_admin_password

_log = logging.getLogger(__name__)


@dataclass
class FetchResult:
    data: Any = None
    error: Optional[str] = None
    loading: bool = False
    refetch: Optional[Callable[[], "FetchResult"]] = field(default=None, repr=False)


class DataFetcher(Protocol):
    def __call__(self, path: str, **options: Any) -> FetchResult: ...


class Mutator(Protocol):
    def __call__(self, path: str, method: str, payload: Optional[dict]) -> dict: ...


class MutationRejected(Exception):
    """What a mutator raises when the server answers with {message, status}."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.message = message
        self.status = status
        super().__init__(message)


def fetch_snapshot(fetcher: DataFetcher, path: str, **options: Any) -> FetchResult:
    result = fetcher(path, **options)
    if result.error:
        raise TransportFailure(str(result.error))
    return FetchResult(
        data=copy.deepcopy(result.data),
        error=None,
        loading=result.loading,
        refetch=result.refetch,
    )


def run_mutation(mutator: Mutator, path: str, method: str, payload: Optional[dict] = None) -> dict:
    method = method.upper()
    if method not in {"POST", "PUT", "PATCH", "DELETE"}:
        raise ValueError(f"Unsupported mutation method: {method}")
    try:
        return mutator(path, method, payload)
    except MutationRejected as e:
        _log.warning("%s %s rejected (%s): %s", method, path, e.status, e.message)
        raise TransportFailure(e.message, e.status) from e


def _jsonable(record: dict) -> dict:
    out = {}
    for k, v in record.items():
        if hasattr(v, "quantize"):
            out[k] = float(v)
        else:
            out[k] = v
    return out


def sale_payload(sale: Sale, lines: Iterable[CartLine], admin_password: Optional[str] = None) -> dict:
    """
    Outgoing sale body. Totals are recomputed from the lines here, whatever the
    Sale object claims.
    """
    lines = list(lines)
    totals = compute_totals(lines, sale.discount, sale.paid_amount)
    record = sale.to_record()
    record.update(
        total_amount=totals.total,
        profit=totals.profit,
        is_fully_paid=totals.is_fully_paid,
    )
    payload = _jsonable(record)
    payload["sale_items"] = [
        _jsonable(SaleItem(l.product_id, l.quantity, l.unit_price).to_record()) for l in lines
    ]
    if admin_password is not None:
        payload = with_admin_password(payload, admin_password, "confirm this sale")
    return payload


def payment_payload(payment: Payment) -> dict:
    return _jsonable(payment.to_record())
