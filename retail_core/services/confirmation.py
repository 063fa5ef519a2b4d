"""
Admin-password confirmation boundary.

Some state changes (sale cancellation, due edits, payment deletion or edits,
large credit sales) must carry a human-supplied credential. The engine only
checks that one was supplied and passes it along untouched.
"""
from __future__ import annotations

from typing import Optional

from retail_core.errors import ConfirmationRequired

ADMIN_PASSWORD_FIELD = "admin_password"


def require_confirmation(admin_password: Optional[str], operation: str) -> str:
    if admin_password is None or not str(admin_password).strip():
        raise ConfirmationRequired(operation)
    return str(admin_password)


def with_admin_password(payload: dict, admin_password: Optional[str], operation: str = "continue") -> dict:
    out = dict(payload)
    out[ADMIN_PASSWORD_FIELD] = require_confirmation(admin_password, operation)
    return out
