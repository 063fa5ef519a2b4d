from __future__ import annotations

from datetime import datetime, date, timedelta, timezone
from typing import Optional, Union

DateLike = Union[date, datetime, str]


def iso_today() -> str:
    return date.today().isoformat()


def iso_now() -> str:
    # Use UTC ISO timestamps for consistency.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def as_date(value: Optional[DateLike]) -> Optional[date]:
    """Parse an ISO date / datetime string (or pass a date through)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        raise ValueError(f"Invalid date: {value!r}. Use YYYY-MM-DD.")


def iso_date(value: Optional[DateLike]) -> Optional[str]:
    d = as_date(value)
    return d.isoformat() if d else None


def month_key(value: DateLike) -> str:
    d = as_date(value)
    return f"{d.year:04d}-{d.month:02d}"


def trailing_month_keys(today: date, months: int = 6) -> list[str]:
    """Oldest-first `YYYY-MM` keys for the `months` calendar months ending at `today`."""
    keys: list[str] = []
    y, m = today.year, today.month
    for _ in range(months):
        keys.append(f"{y:04d}-{m:02d}")
        m -= 1
        if m == 0:
            y, m = y - 1, 12
    keys.reverse()
    return keys


def days_ago(today: date, n: int) -> date:
    return today - timedelta(days=int(n))
