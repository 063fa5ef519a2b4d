from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable, Iterator

import streamlit as st

from retail_core.schema import SCHEMA_SQL

# Money is persisted as TEXT decimal strings.
sqlite3.register_adapter(Decimal, str)

# Every statement on a shared connection runs under this lock. A thread holds it
# from BEGIN to COMMIT/ROLLBACK, so other sessions wait instead of joining.
_conn_lock = threading.RLock()
_owned = threading.local()


def _connect(db_path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def connect(db_path: Path) -> sqlite3.Connection:
    """Uncached connection with the schema applied (tests, scripts)."""
    conn = _connect(db_path)
    ensure_schema(conn)
    return conn


@st.cache_resource
def get_conn(db_path: Path) -> sqlite3.Connection:
    return _connect(db_path)


def _column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    rows = conn.execute(f"PRAGMA table_info({table});").fetchall()
    cols = [r["name"] for r in rows]
    return column in cols


def ensure_schema(conn: sqlite3.Connection) -> None:
    # executescript() commits whatever is pending, so never run it mid-transaction.
    with _conn_lock:
        # Create base schema (for new installs)
        conn.executescript(SCHEMA_SQL)

        # ---- migrations for existing installs ----
        # Optimistic-concurrency counter on dues
        if not _column_exists(conn, "dues", "version"):
            conn.execute("ALTER TABLE dues ADD COLUMN version INTEGER NOT NULL DEFAULT 0;")

        conn.commit()


def _depth(conn: sqlite3.Connection) -> int:
    return getattr(_owned, "depth", {}).get(id(conn), 0)


def _set_depth(conn: sqlite3.Connection, depth: int) -> None:
    if not hasattr(_owned, "depth"):
        _owned.depth = {}
    if depth:
        _owned.depth[id(conn)] = depth
    else:
        _owned.depth.pop(id(conn), None)


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    All-or-nothing block. BEGIN IMMEDIATE takes the write lock up front, so two
    writers can never interleave their read-check-write on the same rows.
    Use x(..., commit=False) inside.

    Nested use joins the outer transaction only on the thread that opened it;
    any other thread blocks until that transaction commits or rolls back.
    """
    with _conn_lock:
        depth = _depth(conn)
        if depth:
            _set_depth(conn, depth + 1)
            try:
                yield conn
            finally:
                _set_depth(conn, depth)
            return

        if conn.in_transaction:
            # Leftover implicit transaction from an uncommitted statement on this thread.
            conn.commit()
        conn.execute("BEGIN IMMEDIATE;")
        _set_depth(conn, 1)
        try:
            yield conn
        except BaseException:
            conn.rollback()
            raise
        else:
            conn.commit()
        finally:
            _set_depth(conn, 0)


def q(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
    with _conn_lock:
        cur = conn.execute(sql, tuple(params))
        rows = cur.fetchall()
        cur.close()
    return rows


def q1(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> sqlite3.Row | None:
    rows = q(conn, sql, params)
    return rows[0] if rows else None


def x(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = (), *, commit: bool = True) -> int:
    with _conn_lock:
        cur = conn.execute(sql, tuple(params))
        # Inside transaction() the block commits as a whole.
        if commit and not _depth(conn):
            conn.commit()
        last = cur.lastrowid
        cur.close()
    return int(last or 0)


def xc(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> int:
    """Execute without committing; returns rowcount (used for guarded UPDATEs)."""
    with _conn_lock:
        cur = conn.execute(sql, tuple(params))
        n = cur.rowcount
        cur.close()
    return int(n)
