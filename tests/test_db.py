import threading
import time
from decimal import Decimal

import pytest

from retail_core.db import q, transaction, x
from retail_core.services.dues import create_due, get_due
from retail_core.services.payments import apply_payment


def _customer_names(conn):
    return [r["name"] for r in q(conn, "SELECT name FROM customers ORDER BY id")]


def test_nested_transaction_rolls_back_with_outer(conn, actor, customer):
    with pytest.raises(RuntimeError):
        with transaction(conn):
            with transaction(conn):
                x(conn, "INSERT INTO customers (branch_id, name) VALUES (?, ?)", (actor.branch_id, "Inner"), commit=False)
            # A committing helper inside the block must not commit the block early.
            x(conn, "INSERT INTO customers (branch_id, name) VALUES (?, ?)", (actor.branch_id, "Outer"))
            raise RuntimeError("abort")
    assert _customer_names(conn) == ["Ali Traders"]


def test_second_thread_waits_instead_of_joining(conn, actor, customer, today):
    due = create_due(conn, actor, due_type="customer", owner_id=customer.id, total_amount="1000", today=today)
    a_open = threading.Event()
    b_started = threading.Event()
    results, errors = [], []

    def aborting_writer():
        try:
            with transaction(conn):
                x(conn, "INSERT INTO customers (branch_id, name) VALUES (?, ?)", (actor.branch_id, "Ghost"), commit=False)
                a_open.set()
                b_started.wait(5)
                time.sleep(0.2)
                raise RuntimeError("abort")
        except RuntimeError:
            pass

    def paying_writer():
        a_open.wait(5)
        b_started.set()
        try:
            results.append(apply_payment(conn, actor, due.id, "300", description="cash", today=today))
        except Exception as e:  # surfaced below
            errors.append(e)

    ta = threading.Thread(target=aborting_writer)
    tb = threading.Thread(target=paying_writer)
    ta.start()
    tb.start()
    ta.join(10)
    tb.join(10)

    assert errors == []
    assert results[0].due.remaining_amount == Decimal("700.00")
    assert len(q(conn, "SELECT id FROM payments WHERE due_id=?", (due.id,))) == 1
    assert get_due(conn, due.id).remaining_amount == Decimal("700.00")
    assert "Ghost" not in _customer_names(conn)
