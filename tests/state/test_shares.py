from __future__ import annotations

import pytest

from basketpool.core.errors import InsufficientQuantity
from basketpool.state.shares import ShareTable


def test_credit_and_debit() -> None:
    table = ShareTable()
    table.credit("alice", 100)
    table.credit("bob", 50)
    table.debit("alice", 40)
    assert table.get("alice") == 60
    assert table.total() == 110


def test_zero_balances_are_dropped() -> None:
    table = ShareTable()
    table.credit("alice", 10)
    table.debit("alice", 10)
    assert table.get_all_balances() == {}
    assert table.get("alice") == 0


def test_overdraft_is_rejected() -> None:
    table = ShareTable()
    table.credit("alice", 10)
    with pytest.raises(InsufficientQuantity):
        table.debit("alice", 11)
    assert table.get("alice") == 10


def test_negative_amounts_are_rejected() -> None:
    table = ShareTable()
    with pytest.raises(ValueError):
        table.credit("alice", -1)
    with pytest.raises(ValueError):
        table.set("alice", -1)
