"""
Pool share balance tracking.

Shares are the pool's 18-decimal share token, held per holder. The pool
orchestrator keeps ``PoolState.total_supply`` in step with this table.
"""

from __future__ import annotations

from typing import Dict

from ..core.errors import InsufficientQuantity


Holder = str


class ShareTable:
    """
    Share balance table mapping holder -> raw share amount.

    Notes:
    - Balances are always non-negative.
    - Zero balances are omitted to keep the table sparse.
    """

    def __init__(self) -> None:
        self._balances: Dict[Holder, int] = {}

    def get(self, holder: Holder) -> int:
        """Share balance of ``holder``. Returns 0 if not found."""
        return self._balances.get(holder, 0)

    def set(self, holder: Holder, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"share balance cannot be negative: {amount}")
        if amount == 0:
            self._balances.pop(holder, None)
        else:
            self._balances[holder] = amount

    def credit(self, holder: Holder, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"credit must be non-negative: {amount}")
        self.set(holder, self.get(holder) + amount)

    def debit(self, holder: Holder, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"debit must be non-negative: {amount}")
        current = self.get(holder)
        if amount > current:
            raise InsufficientQuantity(f"{holder} holds {current} shares, cannot debit {amount}")
        self.set(holder, current - amount)

    def total(self) -> int:
        return sum(self._balances.values())

    def get_all_balances(self) -> Dict[Holder, int]:
        return dict(self._balances)

    def __repr__(self) -> str:
        return f"ShareTable({len(self._balances)} holders)"
