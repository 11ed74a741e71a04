"""
Per-asset records and the per-call pricing context.

Units/conventions:
- every ``UFixed`` field is an 18-decimal fixed-point value;
- ``quantity``, ``collected_fees`` and ``collected_cashbacks`` are internal units
  of the asset (18 decimals regardless of the asset's native precision);
- ``price`` is USD per unit of the asset;
- ``target_share`` is a raw weight, normalized by ``PoolContext.total_target_shares``.

Both types are frozen: pricing functions return new values instead of mutating.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique

from ..core.fixed_point import ZERO, UFixed


# 10**77 is the largest power of ten below 2**256.
MAX_NATIVE_DECIMALS = 77
INTERNAL_DECIMALS = 18


def _require_ufixed(name: str, value: object) -> None:
    if not isinstance(value, UFixed):
        raise TypeError(f"{name} must be a UFixed, got {type(value).__name__}")


@unique
class OperationKind(Enum):
    """Selects the flat base fee of a pricing context."""

    MINT = "mint"
    BURN = "burn"
    SWAP = "swap"


@dataclass(frozen=True)
class AssetRecord:
    """One basket member."""

    quantity: UFixed = ZERO
    price: UFixed = ZERO
    collected_fees: UFixed = ZERO
    collected_cashbacks: UFixed = ZERO
    target_share: UFixed = ZERO
    native_decimals: int = INTERNAL_DECIMALS

    def __post_init__(self) -> None:
        for name in ("quantity", "price", "collected_fees", "collected_cashbacks", "target_share"):
            _require_ufixed(name, getattr(self, name))
        d = self.native_decimals
        if not isinstance(d, int) or isinstance(d, bool):
            raise TypeError("native_decimals must be an int")
        if not (0 <= d <= MAX_NATIVE_DECIMALS):
            raise ValueError(f"native_decimals must be in [0, {MAX_NATIVE_DECIMALS}]: {d}")

    @property
    def usd_value(self) -> UFixed:
        return self.quantity * self.price


@dataclass(frozen=True)
class PoolContext:
    """
    Cross-asset aggregate for a single call.

    ``usd_cap`` is the running sum of ``quantity * price`` over all assets and is
    only ever adjusted incrementally. ``user_cashback_balance`` starts at zero and
    accumulates the cashback owed to the caller during the call.
    """

    usd_cap: UFixed = ZERO
    total_target_shares: UFixed = ZERO
    operation_base_fee: UFixed = ZERO
    half_deviation_fee: UFixed = ZERO
    deviation_limit: UFixed = ZERO
    depeg_base_fee: UFixed = ZERO
    user_cashback_balance: UFixed = ZERO

    def __post_init__(self) -> None:
        for name in (
            "usd_cap",
            "total_target_shares",
            "operation_base_fee",
            "half_deviation_fee",
            "deviation_limit",
            "depeg_base_fee",
            "user_cashback_balance",
        ):
            _require_ufixed(name, getattr(self, name))
