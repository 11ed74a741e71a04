"""Conversions between native asset units and internal 18-decimal quantities."""

from __future__ import annotations

from ..state.assets import INTERNAL_DECIMALS
from .fixed_point import UFixed


def to_internal(amount: int, native_decimals: int, *, round_up: bool = False) -> UFixed:
    """Native units -> internal 18-decimal units."""
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise TypeError("amount must be an int")
    if amount < 0:
        raise ValueError(f"amount must be non-negative: {amount}")
    if native_decimals <= INTERNAL_DECIMALS:
        return UFixed(amount * 10 ** (INTERNAL_DECIMALS - native_decimals))
    q, r = divmod(amount, 10 ** (native_decimals - INTERNAL_DECIMALS))
    return UFixed(q + 1 if round_up and r else q)


def to_native(quantity: UFixed, native_decimals: int, *, round_up: bool = False) -> int:
    """Internal 18-decimal units -> native units. Rounds down unless ``round_up``."""
    if native_decimals >= INTERNAL_DECIMALS:
        return quantity.raw * 10 ** (native_decimals - INTERNAL_DECIMALS)
    q, r = divmod(quantity.raw, 10 ** (INTERNAL_DECIMALS - native_decimals))
    return q + 1 if round_up and r else q
