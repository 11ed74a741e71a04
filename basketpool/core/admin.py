"""
Administrative state transitions.

These are the collaborator-owned updates the pricing engine depends on: prices,
target shares, fee parameters, the pause flag and fee withdrawal. They are plain
state functions; authorization is the caller's concern.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Tuple

from ..state.assets import INTERNAL_DECIMALS, AssetRecord
from ..state.pools import AssetId, FeeParams, PoolState
from .fixed_point import ZERO, UFixed
from .units import to_native


logger = logging.getLogger(__name__)


def _require_ufixed(name: str, value: object) -> UFixed:
    if not isinstance(value, UFixed):
        raise TypeError(f"{name} must be a UFixed")
    return value


def register_asset(
    state: PoolState,
    asset_id: AssetId,
    *,
    price: UFixed,
    target_share: UFixed,
    native_decimals: int = INTERNAL_DECIMALS,
) -> PoolState:
    """Add an empty asset record. Re-registering an id is rejected."""
    if not isinstance(asset_id, str) or not asset_id:
        raise ValueError("asset_id must be a non-empty str")
    if asset_id in state.assets:
        raise ValueError(f"asset already registered: {asset_id!r}")
    record = AssetRecord(
        price=_require_ufixed("price", price),
        target_share=_require_ufixed("target_share", target_share),
        native_decimals=native_decimals,
    )
    logger.info("registered asset %s (price=%s target_share=%s)", asset_id, price, target_share)
    return state.with_assets(
        {asset_id: record},
        total_target_shares=state.total_target_shares + target_share,
    )


def set_price(state: PoolState, asset_id: AssetId, price: UFixed) -> PoolState:
    """Update an oracle price, moving ``usd_cap`` by ``quantity * (new - old)``."""
    _require_ufixed("price", price)
    record = state.asset(asset_id)
    old_value = record.quantity * record.price
    new_value = record.quantity * price
    usd_cap = (state.usd_cap + new_value).saturating_sub(old_value)
    logger.info("price of %s: %s -> %s", asset_id, record.price, price)
    return state.with_assets({asset_id: replace(record, price=price)}, usd_cap=usd_cap)


def set_target_share(state: PoolState, asset_id: AssetId, target_share: UFixed) -> PoolState:
    _require_ufixed("target_share", target_share)
    record = state.asset(asset_id)
    total = state.total_target_shares - record.target_share + target_share
    logger.info("target share of %s: %s -> %s", asset_id, record.target_share, target_share)
    return state.with_assets(
        {asset_id: replace(record, target_share=target_share)},
        total_target_shares=total,
    )


def set_fee_params(state: PoolState, fees: FeeParams) -> PoolState:
    if not isinstance(fees, FeeParams):
        raise TypeError("fees must be FeeParams")
    logger.info("fee parameters updated: %s", fees)
    return replace(state, fees=fees)


def set_paused(state: PoolState, paused: bool) -> PoolState:
    if not isinstance(paused, bool):
        raise TypeError("paused must be a bool")
    logger.info("pool %s", "paused" if paused else "unpaused")
    return replace(state, paused=paused)


def withdraw_fees(state: PoolState, asset_id: AssetId) -> Tuple[PoolState, int]:
    """Zero the asset's protocol fees; returns the new state and the native amount withdrawn."""
    record = state.asset(asset_id)
    amount = to_native(record.collected_fees, record.native_decimals)
    logger.info("withdrew %d of %s protocol fees", amount, asset_id)
    return state.with_assets({asset_id: replace(record, collected_fees=ZERO)}), amount
