"""
Read-only quotes for routers.

Each quote prices an operation against a snapshot of ``PoolState`` and returns
native amounts without producing a new state. Exact-in / exact-out variants use
the inverse engine.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..state.pools import AssetId, PoolState
from . import inverse
from .errors import AssetMismatch, DeviationOverflow, ZeroShare
from .fixed_point import UFixed
from .pool import (
    burn_snapshot,
    mint_snapshot,
    price_swap,
    require_priced,
    share_to_quantity,
    swap_snapshot,
    usd_to_share,
)
from .pricing import eval_burn, eval_mint
from .units import to_internal, to_native


# Forward re-pricing passes allowed per exact-out swap quote.
_MAX_REFINEMENTS = 32


@dataclass(frozen=True)
class MintQuote:
    share: int
    amount_in: int
    cashback: int


@dataclass(frozen=True)
class BurnQuote:
    share: int
    amount_out: int
    cashback: int


@dataclass(frozen=True)
class SwapQuote:
    share: int
    amount_in: int
    amount_out: int
    cashback_in: int
    cashback_out: int


def _require_share(asset_id: AssetId, share: int) -> UFixed:
    if not isinstance(share, int) or isinstance(share, bool):
        raise TypeError("share must be an int")
    if share <= 0:
        raise ZeroShare(asset_id)
    return UFixed(share)


def quote_mint(state: PoolState, asset_id: AssetId, share: int) -> MintQuote:
    """Native amount needed to mint ``share`` pool shares."""
    share_fx = _require_share(asset_id, share)
    context, asset, total_supply = mint_snapshot(state, asset_id)
    require_priced(asset_id, asset)
    utilisable = share_to_quantity(share_fx, total_supply, context.usd_cap, asset.price)
    priced = eval_mint(context, asset, utilisable)
    return MintQuote(
        share=share,
        amount_in=to_native(priced.supplied_quantity, asset.native_decimals, round_up=True),
        cashback=to_native(priced.context.user_cashback_balance, asset.native_decimals),
    )


def quote_mint_exact_in(state: PoolState, asset_id: AssetId, amount_in: int) -> MintQuote:
    """Shares bought by depositing exactly ``amount_in`` native units."""
    context, asset, total_supply = mint_snapshot(state, asset_id)
    require_priced(asset_id, asset)
    supplied = to_internal(amount_in, asset.native_decimals)
    priced = inverse.mint(context, asset, supplied)
    share = usd_to_share(priced.utilisable_quantity * asset.price, total_supply, context.usd_cap)
    return MintQuote(
        share=share.raw,
        amount_in=amount_in,
        cashback=to_native(priced.context.user_cashback_balance, asset.native_decimals),
    )


def quote_burn(state: PoolState, asset_id: AssetId, share: int) -> BurnQuote:
    """Native amount paid out for redeeming ``share`` pool shares."""
    share_fx = _require_share(asset_id, share)
    context, asset, total_supply = burn_snapshot(state, asset_id)
    require_priced(asset_id, asset)
    supplied = share_to_quantity(share_fx, total_supply, context.usd_cap, asset.price)
    priced = eval_burn(context, asset, supplied)
    return BurnQuote(
        share=share,
        amount_out=to_native(priced.utilisable_quantity, asset.native_decimals),
        cashback=to_native(priced.context.user_cashback_balance, asset.native_decimals),
    )


def quote_burn_exact_out(state: PoolState, asset_id: AssetId, amount_out: int) -> BurnQuote:
    """Shares to redeem in order to receive exactly ``amount_out`` native units."""
    context, asset, total_supply = burn_snapshot(state, asset_id)
    require_priced(asset_id, asset)
    utilisable = to_internal(amount_out, asset.native_decimals, round_up=True)
    priced = inverse.burn_rev(context, asset, utilisable)
    share = usd_to_share(priced.supplied_quantity * asset.price, total_supply, context.usd_cap)
    return BurnQuote(
        share=share.raw,
        amount_out=amount_out,
        cashback=to_native(priced.context.user_cashback_balance, asset.native_decimals),
    )


def quote_swap_exact_out(state: PoolState, asset_in: AssetId, asset_out: AssetId, amount_out: int) -> SwapQuote:
    """
    Input needed to receive at least ``amount_out`` of ``asset_out``.

    The output leg is traced first, with the mint leg adding the supplied
    quantity's value at the output price to the cap, which gives the share to
    swap through. The share is then checked against the forward swap pricing
    and raised until the swap delivers ``amount_out``; ``amount_out`` in the
    quote is what that swap delivers.
    """
    if asset_in == asset_out:
        raise AssetMismatch(asset_in)
    context, record_in, record_out, total_supply = swap_snapshot(state, asset_in, asset_out)
    require_priced(asset_in, record_in)
    require_priced(asset_out, record_out)

    utilisable_out = to_internal(amount_out, record_out.native_decimals, round_up=True)
    trace = inverse.burn_trace(context, record_out, record_out.price, utilisable_out)
    usd = trace.supplied_quantity * record_out.price
    share = usd_to_share(usd, total_supply, context.usd_cap).raw + 1

    for _ in range(_MAX_REFINEMENTS):
        legs = price_swap(context, record_in, record_out, total_supply, UFixed(share))
        delivered = to_native(legs.burned.utilisable_quantity, record_out.native_decimals)
        if delivered >= amount_out:
            return SwapQuote(
                share=share,
                amount_in=to_native(legs.minted.supplied_quantity, record_in.native_decimals, round_up=True),
                amount_out=delivered,
                cashback_in=to_native(legs.cashback_in, record_in.native_decimals),
                cashback_out=to_native(legs.burned.context.user_cashback_balance, record_out.native_decimals),
            )
        missing = to_internal(amount_out - delivered, record_out.native_decimals) * record_out.price
        share += usd_to_share(missing, total_supply, context.usd_cap).raw + 1
    raise DeviationOverflow(f"no share amount delivers {amount_out} of {asset_out}")
