"""
Forward pricing engine.

Notation used below (all 18-decimal fixed point):

    q    asset.quantity          p    asset.price
    cap  context.usd_cap         t    asset.target_share / context.total_target_shares
    f    operation_base_fee      h    half_deviation_fee
    L    deviation_limit         b    depeg_base_fee

Mint maps a utilisable quantity ``u`` to the supplied quantity ``s`` the caller
pays; burn maps a supplied quantity ``s`` (removed from the pool) to the
utilisable quantity ``u`` the caller receives.

Deviation is ``|share - t|`` where ``share`` is the asset's USD share of the pool.
If an operation does not increase deviation only the flat base fee applies and
a cashback proportional to the improvement is paid out of
``collected_cashbacks``. Otherwise a depeg fee

    depeg_fee = h * dev_new * u / L / (L - dev_new)

is charged, which diverges as ``dev_new`` approaches ``L``; operations reaching
``L`` are rejected. A ``b`` fraction of the depeg fee is retained as protocol fee,
the remainder funds future cashbacks.

All functions are pure: they return new ``PoolContext`` / ``AssetRecord`` values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from ..state.assets import AssetRecord, PoolContext
from .errors import DeviationOverflow, InsufficientQuantity, ZeroSupplied, ZeroTargetShare
from .fixed_point import ONE, ZERO, UFixed


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MintEval:
    supplied_quantity: UFixed
    utilisable_quantity: UFixed
    context: PoolContext
    asset: AssetRecord


@dataclass(frozen=True)
class BurnEval:
    supplied_quantity: UFixed
    utilisable_quantity: UFixed
    context: PoolContext
    asset: AssetRecord


# ---------------------------------------------------------------------------
# Share / deviation helpers (shared with the inverse engine)
# ---------------------------------------------------------------------------

def target_ratio(context: PoolContext, asset: AssetRecord) -> UFixed:
    """Normalized target share ``t``."""
    if context.total_target_shares.is_zero():
        raise ZeroTargetShare("total target shares is zero")
    return asset.target_share / context.total_target_shares


def usd_share(quantity: UFixed, price: UFixed, usd_cap: UFixed) -> UFixed:
    """USD share of ``quantity`` in a pool of ``usd_cap``; zero for an empty pool."""
    if usd_cap.is_zero():
        return ZERO
    return quantity * price / usd_cap


def mint_share(asset: AssetRecord, usd_cap: UFixed, utilisable_quantity: UFixed) -> UFixed:
    """Asset share after adding ``utilisable_quantity``."""
    return usd_share(asset.quantity + utilisable_quantity, asset.price, usd_cap + utilisable_quantity * asset.price)


def burn_share(asset: AssetRecord, usd_cap: UFixed, supplied_quantity: UFixed) -> Optional[UFixed]:
    """Asset share after removing ``supplied_quantity``; None when the cap would be emptied."""
    removed = supplied_quantity * asset.price
    if usd_cap <= removed:
        return None
    return (asset.quantity - supplied_quantity) * asset.price / (usd_cap - removed)


def depeg_fee_ratio(context: PoolContext, dev_new: UFixed) -> UFixed:
    """Per-unit depeg fee at deviation ``dev_new`` (``dev_new < L`` required)."""
    limit = context.deviation_limit
    return context.half_deviation_fee * dev_new / limit / (limit - dev_new)


def check_deviation_limit(context: PoolContext, dev_new: UFixed) -> None:
    if dev_new >= context.deviation_limit:
        raise DeviationOverflow(f"deviation {dev_new} reaches limit {context.deviation_limit}")


def pay_cashback(
    context: PoolContext,
    asset: AssetRecord,
    dev_old: UFixed,
    dev_new: UFixed,
) -> Tuple[PoolContext, AssetRecord]:
    """Refund the caller part of the cashback reserve, in proportion to the deviation improvement."""
    if dev_old.is_zero():
        return context, asset
    cashback = asset.collected_cashbacks * (dev_old - dev_new) / dev_old
    if cashback.is_zero():
        return context, asset
    logger.debug("cashback %s (deviation %s -> %s)", cashback, dev_old, dev_new)
    return (
        replace(context, user_cashback_balance=context.user_cashback_balance + cashback),
        replace(asset, collected_cashbacks=asset.collected_cashbacks - cashback),
    )


def collect_depeg_fee(context: PoolContext, asset: AssetRecord, depeg_fee: UFixed) -> AssetRecord:
    """Split a depeg fee between protocol fees and the cashback reserve."""
    retained = context.depeg_base_fee * depeg_fee
    return replace(
        asset,
        collected_fees=asset.collected_fees + retained,
        collected_cashbacks=asset.collected_cashbacks + (depeg_fee - retained),
    )


def commit_mint(
    context: PoolContext,
    asset: AssetRecord,
    utilisable_quantity: UFixed,
    supplied_quantity: UFixed,
) -> MintEval:
    u = utilisable_quantity
    return MintEval(
        supplied_quantity=supplied_quantity,
        utilisable_quantity=u,
        context=replace(context, usd_cap=context.usd_cap + u * asset.price),
        asset=replace(
            asset,
            quantity=asset.quantity + u,
            collected_fees=asset.collected_fees + u * context.operation_base_fee,
        ),
    )


def commit_burn(
    context: PoolContext,
    asset: AssetRecord,
    supplied_quantity: UFixed,
    utilisable_quantity: UFixed,
) -> BurnEval:
    s = supplied_quantity
    return BurnEval(
        supplied_quantity=s,
        utilisable_quantity=utilisable_quantity,
        # Rounding in the incremental cap can leave it a few wei below q*p.
        context=replace(context, usd_cap=context.usd_cap.saturating_sub(s * asset.price)),
        asset=replace(
            asset,
            quantity=asset.quantity - s,
            collected_fees=asset.collected_fees + utilisable_quantity * context.operation_base_fee,
        ),
    )


# ---------------------------------------------------------------------------
# Forward engine
# ---------------------------------------------------------------------------

def eval_mint(context: PoolContext, asset: AssetRecord, utilisable_quantity: UFixed) -> MintEval:
    """
    Price a deposit: utilisable (net) quantity -> supplied (gross) quantity.

    The first deposit into an empty pool (``usd_cap == 0``) is frictionless.
    """
    u = utilisable_quantity

    if context.usd_cap.is_zero():
        if u.is_zero():
            raise ZeroSupplied("empty bootstrap deposit")
        logger.debug("bootstrap mint of %s at price %s", u, asset.price)
        return MintEval(
            supplied_quantity=u,
            utilisable_quantity=u,
            context=replace(context, usd_cap=u * asset.price),
            asset=replace(asset, quantity=asset.quantity + u),
        )

    target = target_ratio(context, asset)
    dev_old = usd_share(asset.quantity, asset.price, context.usd_cap).abs_diff(target)
    dev_new = mint_share(asset, context.usd_cap, u).abs_diff(target)

    supplied = u * (ONE + context.operation_base_fee)
    if dev_new <= dev_old:
        context, asset = pay_cashback(context, asset, dev_old, dev_new)
    else:
        check_deviation_limit(context, dev_new)
        limit = context.deviation_limit
        depeg_fee = context.half_deviation_fee * dev_new * u / limit / (limit - dev_new)
        logger.debug("mint depeg fee %s (deviation %s -> %s)", depeg_fee, dev_old, dev_new)
        asset = collect_depeg_fee(context, asset, depeg_fee)
        supplied = supplied + depeg_fee

    if supplied.is_zero():
        raise ZeroSupplied("mint supplied quantity is zero")
    return commit_mint(context, asset, u, supplied)


def eval_burn(context: PoolContext, asset: AssetRecord, supplied_quantity: UFixed) -> BurnEval:
    """
    Price a withdrawal: supplied (gross) quantity -> utilisable (net) quantity.

    When the withdrawal would empty the pool's USD cap, deviation is undefined and
    only the base fee applies.
    """
    s = supplied_quantity
    if s > asset.quantity:
        raise InsufficientQuantity(f"burn of {s} exceeds pool quantity {asset.quantity}")
    if s.is_zero():
        raise ZeroSupplied("burn supplied quantity is zero")

    k = ONE + context.operation_base_fee
    share_new = burn_share(asset, context.usd_cap, s)
    if share_new is None:
        logger.debug("burn empties the pool cap; base fee only")
        return commit_burn(context, asset, s, s / k)

    target = target_ratio(context, asset)
    dev_old = usd_share(asset.quantity, asset.price, context.usd_cap).abs_diff(target)
    dev_new = share_new.abs_diff(target)

    if dev_new <= dev_old:
        utilisable = s / k
        context, asset = pay_cashback(context, asset, dev_old, dev_new)
    else:
        check_deviation_limit(context, dev_new)
        fee_ratio = depeg_fee_ratio(context, dev_new)
        utilisable = s / (ONE + fee_ratio + context.operation_base_fee)
        depeg_fee = s - utilisable * k
        logger.debug("burn depeg fee %s (deviation %s -> %s)", depeg_fee, dev_old, dev_new)
        asset = collect_depeg_fee(context, asset, depeg_fee)

    return commit_burn(context, asset, s, utilisable)
