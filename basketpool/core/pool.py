"""
Pool orchestration (functional core plus a thin stateful shell).

Each entry point:
- builds a fresh ``PoolContext`` and asset snapshot(s) from ``PoolState``,
- converts caller-facing share/native amounts into internal 18-decimal units,
- prices the operation with the forward engine,
- returns a new ``PoolState`` together with the caller-facing deltas.

Nothing is committed when pricing fails. ``Pool`` holds the current state and a
``ShareTable`` and swaps in the new state only after a call fully succeeds.

Rounding at the native-unit boundary favors the pool: amounts the caller pays
round up, amounts paid out round down.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from ..state.assets import AssetRecord, OperationKind, PoolContext
from ..state.pools import AssetId, FeeParams, PoolState
from ..state.shares import Holder, ShareTable
from . import admin
from .errors import AssetMismatch, InsufficientQuantity, PoolPaused, ZeroPrice, ZeroShare, ZeroTargetShare
from .fixed_point import ZERO, UFixed
from .pricing import BurnEval, MintEval, eval_burn, eval_mint
from .units import to_native


logger = logging.getLogger(__name__)


def _require_amount(name: str, value: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ValueError(f"{name} must be non-negative: {value}")
    return value


# ---------------------------------------------------------------------------
# Share conversions
# ---------------------------------------------------------------------------

def share_to_usd(share: UFixed, total_supply: UFixed, usd_cap: UFixed) -> UFixed:
    """USD value of ``share``; one share is one USD while the supply is empty."""
    if total_supply.is_zero():
        return share
    return share * usd_cap / total_supply


def usd_to_share(usd: UFixed, total_supply: UFixed, usd_cap: UFixed) -> UFixed:
    if total_supply.is_zero() or usd_cap.is_zero():
        return usd
    return usd * total_supply / usd_cap


def share_to_quantity(share: UFixed, total_supply: UFixed, usd_cap: UFixed, price: UFixed) -> UFixed:
    """Asset quantity worth ``share`` at ``price``."""
    return share_to_usd(share, total_supply, usd_cap) / price


# ---------------------------------------------------------------------------
# Read-only snapshot accessors
# ---------------------------------------------------------------------------

def mint_snapshot(state: PoolState, asset_id: AssetId) -> Tuple[PoolContext, AssetRecord, UFixed]:
    return state.context_for(OperationKind.MINT), state.asset(asset_id), state.total_supply


def burn_snapshot(state: PoolState, asset_id: AssetId) -> Tuple[PoolContext, AssetRecord, UFixed]:
    return state.context_for(OperationKind.BURN), state.asset(asset_id), state.total_supply


def swap_snapshot(
    state: PoolState,
    asset_in: AssetId,
    asset_out: AssetId,
) -> Tuple[PoolContext, AssetRecord, AssetRecord, UFixed]:
    return (
        state.context_for(OperationKind.SWAP),
        state.asset(asset_in),
        state.asset(asset_out),
        state.total_supply,
    )


# ---------------------------------------------------------------------------
# Pure entry points
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MintResult:
    state: PoolState
    amount_in: int
    refund: int


@dataclass(frozen=True)
class BurnResult:
    state: PoolState
    amount_out: int
    refund: int


@dataclass(frozen=True)
class SwapResult:
    state: PoolState
    amount_in: int
    amount_out: int
    refund_in: int
    refund_out: int


def require_active(state: PoolState) -> None:
    if state.paused:
        raise PoolPaused("pool is paused")


def require_priced(asset_id: AssetId, asset: AssetRecord) -> None:
    if asset.price.is_zero():
        raise ZeroPrice(asset_id)
    if asset.target_share.is_zero():
        raise ZeroTargetShare(asset_id)


def mint(state: PoolState, asset_id: AssetId, share: int, amount_available: int) -> MintResult:
    """
    Deposit ``asset_id`` for ``share`` pool shares.

    ``amount_available`` is what the caller made available to the pool (native
    units); anything not consumed is refunded together with the cashback.
    """
    _require_amount("share", share)
    _require_amount("amount_available", amount_available)
    require_active(state)
    if share == 0:
        raise ZeroShare(asset_id)
    context, asset, total_supply = mint_snapshot(state, asset_id)
    require_priced(asset_id, asset)

    share_fx = UFixed(share)
    utilisable = share_to_quantity(share_fx, total_supply, context.usd_cap, asset.price)
    priced = eval_mint(context, asset, utilisable)

    amount_in = to_native(priced.supplied_quantity, asset.native_decimals, round_up=True)
    if amount_in > amount_available:
        raise InsufficientQuantity(f"mint requires {amount_in}, only {amount_available} available")
    cashback = to_native(priced.context.user_cashback_balance, asset.native_decimals)

    next_state = state.with_assets(
        {asset_id: priced.asset},
        usd_cap=priced.context.usd_cap,
        total_supply=total_supply + share_fx,
    )
    return MintResult(state=next_state, amount_in=amount_in, refund=amount_available - amount_in + cashback)


def burn(state: PoolState, asset_id: AssetId, share: int) -> BurnResult:
    """Redeem ``share`` pool shares for ``asset_id``."""
    _require_amount("share", share)
    require_active(state)
    if share == 0:
        raise ZeroShare(asset_id)
    context, asset, total_supply = burn_snapshot(state, asset_id)
    require_priced(asset_id, asset)

    share_fx = UFixed(share)
    if share_fx > total_supply:
        raise InsufficientQuantity(f"burn of {share} shares exceeds supply {total_supply.raw}")
    supplied = share_to_quantity(share_fx, total_supply, context.usd_cap, asset.price)
    priced = eval_burn(context, asset, supplied)

    next_state = state.with_assets(
        {asset_id: priced.asset},
        usd_cap=priced.context.usd_cap,
        total_supply=total_supply - share_fx,
    )
    return BurnResult(
        state=next_state,
        amount_out=to_native(priced.utilisable_quantity, asset.native_decimals),
        refund=to_native(priced.context.user_cashback_balance, asset.native_decimals),
    )


@dataclass(frozen=True)
class SwapLegs:
    """Both legs of a swap priced against one snapshot; nothing committed."""

    minted: MintEval
    burned: BurnEval
    cashback_in: UFixed


def price_swap(
    context: PoolContext,
    record_in: AssetRecord,
    record_out: AssetRecord,
    total_supply: UFixed,
    share: UFixed,
) -> SwapLegs:
    """
    Mint leg on ``record_in``, then burn leg on ``record_out``.

    The mint leg's cashback is carried out of the context before the burn leg,
    which converts ``share`` against ``total_supply + share`` and the post-mint
    cap, i.e. the mint leg adds ``supplied_out * price_out`` to the cap.
    """
    utilisable_in = share_to_quantity(share, total_supply, context.usd_cap, record_in.price)
    minted = eval_mint(context, record_in, utilisable_in)
    cashback_in = minted.context.user_cashback_balance

    context = replace(minted.context, user_cashback_balance=ZERO)
    supplied_out = share_to_quantity(share, total_supply + share, context.usd_cap, record_out.price)
    burned = eval_burn(context, record_out, supplied_out)
    return SwapLegs(minted=minted, burned=burned, cashback_in=cashback_in)


def swap(
    state: PoolState,
    asset_in: AssetId,
    asset_out: AssetId,
    share: int,
    amount_available: int,
) -> SwapResult:
    """
    Swap through a transient share amount: mint leg on ``asset_in``, burn leg on
    ``asset_out``. The share supply is unchanged by a swap.
    """
    _require_amount("share", share)
    _require_amount("amount_available", amount_available)
    require_active(state)
    if asset_in == asset_out:
        raise AssetMismatch(asset_in)
    if share == 0:
        raise ZeroShare(asset_in)
    context, record_in, record_out, total_supply = swap_snapshot(state, asset_in, asset_out)
    require_priced(asset_in, record_in)
    require_priced(asset_out, record_out)

    legs = price_swap(context, record_in, record_out, total_supply, UFixed(share))
    amount_in = to_native(legs.minted.supplied_quantity, record_in.native_decimals, round_up=True)
    if amount_in > amount_available:
        raise InsufficientQuantity(f"swap requires {amount_in}, only {amount_available} available")

    next_state = state.with_assets(
        {asset_in: legs.minted.asset, asset_out: legs.burned.asset},
        usd_cap=legs.burned.context.usd_cap,
    )
    return SwapResult(
        state=next_state,
        amount_in=amount_in,
        amount_out=to_native(legs.burned.utilisable_quantity, record_out.native_decimals),
        refund_in=amount_available - amount_in + to_native(legs.cashback_in, record_in.native_decimals),
        refund_out=to_native(legs.burned.context.user_cashback_balance, record_out.native_decimals),
    )


# ---------------------------------------------------------------------------
# Stateful shell
# ---------------------------------------------------------------------------

class Pool:
    """
    Holds the committed ``PoolState`` and share balances.

    Every method either commits a complete new state or raises and leaves the
    previous state in place.
    """

    def __init__(self, state: Optional[PoolState] = None, ledger: Optional[ShareTable] = None) -> None:
        self._state = state if state is not None else PoolState()
        self.ledger = ledger if ledger is not None else ShareTable()

    @property
    def state(self) -> PoolState:
        return self._state

    # -- snapshots -------------------------------------------------------------

    def mint_snapshot(self, asset_id: AssetId) -> Tuple[PoolContext, AssetRecord, UFixed]:
        return mint_snapshot(self._state, asset_id)

    def burn_snapshot(self, asset_id: AssetId) -> Tuple[PoolContext, AssetRecord, UFixed]:
        return burn_snapshot(self._state, asset_id)

    def swap_snapshot(self, asset_in: AssetId, asset_out: AssetId) -> Tuple[PoolContext, AssetRecord, AssetRecord, UFixed]:
        return swap_snapshot(self._state, asset_in, asset_out)

    # -- operations ------------------------------------------------------------

    def mint(self, asset_id: AssetId, share: int, recipient: Holder, amount_available: int) -> Tuple[int, int]:
        result = mint(self._state, asset_id, share, amount_available)
        self.ledger.credit(recipient, share)
        self._state = result.state
        logger.info("mint %s shares of %s for %s: in=%d refund=%d", share, asset_id, recipient, result.amount_in, result.refund)
        return result.amount_in, result.refund

    def burn(
        self,
        asset_id: AssetId,
        share: int,
        recipient: Holder,
        owner: Optional[Holder] = None,
    ) -> Tuple[int, int]:
        holder = recipient if owner is None else owner
        held = self.ledger.get(holder)
        if share > held:
            raise InsufficientQuantity(f"{holder} holds {held} shares, cannot burn {share}")
        result = burn(self._state, asset_id, share)
        self.ledger.debit(holder, share)
        self._state = result.state
        logger.info("burn %s shares of %s to %s: out=%d refund=%d", share, asset_id, recipient, result.amount_out, result.refund)
        return result.amount_out, result.refund

    def swap(
        self,
        asset_in: AssetId,
        asset_out: AssetId,
        share: int,
        recipient: Holder,
        amount_available: int,
    ) -> Tuple[int, int, int, int]:
        result = swap(self._state, asset_in, asset_out, share, amount_available)
        self._state = result.state
        logger.info(
            "swap %s -> %s via %s shares for %s: in=%d out=%d",
            asset_in,
            asset_out,
            share,
            recipient,
            result.amount_in,
            result.amount_out,
        )
        return result.amount_in, result.amount_out, result.refund_in, result.refund_out

    # -- administration --------------------------------------------------------

    def register_asset(self, asset_id: AssetId, **kwargs: object) -> None:
        self._state = admin.register_asset(self._state, asset_id, **kwargs)  # type: ignore[arg-type]

    def set_price(self, asset_id: AssetId, price: UFixed) -> None:
        self._state = admin.set_price(self._state, asset_id, price)

    def set_target_share(self, asset_id: AssetId, target_share: UFixed) -> None:
        self._state = admin.set_target_share(self._state, asset_id, target_share)

    def set_fee_params(self, fees: FeeParams) -> None:
        self._state = admin.set_fee_params(self._state, fees)

    def set_paused(self, paused: bool) -> None:
        self._state = admin.set_paused(self._state, paused)

    def withdraw_fees(self, asset_id: AssetId) -> int:
        self._state, amount = admin.withdraw_fees(self._state, asset_id)
        return amount
