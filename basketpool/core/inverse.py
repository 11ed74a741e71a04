"""
Inverse pricing engine.

``eval_mint`` maps utilisable -> supplied and ``eval_burn`` maps supplied ->
utilisable. The opposite mappings for the same operation kind cannot be
obtained by division because the depeg fee depends on the deviation produced
by the very amount being solved for. Substituting the deviation formula into
the fee formula gives a quadratic, solved here in signed fixed point.

Derivation (mint, unknown utilisable ``x``, given supplied ``s``):

    k = 1 + f
    share(x) - t = (alpha + beta*x) / (cap + p*x)
        alpha = q*p - t*cap         beta = p*(1 - t)

For a regime with sign ``sigma`` (+1: share above target, -1: below target)
the deviation is ``(sigma*alpha + sigma*beta*x) / (cap + p*x)``. Writing
``A = sigma*alpha``, ``B = sigma*beta``, ``gamma = L*cap - A``,
``delta = L*p - B`` and clearing denominators in

    s = k*x + h*dev(x)*x / (L*(L - dev(x)))

gives ``a*x^2 + b*x + c = 0`` with

    a = L*k*delta + h*B
    b = L*k*gamma + h*A - L*s*delta
    c = -L*s*gamma

Burn (unknown supplied ``y``, given utilisable ``u``) uses
``share(y) - t = (alpha - beta*y) / (cap - p*y)``, ``gamma = L*cap - A``,
``delta = B - L*p``:

    a = L*delta
    b = L*gamma - L*u*k*delta + u*h*B
    c = -(L*u*k*gamma + u*h*A)

A root is admissible for its regime when it lies on the regime's side of the
boundary ``share == t``, is non-negative and leaves a non-negative fee. Because
the burn fee diverges at the limit, ``y - u*k = fee(y)`` can cross twice below
it; the smaller crossing is the one ``eval_burn`` is increasing on, so each
regime contributes its smallest admissible root. Each regime is a ``Regime``
value so it can be inspected and tested on its own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Callable, Iterable, Optional, Tuple

from ..state.assets import AssetRecord, PoolContext
from .errors import DeviationOverflow, InsufficientQuantity, PoolInvariantError, ZeroSupplied
from .fixed_point import ONE, S_ONE, S_ZERO, ZERO, QuadraticRoots, SFixed, UFixed, solve_quadratic
from .pricing import (
    BurnEval,
    MintEval,
    burn_share,
    check_deviation_limit,
    collect_depeg_fee,
    commit_burn,
    commit_mint,
    eval_burn,
    eval_mint,
    mint_share,
    pay_cashback,
    target_ratio,
    usd_share,
)


logger = logging.getLogger(__name__)


@unique
class RegimeSide(Enum):
    """Side of the target share on which a regime's deviation is measured."""

    ABOVE_TARGET = 1
    BELOW_TARGET = -1


@dataclass(frozen=True)
class Regime:
    """One deviation regime: quadratic coefficients plus its admissibility predicate."""

    side: RegimeSide
    a: SFixed
    b: SFixed
    c: SFixed
    accepts: Callable[[SFixed], bool] = field(compare=False, repr=False)

    def roots(self) -> QuadraticRoots:
        return solve_quadratic(self.a, self.b, self.c)

    def valid_roots(self) -> Tuple[SFixed, ...]:
        return tuple(r for r in self.roots() if self.accepts(r))

    def root(self) -> Optional[SFixed]:
        """Smallest admissible root, or None."""
        valid = self.valid_roots()
        return valid[0] if valid else None


@dataclass(frozen=True)
class BurnTrace:
    """
    Cross-asset burn leg priced without touching state.

    - ``cashback``: paid to the caller out of ``collected_cashbacks``;
    - ``fees``: protocol fees (base fee plus the retained depeg share);
    - ``cashback_reserve``: depeg remainder that funds future cashbacks.
    """

    supplied_quantity: UFixed
    cashback: UFixed
    fees: UFixed
    cashback_reserve: UFixed


def _oriented(side: RegimeSide, value: SFixed) -> SFixed:
    return value if side is RegimeSide.ABOVE_TARGET else value.neg()


def _share_gap(asset: AssetRecord, usd_cap: SFixed, target: SFixed) -> Tuple[SFixed, SFixed]:
    """``(alpha, beta)`` with ``share - t`` proportional to ``alpha ± beta*x``."""
    price = asset.price.to_signed()
    alpha = asset.usd_value.to_signed() - target * usd_cap
    beta = price * (S_ONE - target)
    return alpha, beta


# ---------------------------------------------------------------------------
# Regime builders
# ---------------------------------------------------------------------------

def mint_regime(
    context: PoolContext,
    asset: AssetRecord,
    supplied_quantity: UFixed,
    side: RegimeSide,
) -> Regime:
    """Quadratic for the utilisable quantity of a mint with fees, in one regime."""
    cap = context.usd_cap.to_signed()
    price = asset.price.to_signed()
    target = target_ratio(context, asset).to_signed()
    limit = context.deviation_limit.to_signed()
    half_fee = context.half_deviation_fee.to_signed()
    k = (ONE + context.operation_base_fee).to_signed()
    s = supplied_quantity.to_signed()

    alpha, beta = _share_gap(asset, cap, target)
    alpha = _oriented(side, alpha)
    beta = _oriented(side, beta)
    gamma = limit * cap - alpha
    delta = limit * price - beta

    a = limit * k * delta + half_fee * beta
    b = limit * k * gamma + half_fee * alpha - limit * s * delta
    c = (limit * s * gamma).neg()

    def accepts(x: SFixed) -> bool:
        if x.is_negative():
            return False
        if (alpha + beta * x).is_negative():
            return False
        return k * x <= s

    return Regime(side=side, a=a, b=b, c=c, accepts=accepts)


def burn_regime(
    context: PoolContext,
    asset: AssetRecord,
    utilisable_quantity: UFixed,
    side: RegimeSide,
) -> Regime:
    """Quadratic for the supplied quantity of a burn with fees, in one regime."""
    cap = context.usd_cap.to_signed()
    price = asset.price.to_signed()
    target = target_ratio(context, asset).to_signed()
    limit = context.deviation_limit.to_signed()
    half_fee = context.half_deviation_fee.to_signed()
    u = utilisable_quantity.to_signed()
    uk = u * (ONE + context.operation_base_fee).to_signed()

    alpha, beta = _share_gap(asset, cap, target)
    alpha = _oriented(side, alpha)
    beta = _oriented(side, beta)
    gamma = limit * cap - alpha
    delta = beta - limit * price

    a = limit * delta
    b = limit * gamma - limit * uk * delta + u * half_fee * beta
    c = (limit * uk * gamma + u * half_fee * alpha).neg()

    def accepts(y: SFixed) -> bool:
        if y < uk:
            return False
        if (alpha - beta * y).is_negative():
            return False
        if gamma + delta * y <= S_ZERO:
            return False
        return cap - price * y > S_ZERO

    return Regime(side=side, a=a, b=b, c=c, accepts=accepts)


def burn_trace_regime(
    context: PoolContext,
    asset: AssetRecord,
    mint_price: UFixed,
    utilisable_quantity: UFixed,
    side: RegimeSide,
) -> Regime:
    """
    Burn quadratic with the cap shifted by a mint leg on another asset.

    The mint leg adds ``y*m`` to the cap (``m = mint_price``), so the share
    after the burn is ``(q - y)*p / (cap + y*(m - p))``. That keeps the burn
    shape with ``beta' = p*(1 - t) + t*m`` and ``delta = B' + L*(m - p)``, and
    admissible roots must keep ``cap + y*(m - p)`` positive.
    """
    cap = context.usd_cap.to_signed()
    price = asset.price.to_signed()
    shift = mint_price.to_signed() - price
    target = target_ratio(context, asset).to_signed()
    limit = context.deviation_limit.to_signed()
    half_fee = context.half_deviation_fee.to_signed()
    u = utilisable_quantity.to_signed()
    uk = u * (ONE + context.operation_base_fee).to_signed()

    alpha = _oriented(side, asset.usd_value.to_signed() - target * cap)
    beta = _oriented(side, price * (S_ONE - target) + target * mint_price.to_signed())
    gamma = limit * cap - alpha
    delta = beta + limit * shift

    a = limit * delta
    b = limit * gamma - limit * uk * delta + u * half_fee * beta
    c = (limit * uk * gamma + u * half_fee * alpha).neg()

    def accepts(y: SFixed) -> bool:
        if y < uk:
            return False
        if (alpha - beta * y).is_negative():
            return False
        if gamma + delta * y <= S_ZERO:
            return False
        return cap + shift * y > S_ZERO

    return Regime(side=side, a=a, b=b, c=c, accepts=accepts)


def mint_regimes(context: PoolContext, asset: AssetRecord, supplied_quantity: UFixed) -> Tuple[Regime, Regime]:
    return tuple(mint_regime(context, asset, supplied_quantity, side) for side in RegimeSide)  # type: ignore[return-value]


def burn_regimes(context: PoolContext, asset: AssetRecord, utilisable_quantity: UFixed) -> Tuple[Regime, Regime]:
    return tuple(burn_regime(context, asset, utilisable_quantity, side) for side in RegimeSide)  # type: ignore[return-value]


def burn_trace_regimes(
    context: PoolContext,
    asset: AssetRecord,
    mint_price: UFixed,
    utilisable_quantity: UFixed,
) -> Tuple[Regime, Regime]:
    return tuple(  # type: ignore[return-value]
        burn_trace_regime(context, asset, mint_price, utilisable_quantity, side) for side in RegimeSide
    )


def with_fees_candidate(regimes: Iterable[Regime]) -> Optional[UFixed]:
    """
    Sum of the per-regime roots, or None when no regime has one.

    Each regime contributes its smallest admissible root. Regimes are disjoint
    by construction, so in practice at most one contributes; when more than one
    does the roots are still summed.
    """
    found = []
    for regime in regimes:
        root = regime.root()
        if root is not None:
            found.append((regime.side, root))
    if not found:
        return None
    if len(found) > 1:
        logger.warning(
            "%d admissible roots across regimes %s; summing them",
            len(found),
            sorted({side.name for side, _ in found}),
        )
    total = S_ZERO
    for _, root in found:
        total = total + root
    return total.to_unsigned()


# ---------------------------------------------------------------------------
# Same-direction entry points
# ---------------------------------------------------------------------------

def mint_rev(context: PoolContext, asset: AssetRecord, utilisable_quantity: UFixed) -> MintEval:
    """Utilisable -> supplied for a mint (same direction as ``eval_mint``)."""
    return eval_mint(context, asset, utilisable_quantity)


def burn(context: PoolContext, asset: AssetRecord, supplied_quantity: UFixed) -> BurnEval:
    """Supplied -> utilisable for a burn (same direction as ``eval_burn``)."""
    return eval_burn(context, asset, supplied_quantity)


# ---------------------------------------------------------------------------
# Reverse entry points
# ---------------------------------------------------------------------------

def mint(context: PoolContext, asset: AssetRecord, supplied_quantity: UFixed) -> MintEval:
    """
    Supplied -> utilisable for a mint (the reverse of ``eval_mint``).

    The no-fee candidate ``s / (1 + f)`` wins whenever it does not increase
    deviation; otherwise the with-fees root is used and the depeg fee is
    back-computed as ``s - u*(1 + f)``.
    """
    s = supplied_quantity
    if s.is_zero():
        raise ZeroSupplied("mint supplied quantity is zero")
    if context.usd_cap.is_zero():
        return eval_mint(context, asset, s)

    k = ONE + context.operation_base_fee
    target = target_ratio(context, asset)
    dev_zero = usd_share(asset.quantity, asset.price, context.usd_cap).abs_diff(target)

    no_fee = s / k
    dev_no_fee = mint_share(asset, context.usd_cap, no_fee).abs_diff(target)
    if dev_no_fee <= dev_zero:
        logger.debug("reverse mint: no-fee candidate %s keeps deviation at %s", no_fee, dev_no_fee)
        context, asset = pay_cashback(context, asset, dev_zero, dev_no_fee)
        return commit_mint(context, asset, no_fee, s)

    utilisable = with_fees_candidate(mint_regimes(context, asset, s))
    if utilisable is None:
        raise DeviationOverflow("no admissible utilisable quantity for the supplied amount")
    if utilisable.is_zero():
        raise ZeroSupplied("reverse mint resolved to a zero utilisable quantity")
    dev_new = mint_share(asset, context.usd_cap, utilisable).abs_diff(target)
    check_deviation_limit(context, dev_new)

    depeg_fee = s - utilisable * k
    logger.debug("reverse mint: with-fees root %s, depeg fee %s", utilisable, depeg_fee)
    asset = collect_depeg_fee(context, asset, depeg_fee)
    return commit_mint(context, asset, utilisable, s)


def burn_rev(context: PoolContext, asset: AssetRecord, utilisable_quantity: UFixed) -> BurnEval:
    """Utilisable -> supplied for a burn (the reverse of ``eval_burn``)."""
    u = utilisable_quantity
    if u > asset.quantity:
        raise InsufficientQuantity(f"burn of {u} exceeds pool quantity {asset.quantity}")
    if u.is_zero():
        raise ZeroSupplied("burn utilisable quantity is zero")

    k = ONE + context.operation_base_fee
    no_fee = u * k
    if no_fee > asset.quantity:
        raise InsufficientQuantity(f"burn of {no_fee} exceeds pool quantity {asset.quantity}")

    share_no_fee = burn_share(asset, context.usd_cap, no_fee)
    if share_no_fee is None:
        return commit_burn(context, asset, no_fee, u)

    target = target_ratio(context, asset)
    dev_zero = usd_share(asset.quantity, asset.price, context.usd_cap).abs_diff(target)
    dev_no_fee = share_no_fee.abs_diff(target)
    if dev_no_fee <= dev_zero:
        logger.debug("reverse burn: no-fee candidate %s keeps deviation at %s", no_fee, dev_no_fee)
        context, asset = pay_cashback(context, asset, dev_zero, dev_no_fee)
        return commit_burn(context, asset, no_fee, u)

    supplied = with_fees_candidate(burn_regimes(context, asset, u))
    if supplied is None:
        raise DeviationOverflow("no admissible supplied quantity for the utilisable amount")
    if supplied > asset.quantity:
        raise InsufficientQuantity(f"burn of {supplied} exceeds pool quantity {asset.quantity}")
    share_new = burn_share(asset, context.usd_cap, supplied)
    if share_new is None:
        raise PoolInvariantError("admissible burn root empties the pool cap")
    check_deviation_limit(context, share_new.abs_diff(target))

    depeg_fee = supplied - no_fee
    logger.debug("reverse burn: with-fees root %s, depeg fee %s", supplied, depeg_fee)
    asset = collect_depeg_fee(context, asset, depeg_fee)
    return commit_burn(context, asset, supplied, u)


def burn_trace(
    context: PoolContext,
    asset: AssetRecord,
    mint_price: UFixed,
    utilisable_quantity: UFixed,
) -> BurnTrace:
    """
    Reverse burn for the output leg of a swap.

    ``mint_price`` is the USD value the mint leg adds to the cap per unit of
    the burn's supplied quantity, so deviation is measured against
    ``usd_cap + supplied*mint_price``. Nothing is mutated: the caller
    reconciles both legs.
    """
    u = utilisable_quantity
    if u > asset.quantity:
        raise InsufficientQuantity(f"burn of {u} exceeds pool quantity {asset.quantity}")
    if u.is_zero():
        raise ZeroSupplied("burn utilisable quantity is zero")

    k = ONE + context.operation_base_fee
    no_fee = u * k
    if no_fee > asset.quantity:
        raise InsufficientQuantity(f"burn of {no_fee} exceeds pool quantity {asset.quantity}")

    base_fees = u * context.operation_base_fee
    cap = context.usd_cap + no_fee * mint_price
    share_no_fee = burn_share(asset, cap, no_fee)
    if share_no_fee is None:
        return BurnTrace(supplied_quantity=no_fee, cashback=ZERO, fees=base_fees, cashback_reserve=ZERO)

    target = target_ratio(context, asset)
    dev_zero = usd_share(asset.quantity, asset.price, cap).abs_diff(target)
    dev_no_fee = share_no_fee.abs_diff(target)
    if dev_no_fee <= dev_zero:
        paid, _ = pay_cashback(context, asset, dev_zero, dev_no_fee)
        cashback = paid.user_cashback_balance - context.user_cashback_balance
        return BurnTrace(supplied_quantity=no_fee, cashback=cashback, fees=base_fees, cashback_reserve=ZERO)

    supplied = with_fees_candidate(burn_trace_regimes(context, asset, mint_price, u))
    if supplied is None:
        raise DeviationOverflow("no admissible supplied quantity for the swap output")
    if supplied > asset.quantity:
        raise InsufficientQuantity(f"burn of {supplied} exceeds pool quantity {asset.quantity}")
    share_new = burn_share(asset, context.usd_cap + supplied * mint_price, supplied)
    if share_new is None:
        raise PoolInvariantError("admissible burn root empties the pool cap")
    check_deviation_limit(context, share_new.abs_diff(target))

    depeg_fee = supplied - no_fee
    retained = context.depeg_base_fee * depeg_fee
    return BurnTrace(
        supplied_quantity=supplied,
        cashback=ZERO,
        fees=base_fees + retained,
        cashback_reserve=depeg_fee - retained,
    )
