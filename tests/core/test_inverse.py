from __future__ import annotations

import logging
from dataclasses import replace

import pytest

from basketpool.core import inverse
from basketpool.core.errors import DeviationOverflow, InsufficientQuantity, PoolInvariantError, ZeroSupplied
from basketpool.core.fixed_point import ONE, S_ONE, ZERO, SFixed, UFixed
from basketpool.core.inverse import (
    Regime,
    RegimeSide,
    burn_regimes,
    burn_trace,
    burn_rev,
    mint_regime,
    mint_regimes,
    mint_rev,
    with_fees_candidate,
)
from basketpool.core.pricing import eval_burn, eval_mint
from basketpool.state.assets import AssetRecord, PoolContext


TOLERANCE = 10**9


def d(value: str) -> UFixed:
    return UFixed.from_decimal(value)


def _context(usd_cap: str, **overrides: UFixed) -> PoolContext:
    params = dict(
        usd_cap=d(usd_cap),
        total_target_shares=ONE,
        operation_base_fee=d("0.0005"),
        half_deviation_fee=d("0.001"),
        deviation_limit=d("0.2"),
        depeg_base_fee=d("0.5"),
    )
    params.update(overrides)
    return PoolContext(**params)


def _asset(quantity: str, price: str = "1", target: str = "0.5", cashbacks: str = "0") -> AssetRecord:
    return AssetRecord(
        quantity=d(quantity),
        price=d(price),
        target_share=d(target),
        collected_cashbacks=d(cashbacks),
    )


def _close(a: UFixed, b: UFixed, tolerance: int = TOLERANCE) -> bool:
    return abs(a.raw - b.raw) <= tolerance


class TestSameDirection:
    def test_mint_rev_matches_eval_mint(self) -> None:
        context, asset = _context("400"), _asset("200")
        assert mint_rev(context, asset, d("10")) == eval_mint(context, asset, d("10"))

    def test_burn_matches_eval_burn(self) -> None:
        context, asset = _context("400"), _asset("200")
        assert inverse.burn(context, asset, d("10")) == eval_burn(context, asset, d("10"))


class TestRegimes:
    def test_balanced_mint_has_one_admissible_regime(self) -> None:
        context, asset = _context("400"), _asset("200")
        supplied = eval_mint(context, asset, d("10")).supplied_quantity
        above, below = mint_regimes(context, asset, supplied)
        assert above.side is RegimeSide.ABOVE_TARGET
        assert below.side is RegimeSide.BELOW_TARGET
        assert len(above.valid_roots()) == 1
        assert below.valid_roots() == ()
        # The second root exceeds the supplied quantity.
        assert len(above.roots()) == 2

    def test_regime_root_satisfies_its_quadratic(self) -> None:
        context, asset = _context("400"), _asset("200")
        regime = mint_regime(context, asset, d("10.01"), RegimeSide.ABOVE_TARGET)
        (x,) = regime.valid_roots()
        residual = regime.a * x * x + regime.b * x + regime.c
        assert abs(residual.raw) < 10**6

    def test_burn_regimes_pick_the_side_the_burn_moves_to(self) -> None:
        above, below = burn_regimes(_context("400"), _asset("200"), d("10"))
        assert above.root() is None
        # A second crossing sits just below the deviation limit, where the fee diverges.
        assert len(below.valid_roots()) == 2
        assert below.root() == below.valid_roots()[0]
        assert below.root() < SFixed.from_decimal("11")

    def test_with_fees_candidate_without_roots(self) -> None:
        never = Regime(side=RegimeSide.ABOVE_TARGET, a=S_ONE, b=S_ONE, c=S_ONE, accepts=lambda x: True)
        assert with_fees_candidate([never]) is None

    def test_with_fees_candidate_takes_smallest_root_per_regime(self) -> None:
        # Roots 1 and 2.
        regime = Regime(
            side=RegimeSide.ABOVE_TARGET,
            a=S_ONE,
            b=SFixed.from_decimal("-3"),
            c=SFixed.from_decimal("2"),
            accepts=lambda x: True,
        )
        assert with_fees_candidate([regime]) == d("1")

    def test_with_fees_candidate_sums_and_warns(self, caplog: pytest.LogCaptureFixture) -> None:
        # Roots 1 and 2 above, 2 and 3 below.
        above = Regime(
            side=RegimeSide.ABOVE_TARGET,
            a=S_ONE,
            b=SFixed.from_decimal("-3"),
            c=SFixed.from_decimal("2"),
            accepts=lambda x: True,
        )
        below = Regime(
            side=RegimeSide.BELOW_TARGET,
            a=S_ONE,
            b=SFixed.from_decimal("-5"),
            c=SFixed.from_decimal("6"),
            accepts=lambda x: True,
        )
        with caplog.at_level(logging.WARNING, logger="basketpool.core.inverse"):
            assert with_fees_candidate([above, below]) == d("3")
        assert "summing" in caplog.text


class TestReverseMint:
    @pytest.mark.parametrize("amount", ["0.001", "1", "10", "25"])
    def test_inverts_eval_mint_when_deviation_grows(self, amount: str) -> None:
        context, asset = _context("400"), _asset("200")
        forward = eval_mint(context, asset, d(amount))
        reverse = inverse.mint(context, asset, forward.supplied_quantity)
        assert _close(reverse.utilisable_quantity, d(amount))
        assert _close(reverse.asset.collected_fees, forward.asset.collected_fees)
        assert _close(reverse.asset.collected_cashbacks, forward.asset.collected_cashbacks)

    def test_inverts_eval_mint_when_deviation_shrinks(self) -> None:
        context, asset = _context("400"), _asset("100", cashbacks="10")
        forward = eval_mint(context, asset, d("100"))
        reverse = inverse.mint(context, asset, forward.supplied_quantity)
        assert reverse.utilisable_quantity == d("100")
        assert reverse.context.user_cashback_balance == forward.context.user_cashback_balance

    def test_off_target_pool(self) -> None:
        # 200 of 300 against a 50% target: the asset is already above target.
        context, asset = _context("300"), _asset("200")
        forward = eval_mint(context, asset, d("10"))
        reverse = inverse.mint(context, asset, forward.supplied_quantity)
        assert _close(reverse.utilisable_quantity, d("10"))

    def test_bootstrap(self) -> None:
        asset = AssetRecord(price=d("2"), target_share=ONE)
        result = inverse.mint(_context("0"), asset, d("100"))
        assert result.utilisable_quantity == d("100")
        assert result.context.usd_cap == d("200")

    def test_zero_supplied(self) -> None:
        with pytest.raises(ZeroSupplied):
            inverse.mint(_context("400"), _asset("200"), ZERO)

    def test_large_supply_is_absorbed_by_the_depeg_fee(self) -> None:
        # The fee diverges as the share approaches 0.7, i.e. 266.67 units minted.
        reverse = inverse.mint(_context("400"), _asset("200"), d("100000"))
        assert d("265") < reverse.utilisable_quantity < d("266.67")


class TestBurnRev:
    @pytest.mark.parametrize("amount", ["0.001", "1", "10", "25"])
    def test_inverts_eval_burn_when_deviation_grows(self, amount: str) -> None:
        context, asset = _context("400"), _asset("200")
        reverse = burn_rev(context, asset, d(amount))
        forward = eval_burn(context, asset, reverse.supplied_quantity)
        assert _close(forward.utilisable_quantity, d(amount))
        assert _close(forward.asset.collected_fees, reverse.asset.collected_fees)

    def test_no_fee_candidate_when_deviation_shrinks(self) -> None:
        context, asset = _context("400"), _asset("300", cashbacks="2")
        reverse = burn_rev(context, asset, d("10"))
        assert reverse.supplied_quantity == d("10") * d("1.0005")
        assert reverse.context.user_cashback_balance > ZERO

    def test_rejects_more_than_held(self) -> None:
        with pytest.raises(InsufficientQuantity):
            burn_rev(_context("400"), _asset("200"), d("201"))
        with pytest.raises(InsufficientQuantity):
            burn_rev(_context("400"), _asset("200"), d("199.99"))

    def test_output_beyond_the_attainable_maximum_overflows(self) -> None:
        # Withdrawable output peaks near 101.7 units before the fee diverges.
        with pytest.raises(DeviationOverflow):
            burn_rev(_context("400"), _asset("200"), d("105"))

    def test_rejects_zero(self) -> None:
        with pytest.raises(ZeroSupplied):
            burn_rev(_context("400"), _asset("200"), ZERO)

    def test_degenerate_burn_of_whole_cap(self) -> None:
        context, asset = _context("100"), _asset("200", target="1")
        reverse = burn_rev(context, asset, d("100"))
        assert reverse.supplied_quantity == d("100.05")
        assert reverse.context.usd_cap == ZERO

    def test_root_that_empties_the_cap_is_an_invariant_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        # A cap below the asset's own value leaves the solved root nowhere to go.
        monkeypatch.setattr(inverse, "with_fees_candidate", lambda regimes: d("150"))
        with pytest.raises(PoolInvariantError):
            burn_rev(_context("100"), _asset("200"), d("1"))
        with pytest.raises(PoolInvariantError):
            burn_trace(_context("100"), _asset("200"), ZERO, d("1"))


class TestBurnTrace:
    def test_without_mint_leg_matches_burn_rev(self) -> None:
        context, asset, u = _context("400"), _asset("200"), d("10")
        trace = burn_trace(context, asset, ZERO, u)
        reverse = burn_rev(context, asset, u)
        assert trace.supplied_quantity == reverse.supplied_quantity
        assert trace.cashback == ZERO
        assert trace.fees + trace.cashback_reserve == (
            reverse.asset.collected_fees + reverse.asset.collected_cashbacks
        )

    @pytest.mark.parametrize("mint_price", ["1", "2", "0.5"])
    def test_measures_deviation_against_cap_grown_by_supplied_value(self, mint_price: str) -> None:
        context, asset, u, m = _context("400"), _asset("200"), d("10"), d(mint_price)
        trace = burn_trace(context, asset, m, u)
        y = trace.supplied_quantity
        settled = eval_burn(replace(context, usd_cap=context.usd_cap + y * m), asset, y)
        assert _close(settled.utilisable_quantity, u)
        assert _close(trace.fees + trace.cashback_reserve, settled.asset.collected_fees + settled.asset.collected_cashbacks)

    def test_reports_cashback_without_mutating(self) -> None:
        context, asset = _context("400"), _asset("300", cashbacks="2")
        trace = burn_trace(context, asset, ONE, d("10"))
        assert trace.cashback > ZERO
        assert trace.cashback_reserve == ZERO
        assert trace.fees == d("10") * d("0.0005")
        assert asset.collected_cashbacks == d("2")
