from __future__ import annotations

from decimal import Decimal

import pytest

from basketpool.core.errors import (
    FixedPointConversionError,
    FixedPointDivisionByZero,
    FixedPointOverflow,
    FixedPointUnderflow,
)
from basketpool.core.fixed_point import (
    INT256_MAX,
    ONE,
    SCALE,
    S_ONE,
    UINT256_MAX,
    ZERO,
    SFixed,
    UFixed,
    solve_quadratic,
)


def s(value: str) -> SFixed:
    return SFixed.from_decimal(value)


class TestConstruction:
    def test_from_decimal_scales_exactly(self) -> None:
        assert UFixed.from_decimal("1.5").raw == 15 * 10**17
        assert UFixed.from_decimal("0.000000000000000001").raw == 1
        assert UFixed.from_decimal(Decimal("123456789.123456789123456789")).raw == 123456789123456789123456789

    def test_from_decimal_rounds_half_up_at_18_digits(self) -> None:
        assert UFixed.from_decimal("0.0000000000000000005").raw == 1
        assert UFixed.from_decimal("0.0000000000000000004").raw == 0

    def test_floats_are_rejected(self) -> None:
        with pytest.raises(TypeError):
            UFixed.from_decimal(0.5)  # type: ignore[arg-type]
        with pytest.raises(TypeError):
            UFixed.from_decimal(True)  # type: ignore[arg-type]

    def test_non_finite_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            UFixed.from_decimal("Infinity")

    def test_unsigned_range(self) -> None:
        assert UFixed(UINT256_MAX).raw == UINT256_MAX
        with pytest.raises(FixedPointOverflow):
            UFixed(UINT256_MAX + 1)
        with pytest.raises(FixedPointUnderflow):
            UFixed(-1)

    def test_signed_range(self) -> None:
        with pytest.raises(FixedPointOverflow):
            SFixed(INT256_MAX + 1)
        assert SFixed(-5).is_negative()

    def test_raw_must_be_int(self) -> None:
        with pytest.raises(TypeError):
            UFixed("1")  # type: ignore[arg-type]

    def test_values_are_immutable(self) -> None:
        x = UFixed.from_int(1)
        with pytest.raises(AttributeError):
            x._raw = 2  # type: ignore[misc]

    def test_decimal_round_trip_keeps_all_digits(self) -> None:
        value = Decimal("98765432109876543210.000000000000000001")
        assert UFixed.from_decimal(value).to_decimal() == value


class TestArithmetic:
    def test_mul_and_div(self) -> None:
        assert UFixed.from_int(2) * UFixed.from_decimal("1.5") == UFixed.from_int(3)
        assert (ONE / UFixed.from_int(3)).raw == 333333333333333333

    def test_signed_division_truncates_toward_zero(self) -> None:
        assert (s("-1") / s("3")).raw == -333333333333333333
        assert (SFixed(-1) * s("0.5")).raw == 0

    def test_division_by_zero(self) -> None:
        with pytest.raises(FixedPointDivisionByZero):
            ONE / ZERO

    def test_unsigned_subtraction_underflows(self) -> None:
        with pytest.raises(FixedPointUnderflow):
            ZERO - ONE
        assert ZERO.saturating_sub(ONE) == ZERO
        assert ONE.abs_diff(UFixed.from_int(3)) == UFixed.from_int(2)

    def test_mixing_signedness_requires_explicit_conversion(self) -> None:
        with pytest.raises(TypeError):
            ONE + S_ONE  # type: ignore[operator]
        with pytest.raises(TypeError):
            ONE < S_ONE  # type: ignore[operator]
        assert ONE != S_ONE
        assert ONE.to_signed() == S_ONE

    def test_conversions_are_checked(self) -> None:
        with pytest.raises(FixedPointConversionError):
            SFixed(-1).to_unsigned()
        with pytest.raises(FixedPointConversionError):
            UFixed(INT256_MAX + 1).to_signed()

    def test_sqrt(self) -> None:
        assert UFixed.from_int(4).sqrt() == UFixed.from_int(2)
        assert UFixed.from_int(2).sqrt().raw == 1414213562373095048
        with pytest.raises(FixedPointUnderflow):
            SFixed(-1).sqrt()

    def test_hash_and_str(self) -> None:
        assert {UFixed.from_int(1), ONE} == {ONE}
        assert str(UFixed.from_decimal("2.5")) == "2.500000000000000000"
        assert repr(ONE) == f"UFixed({SCALE})"


class TestSolveQuadratic:
    def test_two_real_roots_ascending(self) -> None:
        roots = solve_quadratic(S_ONE, s("-3"), s("2"))
        assert list(roots) == [s("1"), s("2")]

    def test_negative_discriminant_has_no_roots(self) -> None:
        assert len(solve_quadratic(S_ONE, s("0"), s("1"))) == 0

    def test_double_root(self) -> None:
        roots = solve_quadratic(S_ONE, s("-2"), s("1"))
        assert list(roots) == [s("1")]

    def test_linear_fallback(self) -> None:
        assert list(solve_quadratic(s("0"), s("2"), s("-4"))) == [s("2")]
        assert len(solve_quadratic(s("0"), s("0"), s("1"))) == 0

    def test_roots_with_mixed_signs(self) -> None:
        roots = solve_quadratic(S_ONE, s("1"), s("-6"))
        assert list(roots) == [s("-3"), s("2")]

    def test_small_root_survives_large_linear_term(self) -> None:
        # x^2 - 1e6 x + 1 = 0 has a root near 1e-6 that naive -b - sqrt(disc) loses.
        roots = solve_quadratic(S_ONE, s("-1000000"), S_ONE)
        assert abs(roots[0].raw - 10**12) <= 10

    def test_coefficients_must_be_signed(self) -> None:
        with pytest.raises(TypeError):
            solve_quadratic(ONE, S_ONE, S_ONE)  # type: ignore[arg-type]
