from __future__ import annotations

import pytest

from basketpool.core.fixed_point import UFixed
from basketpool.core.units import to_internal, to_native


@pytest.mark.parametrize(
    "amount, decimals, raw",
    [
        (1, 6, 10**12),
        (5, 18, 5),
        (7, 0, 7 * 10**18),
        (123, 20, 1),
    ],
)
def test_to_internal(amount: int, decimals: int, raw: int) -> None:
    assert to_internal(amount, decimals) == UFixed(raw)


def test_to_internal_round_up_only_when_inexact() -> None:
    assert to_internal(123, 20, round_up=True) == UFixed(2)
    assert to_internal(200, 20, round_up=True) == UFixed(2)


def test_to_native_rounding() -> None:
    assert to_native(UFixed(10**12 + 1), 6) == 1
    assert to_native(UFixed(10**12 + 1), 6, round_up=True) == 2
    assert to_native(UFixed(10**12), 6, round_up=True) == 1
    assert to_native(UFixed(3), 20) == 300


def test_rejects_bad_amounts() -> None:
    with pytest.raises(ValueError):
        to_internal(-1, 6)
    with pytest.raises(TypeError):
        to_internal(True, 6)  # type: ignore[arg-type]
