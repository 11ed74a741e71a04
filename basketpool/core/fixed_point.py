"""
18-decimal fixed-point arithmetic.

Two numeric types share the same scale but not the same envelope:

- ``UFixed``: unsigned, raw value in ``[0, 2**256 - 1]``. Used for quantities,
  prices, caps and fee accumulators.
- ``SFixed``: signed, raw value in ``[-2**255, 2**255 - 1]``. Used only for the
  intermediate terms of root-finding, which can go negative.

Rounding rules (consensus-style, no floats anywhere):
- ``mul`` forms the full-width product, then truncates toward zero when
  removing one scale factor;
- ``div`` scales the numerator first, then truncates toward zero;
- ``sqrt`` is the floor integer square root of the scaled value.

Only the final result is range-checked, so intermediate products may exceed
256 bits (the same behavior as a 512-bit mul-div).

Conversions between the two types are explicit (``to_signed`` /
``to_unsigned``) and fail closed. Mixing types in arithmetic is a TypeError.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import ClassVar, Iterator, Tuple, TypeVar, Union

from .errors import (
    FixedPointConversionError,
    FixedPointDivisionByZero,
    FixedPointOverflow,
    FixedPointUnderflow,
)


SCALE = 10**18
UINT256_MAX = (1 << 256) - 1
INT256_MAX = (1 << 255) - 1
INT256_MIN = -(1 << 255)

# Enough digits for any 256-bit raw value plus the scale.
_DECIMAL_PREC = 100

_F = TypeVar("_F", bound="_Fixed")


def _div_trunc(a: int, b: int) -> int:
    """Integer division truncating toward zero (Python's ``//`` floors)."""
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


class _Fixed:
    __slots__ = ("_raw",)

    MIN_RAW: ClassVar[int]
    MAX_RAW: ClassVar[int]

    def __init__(self, raw: int) -> None:
        if not isinstance(raw, int) or isinstance(raw, bool):
            raise TypeError(f"{type(self).__name__} raw value must be an int, got {type(raw).__name__}")
        if raw > self.MAX_RAW:
            raise FixedPointOverflow(f"{type(self).__name__} overflow: {raw}")
        if raw < self.MIN_RAW:
            if self.MIN_RAW == 0:
                raise FixedPointUnderflow(f"{type(self).__name__} underflow: {raw}")
            raise FixedPointOverflow(f"{type(self).__name__} overflow: {raw}")
        object.__setattr__(self, "_raw", raw)

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    @property
    def raw(self) -> int:
        return self._raw

    # -- constructors -------------------------------------------------------

    @classmethod
    def from_int(cls: type[_F], value: int) -> _F:
        """Scale a whole number: ``from_int(2)`` is ``2.0``."""
        if not isinstance(value, int) or isinstance(value, bool):
            raise TypeError("value must be an int")
        return cls(value * SCALE)

    @classmethod
    def from_decimal(cls: type[_F], value: Union[str, Decimal, int]) -> _F:
        """Scale a decimal value with half-up rounding at the 18th digit.

        Floats are rejected to keep inputs exact.
        """
        if isinstance(value, float) or isinstance(value, bool):
            raise TypeError("floats are not accepted; pass a str or Decimal")
        try:
            d = Decimal(value)
        except ArithmeticError as exc:
            raise ValueError(f"invalid decimal value: {value!r}") from exc
        if not d.is_finite():
            raise ValueError(f"decimal value must be finite: {value!r}")
        with localcontext() as ctx:
            ctx.prec = _DECIMAL_PREC
            scaled = d.scaleb(18).quantize(Decimal(1), rounding=ROUND_HALF_UP)
        return cls(int(scaled))

    def to_decimal(self) -> Decimal:
        with localcontext() as ctx:
            ctx.prec = _DECIMAL_PREC
            return Decimal(self._raw).scaleb(-18)

    # -- arithmetic ---------------------------------------------------------

    def _same(self: _F, other: object) -> _F:
        if type(other) is not type(self):
            raise TypeError(
                f"cannot combine {type(self).__name__} with {type(other).__name__}; convert explicitly"
            )
        return other  # type: ignore[return-value]

    def add(self: _F, other: _F) -> _F:
        o = self._same(other)
        return type(self)(self._raw + o._raw)

    def sub(self: _F, other: _F) -> _F:
        o = self._same(other)
        return type(self)(self._raw - o._raw)

    def mul(self: _F, other: _F) -> _F:
        o = self._same(other)
        return type(self)(_div_trunc(self._raw * o._raw, SCALE))

    def div(self: _F, other: _F) -> _F:
        o = self._same(other)
        if o._raw == 0:
            raise FixedPointDivisionByZero(f"{type(self).__name__} division by zero")
        return type(self)(_div_trunc(self._raw * SCALE, o._raw))

    def sqrt(self: _F) -> _F:
        if self._raw < 0:
            raise FixedPointUnderflow("sqrt of a negative value")
        return type(self)(math.isqrt(self._raw * SCALE))

    def is_zero(self) -> bool:
        return self._raw == 0

    __add__ = add
    __sub__ = sub
    __mul__ = mul
    __truediv__ = div

    # -- comparisons --------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._raw == other._raw  # type: ignore[attr-defined]

    def __lt__(self: _F, other: _F) -> bool:
        return self._raw < self._same(other)._raw

    def __le__(self: _F, other: _F) -> bool:
        return self._raw <= self._same(other)._raw

    def __gt__(self: _F, other: _F) -> bool:
        return self._raw > self._same(other)._raw

    def __ge__(self: _F, other: _F) -> bool:
        return self._raw >= self._same(other)._raw

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._raw))

    def __bool__(self) -> bool:
        return self._raw != 0

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._raw})"

    def __str__(self) -> str:
        return str(self.to_decimal())


class UFixed(_Fixed):
    """Unsigned 18-decimal fixed point."""

    __slots__ = ()

    MIN_RAW = 0
    MAX_RAW = UINT256_MAX

    def abs_diff(self, other: UFixed) -> UFixed:
        """``|self - other|`` without leaving the unsigned domain."""
        o = self._same(other)
        return UFixed(abs(self._raw - o._raw))

    def saturating_sub(self, other: UFixed) -> UFixed:
        o = self._same(other)
        return UFixed(max(0, self._raw - o._raw))

    def to_signed(self) -> SFixed:
        if self._raw > INT256_MAX:
            raise FixedPointConversionError(f"value does not fit a signed fixed point: {self._raw}")
        return SFixed(self._raw)


class SFixed(_Fixed):
    """Signed 18-decimal fixed point."""

    __slots__ = ()

    MIN_RAW = INT256_MIN
    MAX_RAW = INT256_MAX

    def neg(self) -> SFixed:
        return SFixed(-self._raw)

    def abs(self) -> SFixed:
        return SFixed(abs(self._raw))

    def is_negative(self) -> bool:
        return self._raw < 0

    def to_unsigned(self) -> UFixed:
        if self._raw < 0:
            raise FixedPointConversionError(f"negative value has no unsigned representation: {self._raw}")
        return UFixed(self._raw)

    __neg__ = neg


ZERO = UFixed(0)
ONE = UFixed(SCALE)
S_ZERO = SFixed(0)
S_ONE = SFixed(SCALE)
_S_TWO = SFixed(2 * SCALE)
_S_FOUR = SFixed(4 * SCALE)


@dataclass(frozen=True)
class QuadraticRoots:
    """Real roots of ``a·x² + b·x + c = 0``: zero, one or two, ascending."""

    roots: Tuple[SFixed, ...] = ()

    def __iter__(self) -> Iterator[SFixed]:
        return iter(self.roots)

    def __len__(self) -> int:
        return len(self.roots)

    def __getitem__(self, index: int) -> SFixed:
        return self.roots[index]


def solve_quadratic(a: SFixed, b: SFixed, c: SFixed) -> QuadraticRoots:
    """
    Solve ``a·x² + b·x + c = 0`` over signed fixed point.

    - negative discriminant: no real roots (complex roots are discarded);
    - ``a == 0``: the linear root ``-c/b`` (none when ``b == 0``);
    - otherwise the cancellation-free form
      ``q = -(b + sign(b)·√disc) / 2``, roots ``q/a`` and ``c/q``.
    """
    for name, v in (("a", a), ("b", b), ("c", c)):
        if not isinstance(v, SFixed):
            raise TypeError(f"{name} must be an SFixed")

    if a.is_zero():
        if b.is_zero():
            return QuadraticRoots()
        return QuadraticRoots((c.div(b).neg(),))

    disc = b.mul(b).sub(_S_FOUR.mul(a).mul(c))
    if disc.is_negative():
        return QuadraticRoots()
    if disc.is_zero():
        return QuadraticRoots((b.neg().div(_S_TWO.mul(a)),))

    root_disc = disc.sqrt()
    if b.is_negative():
        q = root_disc.sub(b).div(_S_TWO)
    else:
        q = b.add(root_disc).neg().div(_S_TWO)
    if q.is_zero():
        # b == 0 and the discriminant rounded to zero at 18 decimals.
        return QuadraticRoots((S_ZERO,))

    roots = sorted({q.div(a), c.div(q)}, key=lambda r: r.raw)
    return QuadraticRoots(tuple(roots))
