"""Exception types for the basket pool engine.

Two independent hierarchies:

- ``FixedPointError`` for arithmetic failures of the 18-decimal number types
  (overflow, underflow, division by zero, out-of-range conversions);
- ``PoolError`` for domain rejections raised by the pricing engines and the
  pool orchestrator. Every ``PoolError`` carries a stable ``kind`` string so
  callers can dispatch on it without importing the concrete classes.

Errors are always raised synchronously and abort the whole call; the
orchestrator only commits state after the engine returns.
"""

from __future__ import annotations


class FixedPointError(ArithmeticError):
    """Base error for fixed-point arithmetic."""


class FixedPointOverflow(FixedPointError):
    """Result exceeds the numeric envelope of its type."""


class FixedPointUnderflow(FixedPointError):
    """Unsigned result would be negative (or sqrt of a negative value)."""


class FixedPointDivisionByZero(FixedPointError):
    """Division by a zero fixed-point value."""


class FixedPointConversionError(FixedPointError):
    """Signed/unsigned conversion outside the target type's range."""


class PoolError(Exception):
    """Base error for pool rejections."""

    kind: str = "PoolError"

    def __init__(self, message: str = "") -> None:
        self.message = message
        super().__init__(f"{self.kind}: {message}" if message else self.kind)


class ZeroShare(PoolError):
    """Caller requested a zero share amount."""

    kind = "ZeroShare"


class ZeroPrice(PoolError):
    """Asset has no price; mutating operations are not possible."""

    kind = "ZeroPrice"


class ZeroTargetShare(PoolError):
    """Asset (or the whole basket) has a zero target share."""

    kind = "ZeroTargetShare"


class ZeroSupplied(PoolError):
    """Computed gross amount is zero."""

    kind = "ZeroSupplied"


class InsufficientQuantity(PoolError):
    """Requested amount exceeds available funds or the pool-held quantity."""

    kind = "InsufficientQuantity"


class DeviationOverflow(PoolError):
    """Operation would reach or pass the configured deviation limit."""

    kind = "DeviationOverflow"


class AssetMismatch(PoolError):
    """Swap requested with identical input and output asset."""

    kind = "AssetMismatch"


class UnknownAsset(PoolError):
    """Asset identifier is not registered in the pool."""

    kind = "UnknownAsset"


class PoolPaused(PoolError):
    """Mutating entry point called while the pool is paused."""

    kind = "PoolPaused"


class PoolInvariantError(PoolError):
    """A solved quantity violates an invariant its solver guarantees."""

    kind = "PoolInvariantError"
