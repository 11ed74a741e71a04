"""
Core pricing: fixed-point arithmetic, forward and inverse engines, orchestration.

Only the leaf modules are re-exported here; import the engines from their own
modules (``basketpool.core.pricing``, ``basketpool.core.inverse``,
``basketpool.core.pool``).
"""

from .errors import (
    AssetMismatch,
    DeviationOverflow,
    FixedPointError,
    InsufficientQuantity,
    PoolError,
    PoolInvariantError,
    PoolPaused,
    UnknownAsset,
    ZeroPrice,
    ZeroShare,
    ZeroSupplied,
    ZeroTargetShare,
)
from .fixed_point import ONE, SCALE, ZERO, SFixed, UFixed, solve_quadratic

__all__ = [
    "AssetMismatch",
    "DeviationOverflow",
    "FixedPointError",
    "InsufficientQuantity",
    "PoolError",
    "PoolInvariantError",
    "PoolPaused",
    "UnknownAsset",
    "ZeroPrice",
    "ZeroShare",
    "ZeroSupplied",
    "ZeroTargetShare",
    "ONE",
    "SCALE",
    "ZERO",
    "SFixed",
    "UFixed",
    "solve_quadratic",
]
