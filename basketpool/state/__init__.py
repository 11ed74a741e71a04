"""
State for the basket pool
"""

from .assets import AssetRecord, OperationKind, PoolContext
from .pools import AssetId, FeeParams, PoolState
from .shares import ShareTable

__all__ = [
    "AssetId",
    "AssetRecord",
    "FeeParams",
    "OperationKind",
    "PoolContext",
    "PoolState",
    "ShareTable",
]
