"""
basketpool: pricing engine for a multi-asset, target-weighted liquidity pool.
"""

__version__ = "0.1.0"
