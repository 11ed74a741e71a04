"""
Persistent pool state.

``PoolState`` is the committed state between calls: one ``AssetRecord`` per
registered asset plus the pool-wide scalars. It is immutable; every mutating
entry point returns a new ``PoolState``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Mapping

from ..core.errors import UnknownAsset
from ..core.fixed_point import ONE, ZERO, UFixed
from .assets import AssetRecord, OperationKind, PoolContext


AssetId = str


@dataclass(frozen=True)
class FeeParams:
    """Fee and deviation parameters shared by every asset of the pool."""

    mint_base_fee: UFixed = ZERO
    burn_base_fee: UFixed = ZERO
    swap_base_fee: UFixed = ZERO
    half_deviation_fee: UFixed = ZERO
    deviation_limit: UFixed = ONE
    depeg_base_fee: UFixed = ZERO

    def __post_init__(self) -> None:
        for name in (
            "mint_base_fee",
            "burn_base_fee",
            "swap_base_fee",
            "half_deviation_fee",
            "deviation_limit",
            "depeg_base_fee",
        ):
            if not isinstance(getattr(self, name), UFixed):
                raise TypeError(f"{name} must be a UFixed")
        if self.deviation_limit.is_zero():
            raise ValueError("deviation_limit must be positive")
        if self.depeg_base_fee > ONE:
            raise ValueError(f"depeg_base_fee must be <= 1: {self.depeg_base_fee}")

    def base_fee(self, kind: OperationKind) -> UFixed:
        if kind is OperationKind.MINT:
            return self.mint_base_fee
        if kind is OperationKind.BURN:
            return self.burn_base_fee
        if kind is OperationKind.SWAP:
            return self.swap_base_fee
        raise ValueError(f"unknown operation kind: {kind!r}")


@dataclass(frozen=True)
class PoolState:
    assets: Mapping[AssetId, AssetRecord] = field(default_factory=dict)
    usd_cap: UFixed = ZERO
    total_target_shares: UFixed = ZERO
    total_supply: UFixed = ZERO
    fees: FeeParams = FeeParams()
    paused: bool = False

    def __post_init__(self) -> None:
        for name in ("usd_cap", "total_target_shares", "total_supply"):
            if not isinstance(getattr(self, name), UFixed):
                raise TypeError(f"{name} must be a UFixed")
        if not isinstance(self.fees, FeeParams):
            raise TypeError("fees must be FeeParams")
        if not isinstance(self.paused, bool):
            raise TypeError("paused must be a bool")
        for asset_id, record in self.assets.items():
            if not isinstance(asset_id, str) or not asset_id:
                raise ValueError("asset ids must be non-empty strings")
            if not isinstance(record, AssetRecord):
                raise TypeError(f"asset {asset_id!r} must be an AssetRecord")

    def asset(self, asset_id: AssetId) -> AssetRecord:
        record = self.assets.get(asset_id)
        if record is None:
            raise UnknownAsset(asset_id)
        return record

    def context_for(self, kind: OperationKind) -> PoolContext:
        """Fresh per-call context with the base fee selected for ``kind``."""
        return PoolContext(
            usd_cap=self.usd_cap,
            total_target_shares=self.total_target_shares,
            operation_base_fee=self.fees.base_fee(kind),
            half_deviation_fee=self.fees.half_deviation_fee,
            deviation_limit=self.fees.deviation_limit,
            depeg_base_fee=self.fees.depeg_base_fee,
        )

    def with_assets(self, updates: Mapping[AssetId, AssetRecord], **changes: object) -> PoolState:
        """Return a copy with some asset records replaced (and scalar fields changed)."""
        assets: Dict[AssetId, AssetRecord] = dict(self.assets)
        assets.update(updates)
        return replace(self, assets=assets, **changes)  # type: ignore[arg-type]
