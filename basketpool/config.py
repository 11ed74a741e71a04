"""
Pool definitions loaded from YAML.

Example document::

    fees:
      mint_base_fee: "0.0005"
      deviation_limit: "0.2"
    assets:
      - id: USDC
        price: "1"
        target_share: "1"
        native_decimals: 6

Decimal values must be strings (or ints); YAML floats are rejected so that no
value passes through binary floating point. Missing fee keys take their value
from ``DEFAULT_FEES``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Tuple, Union

import yaml

from .core.admin import register_asset
from .core.fixed_point import UFixed
from .state.assets import INTERNAL_DECIMALS
from .state.pools import AssetId, FeeParams, PoolState


logger = logging.getLogger(__name__)


DEFAULT_FEES = FeeParams(
    mint_base_fee=UFixed.from_decimal("0.0005"),
    burn_base_fee=UFixed.from_decimal("0.0005"),
    swap_base_fee=UFixed.from_decimal("0.0003"),
    half_deviation_fee=UFixed.from_decimal("0.0001"),
    deviation_limit=UFixed.from_decimal("0.2"),
    depeg_base_fee=UFixed.from_decimal("0.5"),
)


@dataclass(frozen=True)
class AssetConfig:
    asset_id: AssetId
    price: UFixed
    target_share: UFixed
    native_decimals: int = INTERNAL_DECIMALS


@dataclass(frozen=True)
class PoolConfig:
    fees: FeeParams = DEFAULT_FEES
    assets: Tuple[AssetConfig, ...] = ()


def _decimal_field(where: str, value: Any) -> UFixed:
    if isinstance(value, (float, bool)) or not isinstance(value, (str, int)):
        raise TypeError(f"{where} must be a decimal string, got {type(value).__name__}")
    return UFixed.from_decimal(value)


def _parse_fees(obj: Any) -> FeeParams:
    if obj is None:
        return DEFAULT_FEES
    if not isinstance(obj, Mapping):
        raise TypeError("fees must be a mapping")
    known = {f.name for f in fields(FeeParams)}
    unknown = set(obj) - known
    if unknown:
        raise ValueError(f"unknown fee keys: {sorted(unknown)}")
    values = {name: getattr(DEFAULT_FEES, name) for name in known}
    for name, raw in obj.items():
        values[name] = _decimal_field(f"fees.{name}", raw)
    return FeeParams(**values)


def _parse_asset(index: int, obj: Any) -> AssetConfig:
    if not isinstance(obj, Mapping):
        raise TypeError(f"assets[{index}] must be a mapping")
    asset_id = obj.get("id")
    if not isinstance(asset_id, str) or not asset_id:
        raise ValueError(f"assets[{index}].id must be a non-empty string")
    decimals = obj.get("native_decimals", INTERNAL_DECIMALS)
    if not isinstance(decimals, int) or isinstance(decimals, bool):
        raise TypeError(f"assets[{index}].native_decimals must be an int")
    return AssetConfig(
        asset_id=asset_id,
        price=_decimal_field(f"assets[{index}].price", obj.get("price")),
        target_share=_decimal_field(f"assets[{index}].target_share", obj.get("target_share")),
        native_decimals=decimals,
    )


def parse_pool_config(obj: Any) -> PoolConfig:
    """Build a ``PoolConfig`` from an already-decoded YAML/JSON document."""
    if not isinstance(obj, Mapping):
        raise TypeError("pool config must be a mapping")
    raw_assets = obj.get("assets") or []
    if not isinstance(raw_assets, list):
        raise TypeError("assets must be a list")
    assets = tuple(_parse_asset(i, a) for i, a in enumerate(raw_assets))
    ids = [a.asset_id for a in assets]
    if len(set(ids)) != len(ids):
        raise ValueError("duplicate asset ids in pool config")
    return PoolConfig(fees=_parse_fees(obj.get("fees")), assets=assets)


def load_pool_config(path: Union[str, Path]) -> PoolConfig:
    obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    config = parse_pool_config(obj)
    logger.info("loaded pool config from %s (%d assets)", path, len(config.assets))
    return config


def initial_state(config: PoolConfig) -> PoolState:
    """Empty pool with every configured asset registered."""
    state = PoolState(fees=config.fees)
    for asset in config.assets:
        state = register_asset(
            state,
            asset.asset_id,
            price=asset.price,
            target_share=asset.target_share,
            native_decimals=asset.native_decimals,
        )
    return state
