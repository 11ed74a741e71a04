"""
Deterministic canonical encoding of pool state.

Fixed-point fields are encoded as their raw integers so a state dict contains no
floats or decimal strings, and round-trips exactly.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Dict, Mapping

from ..core.fixed_point import UFixed
from .assets import AssetRecord
from .pools import FeeParams, PoolState


CANONICAL_ENCODING_VERSION = 1

_ASSET_FIELDS = ("quantity", "price", "collected_fees", "collected_cashbacks", "target_share")
_FEE_FIELDS = (
    "mint_base_fee",
    "burn_base_fee",
    "swap_base_fee",
    "half_deviation_fee",
    "deviation_limit",
    "depeg_base_fee",
)
_POOL_FIELDS = ("usd_cap", "total_target_shares", "total_supply")


def _reject_floats(value: Any) -> None:
    if isinstance(value, float):
        raise TypeError("floats are not allowed in canonical encoding")
    if isinstance(value, dict):
        for k, v in value.items():
            if not isinstance(k, str):
                raise TypeError("dict keys must be str for canonical encoding")
            _reject_floats(v)
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            _reject_floats(item)


def canonical_json_bytes(value: Any) -> bytes:
    """
    Canonical JSON encoding for hashing.

    Rules:
    - UTF-8
    - sort_keys=True
    - separators=(',', ':') (no whitespace)
    - floats rejected
    """
    _reject_floats(value)
    text = json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    return text.encode("utf-8")


def sha256_hex(data: bytes) -> str:
    return "0x" + hashlib.sha256(data).hexdigest()


def domain_sep_bytes(label: str, version: int = 1) -> bytes:
    """ASCII, NUL-terminated domain separation prefix."""
    if not isinstance(label, str) or not label:
        raise TypeError("label must be a non-empty str")
    if "\x00" in label:
        raise ValueError("label must not contain NUL")
    try:
        label_bytes = label.encode("ascii")
    except UnicodeEncodeError as exc:
        raise ValueError("label must be ASCII") from exc
    if not isinstance(version, int) or isinstance(version, bool) or version <= 0:
        raise ValueError("version must be a positive int")
    return b"basketpool:" + label_bytes + b":v" + str(version).encode("ascii") + b"\x00"


def _raw_int(name: str, value: Any) -> UFixed:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    return UFixed(int(value))


def asset_to_dict(record: AssetRecord) -> Dict[str, int]:
    out = {name: getattr(record, name).raw for name in _ASSET_FIELDS}
    out["native_decimals"] = record.native_decimals
    return out


def asset_from_dict(d: Mapping[str, Any]) -> AssetRecord:
    kwargs: Dict[str, Any] = {name: _raw_int(name, d[name]) for name in _ASSET_FIELDS}
    decimals = d["native_decimals"]
    if not isinstance(decimals, int) or isinstance(decimals, bool):
        raise TypeError("native_decimals must be an int")
    return AssetRecord(native_decimals=decimals, **kwargs)


def state_to_dict(state: PoolState) -> Dict[str, Any]:
    """Serialize a PoolState to a plain JSON-compatible dict."""
    out: Dict[str, Any] = {name: getattr(state, name).raw for name in _POOL_FIELDS}
    out["fees"] = {name: getattr(state.fees, name).raw for name in _FEE_FIELDS}
    out["paused"] = state.paused
    out["assets"] = {asset_id: asset_to_dict(record) for asset_id, record in state.assets.items()}
    return out


def state_from_dict(d: Mapping[str, Any]) -> PoolState:
    """Deserialize a dict produced by ``state_to_dict``. Raises KeyError on missing fields."""
    fees = d["fees"]
    assets = d["assets"]
    if not isinstance(fees, Mapping) or not isinstance(assets, Mapping):
        raise TypeError("fees and assets must be mappings")
    paused = d["paused"]
    if not isinstance(paused, bool):
        raise TypeError("paused must be a bool")
    return PoolState(
        assets={str(asset_id): asset_from_dict(record) for asset_id, record in assets.items()},
        fees=FeeParams(**{name: _raw_int(name, fees[name]) for name in _FEE_FIELDS}),
        paused=paused,
        **{name: _raw_int(name, d[name]) for name in _POOL_FIELDS},
    )


def state_commitment_hex(state: PoolState) -> str:
    """sha256 over the domain-separated canonical encoding of ``state``."""
    payload = domain_sep_bytes("pool_state", CANONICAL_ENCODING_VERSION) + canonical_json_bytes(state_to_dict(state))
    return sha256_hex(payload)
