from __future__ import annotations

import json
import math
from typing import Any

REQUIRED_SESSION_FIELDS = {"statusText", "inventory", "position", "registry", "trail"}
REQUIRED_SNAPSHOT_FIELDS = {"cell", "tokens"}
REQUIRED_COIN_FIELDS = {"cellId", "serial"}


def _require_int(value: Any, *, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer")
    return value


def _validate_cell_pair(value: Any, *, field_name: str) -> None:
    if not isinstance(value, list) or len(value) != 2:
        raise ValueError(f"{field_name} must be a pair [i, j]")
    _require_int(value[0], field_name=f"{field_name}[0]")
    _require_int(value[1], field_name=f"{field_name}[1]")


def _validate_number(value: Any, *, field_name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{field_name} must be a number")
    try:
        finite = math.isfinite(value)
    except OverflowError:
        finite = False
    if not finite:
        raise ValueError(f"{field_name} must be finite")


def validate_position_payload(payload: Any, *, field_name: str = "position") -> None:
    if not isinstance(payload, dict):
        raise ValueError(f"{field_name} must be an object")
    for axis in ("row", "col"):
        if axis not in payload:
            raise ValueError(f"{field_name} missing {axis}")
        _validate_number(payload[axis], field_name=f"{field_name}.{axis}")


def validate_coin_payload(payload: Any, *, field_name: str = "coin") -> None:
    if not isinstance(payload, dict):
        raise ValueError(f"{field_name} must be an object")
    missing = REQUIRED_COIN_FIELDS - set(payload.keys())
    if missing:
        raise ValueError(f"{field_name} missing fields: {sorted(missing)}")
    _validate_cell_pair(payload["cellId"], field_name=f"{field_name}.cellId")
    serial = _require_int(payload["serial"], field_name=f"{field_name}.serial")
    if serial < 1:
        raise ValueError(f"{field_name}.serial must be >= 1")


def _validate_coin_list(payload: Any, *, field_name: str) -> None:
    if not isinstance(payload, list):
        raise ValueError(f"{field_name} must be a list")
    seen: set[tuple[int, int, int]] = set()
    for index, coin in enumerate(payload):
        validate_coin_payload(coin, field_name=f"{field_name}[{index}]")
        identity = (coin["cellId"][0], coin["cellId"][1], coin["serial"])
        if identity in seen:
            raise ValueError(f"{field_name}[{index}] duplicates coin {identity}")
        seen.add(identity)


def validate_cache_snapshot_payload(payload: Any, *, field_name: str = "snapshot") -> None:
    if not isinstance(payload, dict):
        raise ValueError(f"{field_name} must be an object")
    missing = REQUIRED_SNAPSHOT_FIELDS - set(payload.keys())
    if missing:
        raise ValueError(f"{field_name} missing fields: {sorted(missing)}")
    _validate_cell_pair(payload["cell"], field_name=f"{field_name}.cell")
    _validate_coin_list(payload["tokens"], field_name=f"{field_name}.tokens")


def parse_cache_snapshot(snapshot: str | dict[str, Any], *, field_name: str = "snapshot") -> dict[str, Any]:
    """Decode a serialized cache snapshot and validate its shape."""
    if isinstance(snapshot, str):
        try:
            payload = json.loads(snapshot)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{field_name} is not valid JSON: {exc.msg}") from exc
    else:
        payload = snapshot
    validate_cache_snapshot_payload(payload, field_name=field_name)
    return payload


def validate_session_payload(payload: Any) -> None:
    if not isinstance(payload, dict):
        raise ValueError("session record must be an object")
    missing = REQUIRED_SESSION_FIELDS - set(payload.keys())
    if missing:
        raise ValueError(f"session record missing fields: {sorted(missing)}")

    if not isinstance(payload["statusText"], str):
        raise ValueError("statusText must be a string")

    _validate_coin_list(payload["inventory"], field_name="inventory")
    validate_position_payload(payload["position"], field_name="position")

    trail = payload["trail"]
    if not isinstance(trail, list):
        raise ValueError("trail must be a list")
    for index, waypoint in enumerate(trail):
        validate_position_payload(waypoint, field_name=f"trail[{index}]")

    registry = payload["registry"]
    if not isinstance(registry, list):
        raise ValueError("registry must be a list")
    seen_keys: set[str] = set()
    held_coins = {(coin["cellId"][0], coin["cellId"][1], coin["serial"]) for coin in payload["inventory"]}
    for index, entry in enumerate(registry):
        field_name = f"registry[{index}]"
        if not isinstance(entry, list) or len(entry) != 2:
            raise ValueError(f"{field_name} must be a [cellKey, snapshot] pair")
        cell_key, snapshot = entry
        if not isinstance(cell_key, str) or not cell_key:
            raise ValueError(f"{field_name}.cellKey must be a non-empty string")
        if cell_key in seen_keys:
            raise ValueError(f"{field_name} duplicates cellKey {cell_key}")
        seen_keys.add(cell_key)
        if not isinstance(snapshot, str):
            raise ValueError(f"{field_name}.snapshot must be a string")
        parsed = parse_cache_snapshot(snapshot, field_name=f"{field_name}.snapshot")
        snapshot_key = f"{parsed['cell'][0]},{parsed['cell'][1]}"
        if snapshot_key != cell_key:
            raise ValueError(f"{field_name} cellKey {cell_key} does not match snapshot cell {snapshot_key}")
        for coin in parsed["tokens"]:
            identity = (coin["cellId"][0], coin["cellId"][1], coin["serial"])
            if identity in held_coins:
                raise ValueError(f"{field_name} holds coin {identity} that is already held elsewhere")
            held_coins.add(identity)
