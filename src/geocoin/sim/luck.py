from __future__ import annotations

import hashlib
import math
from typing import Callable

from geocoin.sim.board import CellCoord

INITIAL_VALUE_TAG = "initialValue"
MAX_INITIAL_COINS = 100
_UNIT_BITS = 53

LuckFn = Callable[[str], float]


def luck(key: str) -> float:
    """Deterministic pseudorandom value in [0.0, 1.0) derived from ``key``."""
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    draw = int.from_bytes(digest[:8], byteorder="big", signed=False) >> (64 - _UNIT_BITS)
    return draw / float(1 << _UNIT_BITS)


def cell_key(cell: CellCoord, *tags: str) -> str:
    return ",".join([str(cell.i), str(cell.j), *tags])


def spawn_roll(cell: CellCoord, luck_fn: LuckFn = luck) -> float:
    return luck_fn(cell_key(cell))


def has_cache(cell: CellCoord, spawn_probability: float, luck_fn: LuckFn = luck) -> bool:
    return spawn_roll(cell, luck_fn) < spawn_probability


def initial_coin_count(cell: CellCoord, luck_fn: LuckFn = luck) -> int:
    return math.floor(luck_fn(cell_key(cell, INITIAL_VALUE_TAG)) * MAX_INITIAL_COINS)
