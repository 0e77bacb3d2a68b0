from __future__ import annotations

import json
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable

from geocoin.content.schema import parse_cache_snapshot, validate_coin_payload
from geocoin.sim.board import CellCoord
from geocoin.sim.luck import LuckFn, initial_coin_count, luck


@dataclass(frozen=True)
class Coin:
    """A collectible token; identified by the cell that minted it and its serial."""

    cell: CellCoord
    serial: int

    @property
    def label(self) -> str:
        return f"{self.cell.i}:{self.cell.j}#{self.serial}"

    def to_dict(self) -> dict[str, Any]:
        return {"cellId": self.cell.to_list(), "serial": self.serial}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Coin":
        validate_coin_payload(data)
        return cls(cell=CellCoord.from_list(data["cellId"]), serial=data["serial"])


@dataclass(frozen=True)
class CacheDescription:
    cell: CellCoord
    value: int
    coins: tuple[Coin, ...]


def _compact_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


@dataclass
class Geocache:
    """Live coin queue for one cell.

    The head of ``coins`` is always the next coin to leave. Mutations only ever move coins
    between this queue and an inventory queue, so the total number of coins is conserved.
    """

    cell: CellCoord
    coins: deque[Coin] = field(default_factory=deque)

    @classmethod
    def create(cls, cell: CellCoord, *, luck_fn: LuckFn = luck) -> "Geocache":
        count = initial_coin_count(cell, luck_fn)
        return cls(cell=cell, coins=deque(Coin(cell=cell, serial=serial) for serial in range(1, count + 1)))

    @classmethod
    def from_snapshot(cls, snapshot: str | dict[str, Any]) -> "Geocache":
        payload = parse_cache_snapshot(snapshot)
        cache = cls(cell=CellCoord.from_list(payload["cell"]))
        cache._replace_coins(payload["tokens"])
        return cache

    @property
    def value(self) -> int:
        return len(self.coins)

    def take(self, inventory: deque[Coin]) -> Coin | None:
        """Move the oldest coin of this cache to the back of ``inventory``."""
        if not self.coins:
            return None
        coin = self.coins.popleft()
        inventory.append(coin)
        return coin

    def give(self, inventory: deque[Coin]) -> Coin | None:
        """Move the oldest coin of ``inventory`` to the back of this cache."""
        if not inventory:
            return None
        coin = inventory.popleft()
        self.coins.append(coin)
        return coin

    def to_snapshot_dict(self) -> dict[str, Any]:
        return {
            "cell": self.cell.to_list(),
            "tokens": [coin.to_dict() for coin in self.coins],
        }

    def to_snapshot(self) -> str:
        return _compact_json(self.to_snapshot_dict())

    def restore(self, snapshot: str | dict[str, Any]) -> None:
        payload = parse_cache_snapshot(snapshot)
        snapshot_cell = CellCoord.from_list(payload["cell"])
        if snapshot_cell != self.cell:
            raise ValueError(f"snapshot cell {snapshot_cell.key} does not match cache cell {self.cell.key}")
        self._replace_coins(payload["tokens"])

    def describe(self) -> CacheDescription:
        return CacheDescription(
            cell=self.cell,
            value=self.value,
            coins=tuple(self.coins),
        )

    def _replace_coins(self, tokens: Iterable[dict[str, Any]]) -> None:
        self.coins = deque(
            Coin(cell=CellCoord.from_list(token["cellId"]), serial=token["serial"])
            for token in tokens
        )
