from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any

from geocoin.content.schema import parse_cache_snapshot, validate_session_payload
from geocoin.sim.board import CellCoord, Position
from geocoin.sim.cache import Coin

DEFAULT_STATUS_TEXT = "No points yet..."


@dataclass
class SessionState:
    """Everything a session persists: position, inventory, cache registry, trail, status.

    ``registry`` maps a cell key (``"i,j"``) to the latest serialized snapshot of that cell's
    cache and keeps first-discovery order.
    """

    position: Position
    inventory: deque[Coin] = field(default_factory=deque)
    registry: dict[str, str] = field(default_factory=dict)
    trail: list[Position] = field(default_factory=list)
    status_text: str = DEFAULT_STATUS_TEXT

    def has_snapshot(self, cell: CellCoord) -> bool:
        return cell.key in self.registry

    def get_snapshot(self, cell: CellCoord) -> str | None:
        return self.registry.get(cell.key)

    def put_snapshot(self, cell: CellCoord, snapshot: str) -> None:
        self.registry[cell.key] = snapshot

    def total_coins(self) -> int:
        return len(self.inventory) + sum(
            len(parse_cache_snapshot(snapshot)["tokens"]) for snapshot in self.registry.values()
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "statusText": self.status_text,
            "inventory": [coin.to_dict() for coin in self.inventory],
            "position": self.position.to_dict(),
            "registry": [[cell_key, snapshot] for cell_key, snapshot in self.registry.items()],
            "trail": [waypoint.to_dict() for waypoint in self.trail],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionState":
        validate_session_payload(data)
        return cls(
            position=Position.from_dict(data["position"]),
            inventory=deque(Coin.from_dict(row) for row in data["inventory"]),
            registry={str(cell_key): str(snapshot) for cell_key, snapshot in data["registry"]},
            trail=[Position.from_dict(row) for row in data["trail"]],
            status_text=str(data["statusText"]),
        )
