from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


@dataclass(frozen=True, order=True)
class CellCoord:
    """Grid cell address (i, j) on the infinite tile grid."""

    i: int
    j: int

    @property
    def key(self) -> str:
        return f"{self.i},{self.j}"

    def to_list(self) -> list[int]:
        return [self.i, self.j]

    @classmethod
    def from_list(cls, data: Any) -> "CellCoord":
        if not isinstance(data, (list, tuple)) or len(data) != 2:
            raise ValueError("cell must be a pair [i, j]")
        i, j = data
        if isinstance(i, bool) or not isinstance(i, int):
            raise ValueError("cell.i must be an integer")
        if isinstance(j, bool) or not isinstance(j, int):
            raise ValueError("cell.j must be an integer")
        return cls(i=i, j=j)


@dataclass(frozen=True)
class Position:
    """Continuous map position; row grows north, col grows east."""

    row: float
    col: float

    def to_dict(self) -> dict[str, float]:
        return {"row": self.row, "col": self.col}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Position":
        return cls(row=float(data["row"]), col=float(data["col"]))

    def offset(self, d_row: float, d_col: float) -> "Position":
        return Position(row=self.row + d_row, col=self.col + d_col)


@dataclass(frozen=True)
class CellBounds:
    min_corner: Position
    max_corner: Position

    def contains(self, position: Position) -> bool:
        return (
            self.min_corner.row <= position.row < self.max_corner.row
            and self.min_corner.col <= position.col < self.max_corner.col
        )


@dataclass
class Board:
    """Canonicalizes positions into cells.

    Every lookup of the same (i, j) returns the same ``CellCoord`` instance until the
    canonicalization table is cleared. ``cells_near`` clears the table first, so identity is
    only stable within one neighborhood sweep.
    """

    tile_degrees: float
    visibility_radius: int
    _known_cells: dict[str, CellCoord] = field(default_factory=dict, repr=False)

    def __post_init__(self) -> None:
        if not self.tile_degrees > 0:
            raise ValueError("tile_degrees must be > 0")
        if isinstance(self.visibility_radius, bool) or not isinstance(self.visibility_radius, int):
            raise ValueError("visibility_radius must be an integer")
        if self.visibility_radius < 0:
            raise ValueError("visibility_radius must be >= 0")

    def canonical_cell(self, i: int, j: int) -> CellCoord:
        key = f"{i},{j}"
        cell = self._known_cells.get(key)
        if cell is None:
            cell = CellCoord(i=i, j=j)
            self._known_cells[key] = cell
        return cell

    def cell_at(self, position: Position) -> CellCoord:
        cell = self.locate(position)
        return self.canonical_cell(cell.i, cell.j)

    def locate(self, position: Position) -> CellCoord:
        """Cell address of ``position`` without touching the canonicalization table."""
        return CellCoord(
            i=_round_half_up(position.row / self.tile_degrees),
            j=_round_half_up(position.col / self.tile_degrees),
        )

    def bounds_of(self, cell: CellCoord) -> CellBounds:
        min_corner = Position(row=cell.i * self.tile_degrees, col=cell.j * self.tile_degrees)
        return CellBounds(
            min_corner=min_corner,
            max_corner=min_corner.offset(self.tile_degrees, self.tile_degrees),
        )

    def cells_near(self, position: Position, radius: int | None = None) -> list[CellCoord]:
        """Return the ``2r x 2r`` block of cells around ``position``.

        Offsets run over ``[-r, r)`` on both axes, so the block reaches ``r`` cells south and
        west of the center tile but only ``r - 1`` cells north and east.
        """
        if radius is None:
            radius = self.visibility_radius
        self.clear()
        center = self.cell_at(position)
        cells: list[CellCoord] = []
        for di in range(-radius, radius):
            for dj in range(-radius, radius):
                cells.append(self.canonical_cell(center.i + di, center.j + dj))
        return cells

    def clear(self) -> None:
        self._known_cells.clear()

    def known_cell_count(self) -> int:
        return len(self._known_cells)
