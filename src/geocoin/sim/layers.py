from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from geocoin.sim.board import CellBounds, CellCoord, Position
from geocoin.sim.cache import CacheDescription

PopupFactory = Callable[[], CacheDescription]


@dataclass
class MarkerRecord:
    handle: int
    cell: CellCoord
    bounds: CellBounds
    popup: PopupFactory | None = None


class MapLayer:
    """Map collaborator substrate.

    The session talks to the map only through these hooks. The base class keeps plain
    in-memory bookkeeping, which is enough for headless play and tests; graphical front ends
    subclass it and draw from the same records.
    """

    def __init__(self) -> None:
        self.markers: dict[int, MarkerRecord] = {}
        self.player_position: Position | None = None
        self.trail: list[Position] = []
        self._next_handle = 1

    def add_cache_marker(self, cell: CellCoord, bounds: CellBounds) -> int:
        """Show a cache location and return an opaque handle for it."""
        handle = self._next_handle
        self._next_handle += 1
        self.markers[handle] = MarkerRecord(handle=handle, cell=cell, bounds=bounds)
        return handle

    def bind_popup(self, handle: int, popup: PopupFactory) -> None:
        """Attach popup content; ``popup`` is only called when the popup opens."""
        self.markers[handle].popup = popup

    def remove_marker(self, handle: int) -> None:
        self.markers.pop(handle, None)

    def set_player_position(self, position: Position) -> None:
        self.player_position = position

    def set_trail(self, trail: list[Position]) -> None:
        self.trail = list(trail)

    def open_popup(self, handle: int) -> CacheDescription | None:
        marker = self.markers.get(handle)
        if marker is None or marker.popup is None:
            return None
        return marker.popup()

    def marker_at(self, position: Position) -> MarkerRecord | None:
        for handle in sorted(self.markers):
            marker = self.markers[handle]
            if marker.bounds.contains(position):
                return marker
        return None

    def marker_for_cell(self, cell: CellCoord) -> MarkerRecord | None:
        for marker in self.markers.values():
            if marker.cell == cell:
                return marker
        return None
