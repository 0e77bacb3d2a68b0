from __future__ import annotations

import math
from dataclasses import dataclass, field

from geocoin.content.io import (
    CURRENT_RECORD_KEY,
    INITIAL_RECORD_KEY,
    KeyValueStorage,
    decode_session_record,
    encode_session_record,
)
from geocoin.sim.board import Board, CellCoord, Position
from geocoin.sim.cache import Coin, Geocache
from geocoin.sim.layers import MapLayer
from geocoin.sim.luck import LuckFn, has_cache, luck
from geocoin.sim.sensor import PositionSensor
from geocoin.sim.world import SessionState

TILE_DEGREES = 1e-4
NEIGHBORHOOD_SIZE = 8
CACHE_SPAWN_PROBABILITY = 0.1
START_POSITION = Position(row=36.9995, col=-122.0533)
RESET_CONFIRMATION = "yes"
TAKE_OPERATION = "take"
GIVE_OPERATION = "give"
CACHE_OPERATIONS = (TAKE_OPERATION, GIVE_OPERATION)
DIRECTION_STEPS: dict[str, tuple[int, int]] = {
    "north": (1, 0),
    "south": (-1, 0),
    "east": (0, 1),
    "west": (0, -1),
}


@dataclass(frozen=True)
class GameConfig:
    tile_degrees: float = TILE_DEGREES
    neighborhood_size: int = NEIGHBORHOOD_SIZE
    spawn_probability: float = CACHE_SPAWN_PROBABILITY
    start_position: Position = field(default=START_POSITION)

    def __post_init__(self) -> None:
        if not isinstance(self.tile_degrees, (int, float)) or not math.isfinite(self.tile_degrees):
            raise ValueError("tile_degrees must be a finite number")
        if self.tile_degrees <= 0:
            raise ValueError("tile_degrees must be > 0")
        if isinstance(self.neighborhood_size, bool) or not isinstance(self.neighborhood_size, int):
            raise ValueError("neighborhood_size must be an integer")
        if self.neighborhood_size < 0:
            raise ValueError("neighborhood_size must be >= 0")
        if not 0.0 <= self.spawn_probability <= 1.0:
            raise ValueError("spawn_probability must be within [0.0, 1.0]")


def status_for_inventory(inventory_size: int) -> str:
    return f"{inventory_size} points accumulated"


class GameSession:
    """Owns the session state and every mutation of it.

    Live ``Geocache`` objects exist only for materialized cells; the registry in
    ``state.registry`` is rewritten after every mutation so a cache can be dropped from the
    map at any time and rebuilt later from its snapshot.
    """

    def __init__(
        self,
        config: GameConfig | None = None,
        *,
        storage: KeyValueStorage | None,
        map_layer: MapLayer | None,
        luck_fn: LuckFn = luck,
        sensor: PositionSensor | None = None,
    ) -> None:
        if storage is None:
            raise ValueError("storage collaborator is required")
        if map_layer is None:
            raise ValueError("map layer collaborator is required")
        self.config = config if config is not None else GameConfig()
        self.storage = storage
        self.map_layer = map_layer
        self.luck_fn = luck_fn
        self.sensor = sensor if sensor is not None else PositionSensor()
        self.sensor_active = False
        self.board = Board(tile_degrees=self.config.tile_degrees, visibility_radius=self.config.neighborhood_size)
        self.state = SessionState(position=self.config.start_position)
        self.caches: dict[str, Geocache] = {}
        self._marker_handles: dict[str, int] = {}

        self._sync_player_layer()
        self.generate_around(self.state.position)
        self.storage.put(INITIAL_RECORD_KEY, encode_session_record(self.state))

    @property
    def inventory(self) -> list[Coin]:
        return list(self.state.inventory)

    def materialized_cells(self) -> list[CellCoord]:
        return sorted(cache.cell for cache in self.caches.values())

    def cache_at(self, cell: CellCoord) -> Geocache | None:
        return self.caches.get(cell.key)

    def cell_at(self, position: Position) -> CellCoord:
        return self.board.cell_at(position)

    def generate_around(self, position: Position) -> list[CellCoord]:
        """Materialize every cache-bearing cell near ``position`` and pause the rest."""
        selected: list[CellCoord] = []
        for cell in self.board.cells_near(position, self.config.neighborhood_size):
            if not has_cache(cell, self.config.spawn_probability, self.luck_fn):
                continue
            selected.append(cell)
            snapshot = self.state.get_snapshot(cell)
            if snapshot is None:
                cache = Geocache.create(cell, luck_fn=self.luck_fn)
                self.state.put_snapshot(cell, cache.to_snapshot())
            else:
                cache = Geocache(cell=cell)
                cache.restore(snapshot)
            self._show_cache(cache)

        selected_keys = {cell.key for cell in selected}
        for cell_key in [key for key in self.caches if key not in selected_keys]:
            self._pause_cache(cell_key)
        return selected

    def apply_operation(self, cell: CellCoord, operation: str) -> Coin | None:
        if operation not in CACHE_OPERATIONS:
            raise ValueError(f"unsupported cache operation: {operation}")
        cache = self.caches.get(cell.key)
        if cache is None:
            raise ValueError(f"no materialized cache at cell {cell.key}")

        if operation == TAKE_OPERATION:
            coin = cache.take(self.state.inventory)
        else:
            coin = cache.give(self.state.inventory)
        self.state.put_snapshot(cache.cell, cache.to_snapshot())
        if coin is not None:
            self.state.status_text = status_for_inventory(len(self.state.inventory))
        return coin

    def take(self, cell: CellCoord) -> Coin | None:
        return self.apply_operation(cell, TAKE_OPERATION)

    def give(self, cell: CellCoord) -> Coin | None:
        return self.apply_operation(cell, GIVE_OPERATION)

    def move(self, direction: str) -> Position:
        step = DIRECTION_STEPS.get(direction)
        if step is None:
            raise ValueError(f"unsupported direction: {direction}")
        before = self.state.position
        after = before.offset(step[0] * self.config.tile_degrees, step[1] * self.config.tile_degrees)
        self.state.trail.extend([before, after])
        self.state.position = after
        self._sync_player_layer()
        self.generate_around(after)
        return after

    def update_position(self, position: Position) -> None:
        if not (math.isfinite(position.row) and math.isfinite(position.col)):
            raise ValueError("position must be finite")
        self.state.position = position
        self._sync_player_layer()
        self.generate_around(position)

    def toggle_sensor(self) -> bool:
        self.sensor_active = not self.sensor_active
        if self.sensor_active:
            self.sensor.start()
        else:
            self.sensor.stop()
        return self.sensor_active

    def pump_sensor(self) -> int:
        if not self.sensor_active:
            return 0
        fixes = self.sensor.poll()
        for position in fixes:
            self.update_position(position)
        return len(fixes)

    def save(self) -> str:
        blob = encode_session_record(self.state)
        self.storage.put(CURRENT_RECORD_KEY, blob)
        return blob

    def load(self) -> None:
        blob = self.storage.get(CURRENT_RECORD_KEY)
        if blob is None:
            raise ValueError(f"no saved session under key '{CURRENT_RECORD_KEY}'")
        self._replace_state(decode_session_record(blob))

    def reset(self, confirmation: str) -> bool:
        if confirmation.strip().lower() != RESET_CONFIRMATION:
            return False
        blob = self.storage.get(INITIAL_RECORD_KEY)
        if blob is None:
            raise ValueError(f"no initial session under key '{INITIAL_RECORD_KEY}'")
        initial_state = decode_session_record(blob)
        self.storage.remove(CURRENT_RECORD_KEY)
        self._replace_state(initial_state)
        return True

    def _replace_state(self, state: SessionState) -> None:
        for handle in self._marker_handles.values():
            self.map_layer.remove_marker(handle)
        self._marker_handles.clear()
        self.caches.clear()
        self.board.clear()

        self.state = state
        self._sync_player_layer()
        for cell_key, snapshot in state.registry.items():
            i, j = (int(part) for part in cell_key.split(","))
            cache = Geocache(cell=self.board.canonical_cell(i, j))
            cache.restore(snapshot)
            self._show_cache(cache)

    def _show_cache(self, cache: Geocache) -> None:
        cell_key = cache.cell.key
        previous_handle = self._marker_handles.pop(cell_key, None)
        if previous_handle is not None:
            self.map_layer.remove_marker(previous_handle)
        self.caches[cell_key] = cache
        handle = self.map_layer.add_cache_marker(cache.cell, self.board.bounds_of(cache.cell))
        self.map_layer.bind_popup(handle, cache.describe)
        self._marker_handles[cell_key] = handle

    def _pause_cache(self, cell_key: str) -> None:
        handle = self._marker_handles.pop(cell_key, None)
        if handle is not None:
            self.map_layer.remove_marker(handle)
        self.caches.pop(cell_key, None)

    def _sync_player_layer(self) -> None:
        self.map_layer.set_player_position(self.state.position)
        self.map_layer.set_trail(self.state.trail)
