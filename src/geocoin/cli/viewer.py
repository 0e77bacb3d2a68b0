from __future__ import annotations

import sys
from typing import Callable

from geocoin.content.io import MemoryStorage
from geocoin.sim.board import CellCoord
from geocoin.sim.cache import CacheDescription
from geocoin.sim.core import DIRECTION_STEPS, GameConfig, GameSession
from geocoin.sim.hash import session_hash
from geocoin.sim.layers import MapLayer

PLAYER_GLYPH = "@"
CACHE_GLYPH = "C"
EMPTY_GLYPH = "."
RESET_PROMPT = "Reset the whole game? Type 'yes' to confirm: "
REDRAW_COMMANDS = set(DIRECTION_STEPS) | {"move", "load", "reset", "pump"}
HELP_TEXT = (
    "Commands: north | south | east | west | take [i j] | give [i j] | popup [i j] | "
    "sensor | pump | inventory | save | load | reset | show | quit"
)


def cache_popup_lines(description: CacheDescription) -> list[str]:
    cell = description.cell
    lines = [f'There is a pit here at "{cell.i},{cell.j}". It has value {description.value}.', "Coins:"]
    for coin in description.coins:
        lines.append(f"  Coin i:{coin.cell.i} j:{coin.cell.j} serial:{coin.serial}")
    return lines


class AsciiViewer:
    """Read-only projection of session state for terminal display."""

    def render(self, session: GameSession) -> str:
        state = session.state
        radius = session.config.neighborhood_size
        center = session.board.locate(state.position)
        lines = [
            f"position row={state.position.row:.6f} col={state.position.col:.6f} cell={center.key}",
            f"status: {state.status_text}",
            f"inventory={len(state.inventory)} caches={len(session.caches)} known={len(state.registry)} "
            f"sensor={'on' if session.sensor_active else 'off'}",
        ]
        for di in range(radius - 1, -radius - 1, -1):
            row: list[str] = []
            for dj in range(-radius, radius):
                cell = CellCoord(center.i + di, center.j + dj)
                if di == 0 and dj == 0:
                    row.append(PLAYER_GLYPH)
                elif cell.key in session.caches:
                    row.append(CACHE_GLYPH)
                else:
                    row.append(EMPTY_GLYPH)
            lines.append(" ".join(row))
        return "\n".join(lines)


class SessionController:
    """Text command adapter; issues operations to the session but does not own state."""

    def __init__(self, session: GameSession, *, confirm: Callable[[str], str] = input) -> None:
        self.session = session
        self.confirm = confirm

    def _target_cell(self, args: list[str]) -> CellCoord:
        if not args:
            return self.session.cell_at(self.session.state.position)
        if len(args) != 2:
            raise ValueError("expected a cell as: <i> <j>")
        return CellCoord(int(args[0]), int(args[1]))

    def execute(self, raw: str) -> str:
        parts = raw.split()
        if not parts:
            return ""
        command, args = parts[0].lower(), parts[1:]
        try:
            if (command == "move" and len(args) == 1) or command in DIRECTION_STEPS:
                direction = args[0].lower() if command == "move" else command
                position = self.session.move(direction)
                return f"moved {direction} to row={position.row:.6f} col={position.col:.6f}"
            if command in ("take", "give"):
                cell = self._target_cell(args)
                coin = self.session.apply_operation(cell, command)
                if coin is None:
                    return f"{command}: nothing to move"
                return f"{command}: coin {coin.label} | {self.session.state.status_text}"
            if command == "popup":
                cell = self._target_cell(args)
                marker = self.session.map_layer.marker_for_cell(cell)
                description = self.session.map_layer.open_popup(marker.handle) if marker is not None else None
                if description is None:
                    return f"no cache at cell {cell.key}"
                return "\n".join(cache_popup_lines(description))
            if command == "sensor":
                active = self.session.toggle_sensor()
                return f"sensor {'on' if active else 'off'}"
            if command == "pump":
                return f"sensor fixes applied={self.session.pump_sensor()}"
            if command == "inventory":
                coins = self.session.inventory
                if not coins:
                    return "inventory empty"
                return "inventory " + " ".join(coin.label for coin in coins)
            if command == "save":
                self.session.save()
                return f"saved session_hash={session_hash(self.session.state)}"
            if command == "load":
                self.session.load()
                return f"loaded session_hash={session_hash(self.session.state)}"
            if command == "reset":
                if self.session.reset(self.confirm(RESET_PROMPT)):
                    return "reset to initial state"
                return "reset cancelled"
        except (ValueError, OSError) as exc:
            print(f"[geocoin.viewer] {command} failed: {exc}", file=sys.stderr)
            return f"error: {exc}"
        return "unknown command"


def run_ascii_viewer(session: GameSession, *, input_fn: Callable[[str], str] = input) -> int:
    view = AsciiViewer()
    controller = SessionController(session, confirm=input_fn)

    print(f"Geocoin. {HELP_TEXT}")
    print(view.render(session))

    while True:
        try:
            raw = input_fn("> ").strip()
        except EOFError:
            break
        if raw in {"quit", "exit"}:
            break
        if raw == "show":
            print(view.render(session))
            continue
        if raw == "help":
            print(HELP_TEXT)
            continue
        message = controller.execute(raw)
        if message:
            print(message)
        if raw.split() and raw.split()[0].lower() in REDRAW_COMMANDS:
            print(view.render(session))
    return 0


def run_demo() -> int:
    session = GameSession(GameConfig(), storage=MemoryStorage(), map_layer=MapLayer())
    return run_ascii_viewer(session)


if __name__ == "__main__":
    raise SystemExit(run_demo())
