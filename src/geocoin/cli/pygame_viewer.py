from __future__ import annotations

import argparse
import importlib.metadata
import os
import platform
import sys
from dataclasses import dataclass
from typing import Any

from geocoin.cli.viewer import cache_popup_lines
from geocoin.content.io import CURRENT_RECORD_KEY, JsonFileStorage, load_track_json
from geocoin.sim.board import CellBounds, CellCoord, Position
from geocoin.sim.core import (
    CACHE_SPAWN_PROBABILITY,
    GIVE_OPERATION,
    NEIGHBORHOOD_SIZE,
    TAKE_OPERATION,
    TILE_DEGREES,
    GameConfig,
    GameSession,
)
from geocoin.sim.hash import registry_hash, session_hash
from geocoin.sim.layers import MapLayer
from geocoin.sim.sensor import ReplaySensor

WINDOW_SIZE = (1280, 800)
PANEL_WIDTH = 440
VIEWPORT_MARGIN = 12
PANEL_MARGIN = 12
TILE_PIXELS = 28
SENSOR_POLL_SECONDS = 0.5
POPUP_COIN_LINES = 18
BUTTON_SIZE = (120, 36)
DEFAULT_STORAGE_DIR = "saves"

BACKGROUND_COLOR = (17, 18, 25)
GRID_COLOR = (35, 35, 40)
CACHE_FILL_COLOR = (80, 160, 255)
CACHE_EDGE_COLOR = (20, 60, 120)
SELECTED_CACHE_COLOR = (255, 200, 90)
TRAIL_COLOR = (210, 85, 85)
PLAYER_COLOR = (255, 243, 130)
TEXT_COLOR = (240, 240, 240)
PANEL_COLOR = (28, 30, 40)
BUTTON_COLOR = (64, 68, 84)

KEY_DIRECTIONS: dict[str, str] = {
    "up": "north",
    "w": "north",
    "down": "south",
    "s": "south",
    "right": "east",
    "d": "east",
    "left": "west",
    "a": "west",
}

pygame: Any | None = None

Rect = tuple[int, int, int, int]


@dataclass
class PopupState:
    """Open popup bound to one map marker; content is pulled from the marker on each draw."""

    handle: int
    cell: CellCoord


@dataclass
class ConfirmPromptState:
    text: str = ""


def _viewport_rect() -> Rect:
    width = WINDOW_SIZE[0] - PANEL_WIDTH - VIEWPORT_MARGIN * 2
    return (VIEWPORT_MARGIN, VIEWPORT_MARGIN, width, WINDOW_SIZE[1] - VIEWPORT_MARGIN * 2)


def _panel_rect() -> Rect:
    x = WINDOW_SIZE[0] - PANEL_WIDTH + PANEL_MARGIN - VIEWPORT_MARGIN
    return (x, VIEWPORT_MARGIN, PANEL_WIDTH - PANEL_MARGIN, WINDOW_SIZE[1] - VIEWPORT_MARGIN * 2)


def _rect_contains(rect: Rect, pixel: tuple[int, int]) -> bool:
    x, y, width, height = rect
    return x <= pixel[0] < x + width and y <= pixel[1] < y + height


def _world_to_pixel(
    position: Position,
    focus: Position,
    center: tuple[float, float],
    tile_degrees: float,
) -> tuple[float, float]:
    x = center[0] + (position.col - focus.col) / tile_degrees * TILE_PIXELS
    y = center[1] - (position.row - focus.row) / tile_degrees * TILE_PIXELS
    return (x, y)


def _pixel_to_world(
    pixel: tuple[int, int],
    focus: Position,
    center: tuple[float, float],
    tile_degrees: float,
) -> Position:
    col = focus.col + (pixel[0] - center[0]) / TILE_PIXELS * tile_degrees
    row = focus.row - (pixel[1] - center[1]) / TILE_PIXELS * tile_degrees
    return Position(row=row, col=col)


def _bounds_to_pixel_rect(
    bounds: CellBounds,
    focus: Position,
    center: tuple[float, float],
    tile_degrees: float,
) -> Rect:
    left, top = _world_to_pixel(
        Position(row=bounds.max_corner.row, col=bounds.min_corner.col), focus, center, tile_degrees
    )
    right, bottom = _world_to_pixel(
        Position(row=bounds.min_corner.row, col=bounds.max_corner.col), focus, center, tile_degrees
    )
    return (round(left), round(top), max(1, round(right - left)), max(1, round(bottom - top)))


def _popup_button_rects(panel: Rect) -> dict[str, Rect]:
    x, y, _, height = panel
    button_y = y + height - BUTTON_SIZE[1] - PANEL_MARGIN
    return {
        TAKE_OPERATION: (x + PANEL_MARGIN, button_y, BUTTON_SIZE[0], BUTTON_SIZE[1]),
        GIVE_OPERATION: (x + PANEL_MARGIN * 2 + BUTTON_SIZE[0], button_y, BUTTON_SIZE[0], BUTTON_SIZE[1]),
    }


def _draw_map(
    screen: Any,
    session: GameSession,
    center: tuple[float, float],
    popup: PopupState | None,
    *,
    clip_rect: Rect,
) -> None:
    focus = session.state.position
    tile_degrees = session.config.tile_degrees
    old_clip = screen.get_clip()
    screen.set_clip(pygame.Rect(clip_rect))

    for marker in session.map_layer.markers.values():
        rect = pygame.Rect(_bounds_to_pixel_rect(marker.bounds, focus, center, tile_degrees))
        fill = SELECTED_CACHE_COLOR if popup is not None and popup.handle == marker.handle else CACHE_FILL_COLOR
        pygame.draw.rect(screen, fill, rect)
        pygame.draw.rect(screen, CACHE_EDGE_COLOR, rect, 1)

    trail_points = [_world_to_pixel(waypoint, focus, center, tile_degrees) for waypoint in session.map_layer.trail]
    if len(trail_points) >= 2:
        pygame.draw.lines(screen, TRAIL_COLOR, False, trail_points, 2)

    if session.map_layer.player_position is not None:
        x, y = _world_to_pixel(session.map_layer.player_position, focus, center, tile_degrees)
        pygame.draw.circle(screen, PLAYER_COLOR, (int(x), int(y)), 8)
        pygame.draw.circle(screen, GRID_COLOR, (int(x), int(y)), 8, 1)
    screen.set_clip(old_clip)


def _draw_hud(screen: Any, session: GameSession, font: Any, status_message: str | None) -> None:
    state = session.state
    lines = [
        f"row={state.position.row:.6f} col={state.position.col:.6f} | inventory={len(state.inventory)} "
        f"| sensor={'on' if session.sensor_active else 'off'}",
        state.status_text,
        "WASD/arrows move | click cache | G sensor | F5 save | F9 load | F12 reset | ESC quit",
    ]
    if status_message:
        lines.append(f"status: {status_message}")
    y = 12
    for line in lines:
        surface = font.render(line, True, TEXT_COLOR)
        screen.blit(surface, (VIEWPORT_MARGIN + 8, y))
        y += 22


def _draw_popup_panel(screen: Any, session: GameSession, font: Any, popup: PopupState | None) -> None:
    panel = _panel_rect()
    pygame.draw.rect(screen, PANEL_COLOR, pygame.Rect(panel))
    x, y = panel[0] + PANEL_MARGIN, panel[1] + PANEL_MARGIN
    if popup is None:
        screen.blit(font.render("Click a cache to open it.", True, TEXT_COLOR), (x, y))
        return
    description = session.map_layer.open_popup(popup.handle)
    if description is None:
        return
    lines = cache_popup_lines(description)
    hidden = len(lines) - 2 - POPUP_COIN_LINES
    lines = lines[: 2 + POPUP_COIN_LINES]
    if hidden > 0:
        lines.append(f"  ... {hidden} more")
    for line in lines:
        screen.blit(font.render(line, True, TEXT_COLOR), (x, y))
        y += 20
    for label, rect in _popup_button_rects(panel).items():
        pygame.draw.rect(screen, BUTTON_COLOR, pygame.Rect(rect))
        screen.blit(font.render(label, True, TEXT_COLOR), (rect[0] + 12, rect[1] + 8))


def _draw_confirm_prompt(screen: Any, font: Any, prompt: ConfirmPromptState | None) -> None:
    if prompt is None:
        return
    viewport = _viewport_rect()
    rect = pygame.Rect(viewport[0] + 40, viewport[1] + viewport[3] // 2 - 40, viewport[2] - 80, 80)
    pygame.draw.rect(screen, PANEL_COLOR, rect)
    pygame.draw.rect(screen, TEXT_COLOR, rect, 1)
    screen.blit(font.render("Reset everything? Type yes and press Enter:", True, TEXT_COLOR), (rect.x + 12, rect.y + 12))
    screen.blit(font.render(f"> {prompt.text}_", True, TEXT_COLOR), (rect.x + 12, rect.y + 44))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m geocoin.cli.pygame_viewer",
        description="Run the Geocoin pygame map viewer.",
    )
    parser.add_argument(
        "--storage-dir",
        default=DEFAULT_STORAGE_DIR,
        help="Directory holding the initial/current session records.",
    )
    parser.add_argument("--track", help="Optional recorded track JSON replayed by the position sensor.")
    parser.add_argument("--resume", action="store_true", help="Load the current saved session on startup.")
    parser.add_argument("--tile-degrees", type=float, default=TILE_DEGREES, help="Tile edge length in degrees.")
    parser.add_argument(
        "--neighborhood-size",
        type=int,
        default=NEIGHBORHOOD_SIZE,
        help="Cells generated on each side of the player.",
    )
    parser.add_argument(
        "--spawn-probability",
        type=float,
        default=CACHE_SPAWN_PROBABILITY,
        help="Chance that a cell holds a cache.",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Force SDL dummy video driver for CI/testing and exit without opening a real window.",
    )
    return parser


def _config_from_args(args: argparse.Namespace) -> GameConfig:
    return GameConfig(
        tile_degrees=args.tile_degrees,
        neighborhood_size=args.neighborhood_size,
        spawn_probability=args.spawn_probability,
    )


def _env_flag_enabled(var_name: str) -> bool:
    return os.environ.get(var_name, "").strip().lower() in {"1", "true", "yes", "on"}


def _print_startup_banner() -> None:
    try:
        pygame_version = importlib.metadata.version("pygame")
    except importlib.metadata.PackageNotFoundError:
        pygame_version = "not-installed"
    print(
        "[geocoin.viewer] startup "
        f"python={platform.python_version()} "
        f"pygame={pygame_version} "
        f"platform={platform.platform()}"
    )
    for name in ("SDL_VIDEODRIVER", "SDL_AUDIODRIVER", "SDL_VIDEO_WINDOW_POS"):
        value = os.environ.get(name, "<unset>")
        print(f"[geocoin.viewer] env {name}={value}")


def _ensure_pygame_imported() -> Any:
    global pygame
    if pygame is None:
        import pygame as pygame_module

        pygame = pygame_module
    return pygame


def build_viewer_session(
    config: GameConfig,
    *,
    storage_dir: str,
    track_path: str | None = None,
    resume: bool = False,
    map_layer: MapLayer | None = None,
) -> GameSession:
    sensor = ReplaySensor(load_track_json(track_path)) if track_path else None
    session = GameSession(
        config,
        storage=JsonFileStorage(storage_dir),
        map_layer=map_layer if map_layer is not None else MapLayer(),
        sensor=sensor,
    )
    if resume and session.storage.get(CURRENT_RECORD_KEY) is not None:
        session.load()
        print(f"[geocoin.viewer] resumed storage_dir={storage_dir} session_hash={session_hash(session.state)}")
    return session


def _save_viewer_session(session: GameSession, storage_dir: str) -> None:
    session.save()
    print(
        "[geocoin.viewer] saved "
        f"storage_dir={storage_dir} "
        f"caches={len(session.state.registry)} "
        f"registry_hash={registry_hash(session.state)} "
        f"session_hash={session_hash(session.state)}"
    )


def _load_viewer_session(session: GameSession, storage_dir: str) -> None:
    session.load()
    print(
        "[geocoin.viewer] loaded "
        f"storage_dir={storage_dir} "
        f"caches={len(session.state.registry)} "
        f"session_hash={session_hash(session.state)}"
    )


def run_pygame_viewer(
    config: GameConfig | None = None,
    *,
    storage_dir: str = DEFAULT_STORAGE_DIR,
    track_path: str | None = None,
    resume: bool = False,
    headless: bool = False,
) -> int:
    if headless:
        os.environ["SDL_VIDEODRIVER"] = "dummy"
        print("[geocoin.viewer] warning: headless mode active; no window will open.")

    _print_startup_banner()
    pygame_module = _ensure_pygame_imported()

    try:
        pygame_module.init()
    except Exception as exc:
        print(
            "[geocoin.viewer] failed during pygame.init(): "
            f"{exc}. Hint: verify a working SDL video driver (set SDL_VIDEODRIVER=dummy for headless mode).",
            file=sys.stderr,
        )
        return 1

    try:
        session = build_viewer_session(
            config if config is not None else GameConfig(),
            storage_dir=storage_dir,
            track_path=track_path,
            resume=resume,
        )
    except Exception as exc:
        print(f"[geocoin.viewer] failed to initialize session: {exc}", file=sys.stderr)
        pygame_module.quit()
        return 1

    try:
        pygame_module.display.set_caption("Geocoin")
        screen = pygame_module.display.set_mode(WINDOW_SIZE)
    except Exception as exc:
        print(
            "[geocoin.viewer] failed during pygame.display.set_mode(...): "
            f"{exc}. Hint: GUI sessions require a valid display; use --headless or GEOCOIN_HEADLESS=1.",
            file=sys.stderr,
        )
        pygame_module.quit()
        return 1

    driver_name = pygame_module.display.get_driver()
    print(f"[geocoin.viewer] display initialized: {driver_name}, window size={WINDOW_SIZE}")

    if headless:
        session.pump_sensor()
        pygame_module.quit()
        return 0

    clock = pygame_module.time.Clock()
    font = pygame_module.font.SysFont("consolas", 18)
    panel_font = pygame_module.font.SysFont("consolas", 15)

    viewport_rect = _viewport_rect()
    world_center = (viewport_rect[0] + viewport_rect[2] / 2.0, viewport_rect[1] + viewport_rect[3] / 2.0)
    popup: PopupState | None = None
    prompt: ConfirmPromptState | None = None
    status_message: str | None = None
    sensor_accumulator = 0.0
    running = True

    def run_action(label: str, action: Any) -> Any:
        nonlocal status_message
        try:
            return action()
        except (ValueError, OSError) as exc:
            status_message = f"{label} failed: {exc}"
            print(f"[geocoin.viewer] {label} failed: {exc}", file=sys.stderr)
            return None

    while running:
        dt = clock.tick(60) / 1000.0

        for event in pygame_module.event.get():
            if event.type == pygame_module.QUIT:
                running = False
            elif event.type == pygame_module.KEYDOWN and prompt is not None:
                if event.key == pygame_module.K_ESCAPE:
                    prompt = None
                    status_message = "reset cancelled"
                elif event.key == pygame_module.K_RETURN:
                    confirmation = prompt.text
                    prompt = None
                    performed = run_action("reset", lambda: session.reset(confirmation))
                    if performed:
                        popup = None
                        status_message = "reset to initial state"
                    elif performed is not None:
                        status_message = "reset cancelled"
                elif event.key == pygame_module.K_BACKSPACE:
                    prompt.text = prompt.text[:-1]
                elif event.unicode and event.unicode.isprintable():
                    prompt.text += event.unicode
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_ESCAPE:
                running = False
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_F5:
                status_message = "saved"
                run_action("save", lambda: _save_viewer_session(session, storage_dir))
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_F9:
                popup = None
                status_message = "loaded"
                run_action("load", lambda: _load_viewer_session(session, storage_dir))
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_F12:
                prompt = ConfirmPromptState()
            elif event.type == pygame_module.KEYDOWN and event.key == pygame_module.K_g:
                status_message = f"sensor {'on' if session.toggle_sensor() else 'off'}"
            elif event.type == pygame_module.KEYDOWN and pygame_module.key.name(event.key) in KEY_DIRECTIONS:
                direction = KEY_DIRECTIONS[pygame_module.key.name(event.key)]
                run_action("move", lambda: session.move(direction))
            elif event.type == pygame_module.MOUSEBUTTONDOWN and event.button == 1:
                if popup is not None and _rect_contains(_panel_rect(), event.pos):
                    for operation, rect in _popup_button_rects(_panel_rect()).items():
                        if _rect_contains(rect, event.pos):
                            cell = popup.cell
                            run_action(operation, lambda: session.apply_operation(cell, operation))
                elif _rect_contains(viewport_rect, event.pos):
                    clicked = _pixel_to_world(event.pos, session.state.position, world_center, session.config.tile_degrees)
                    marker = session.map_layer.marker_at(clicked)
                    popup = PopupState(handle=marker.handle, cell=marker.cell) if marker is not None else None

        if session.sensor_active:
            sensor_accumulator += dt
            if sensor_accumulator >= SENSOR_POLL_SECONDS:
                sensor_accumulator = 0.0
                run_action("sensor", session.pump_sensor)

        if popup is not None and popup.handle not in session.map_layer.markers:
            marker = session.map_layer.marker_for_cell(popup.cell)
            popup = PopupState(handle=marker.handle, cell=marker.cell) if marker is not None else None

        screen.fill(BACKGROUND_COLOR)
        _draw_map(screen, session, world_center, popup, clip_rect=viewport_rect)
        pygame_module.draw.rect(screen, BUTTON_COLOR, pygame_module.Rect(viewport_rect), 1)
        _draw_hud(screen, session, font, status_message)
        _draw_popup_panel(screen, session, panel_font, popup)
        _draw_confirm_prompt(screen, font, prompt)
        pygame_module.display.flip()

    pygame_module.quit()
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    headless = args.headless or _env_flag_enabled("GEOCOIN_HEADLESS")
    raise SystemExit(
        run_pygame_viewer(
            _config_from_args(args),
            storage_dir=args.storage_dir,
            track_path=args.track,
            resume=args.resume,
            headless=headless,
        )
    )


if __name__ == "__main__":
    main()
