from __future__ import annotations

import argparse
from typing import Sequence

from geocoin.cli.pygame_viewer import build_viewer_session, run_pygame_viewer
from geocoin.cli.viewer import run_ascii_viewer
from geocoin.sim.core import GameConfig

DEFAULT_STORAGE_DIR = "saves"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m geocoin.cli.play", description="Geocoin launcher.")
    parser.add_argument("--storage-dir", default=DEFAULT_STORAGE_DIR, help="Directory holding saved session records.")
    parser.add_argument("--track", help="Recorded track JSON replayed by the position sensor.")
    parser.add_argument("--fresh", action="store_true", help="Start a new session instead of resuming the saved one.")
    parser.add_argument("--ascii", action="store_true", help="Play in the terminal instead of the pygame window.")
    parser.add_argument("--headless", action="store_true", help="Run startup path in headless mode.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    config = GameConfig()
    if args.ascii:
        session = build_viewer_session(
            config,
            storage_dir=args.storage_dir,
            track_path=args.track,
            resume=not args.fresh,
        )
        return run_ascii_viewer(session)
    return run_pygame_viewer(
        config=config,
        storage_dir=args.storage_dir,
        track_path=args.track,
        resume=not args.fresh,
        headless=args.headless,
    )


if __name__ == "__main__":
    raise SystemExit(main())
