from __future__ import annotations

import argparse
from typing import Sequence

from geocoin.content.io import CURRENT_RECORD_KEY, INITIAL_RECORD_KEY, JsonFileStorage, decode_session_record
from geocoin.content.schema import parse_cache_snapshot
from geocoin.sim.hash import registry_hash, session_hash
from geocoin.sim.world import SessionState

CACHE_PRINT_LIMIT = 20


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="geocoin-inspect-save",
        description="Validate stored session records and print a concise summary with hashes.",
    )
    parser.add_argument("storage_dir", help="Directory holding initial.json/current.json session records")
    parser.add_argument(
        "--key",
        action="append",
        choices=(INITIAL_RECORD_KEY, CURRENT_RECORD_KEY),
        help="Record key to inspect (repeatable; default: both)",
    )
    parser.add_argument("--print-caches", action="store_true", help="Print per-cache coin counts")
    return parser


def _print_record(key: str, state: SessionState, *, print_caches: bool) -> None:
    print(
        "record "
        f"key={key} "
        f"position=({state.position.row:.6f},{state.position.col:.6f}) "
        f"caches={len(state.registry)} "
        f"inventory={len(state.inventory)} "
        f"coins_total={state.total_coins()} "
        f"trail={len(state.trail)} "
        f"registry_hash={registry_hash(state)} "
        f"session_hash={session_hash(state)}"
    )
    if not print_caches:
        return
    for cell_key in sorted(state.registry)[:CACHE_PRINT_LIMIT]:
        tokens = parse_cache_snapshot(state.registry[cell_key])["tokens"]
        print(f"  cache cell={cell_key} coins={len(tokens)}")
    hidden = len(state.registry) - CACHE_PRINT_LIMIT
    if hidden > 0:
        print(f"  ... {hidden} more caches")


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    storage = JsonFileStorage(args.storage_dir)
    keys = args.key or [INITIAL_RECORD_KEY, CURRENT_RECORD_KEY]

    try:
        for key in keys:
            blob = storage.get(key)
            if blob is None:
                print(f"record key={key} missing")
                continue
            _print_record(key, decode_session_record(blob), print_caches=args.print_caches)
    except Exception as exc:
        print(f"error: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
