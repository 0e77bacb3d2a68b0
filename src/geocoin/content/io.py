from __future__ import annotations

import json
import os
import re
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any

from geocoin.content.schema import validate_position_payload
from geocoin.sim.board import Position
from geocoin.sim.world import SessionState

CANONICAL_JSON_INDENT = 2
CANONICAL_JSON_SEPARATORS = (",", ": ")
INITIAL_RECORD_KEY = "initial"
CURRENT_RECORD_KEY = "current"
_STORAGE_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def _canonical_json(payload: Any) -> str:
    return json.dumps(
        payload,
        indent=CANONICAL_JSON_INDENT,
        separators=CANONICAL_JSON_SEPARATORS,
        sort_keys=True,
    )


def _write_atomic_text(path: str | Path, serialized: str) -> None:
    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)

    temp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=destination.parent,
            delete=False,
            suffix=".tmp",
        ) as temp_file:
            temp_file.write(serialized)
            temp_file.flush()
            os.fsync(temp_file.fileno())
            temp_path = Path(temp_file.name)
        os.replace(temp_path, destination)
    except Exception:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise


class KeyValueStorage:
    """Durable blob storage addressed by short string keys.

    Sessions require a storage; subclasses implement all three hooks.
    """

    def put(self, key: str, blob: str) -> None:
        """Store ``blob`` under ``key``, replacing any previous value."""
        raise NotImplementedError

    def get(self, key: str) -> str | None:
        """Return the blob stored under ``key``, or None when nothing is stored."""
        raise NotImplementedError

    def remove(self, key: str) -> None:
        """Forget ``key``; removing a missing key is not an error."""
        raise NotImplementedError


class MemoryStorage(KeyValueStorage):
    def __init__(self) -> None:
        self.blobs: dict[str, str] = {}

    def put(self, key: str, blob: str) -> None:
        self.blobs[key] = blob

    def get(self, key: str) -> str | None:
        return self.blobs.get(key)

    def remove(self, key: str) -> None:
        self.blobs.pop(key, None)


class JsonFileStorage(KeyValueStorage):
    """One ``<key>.json`` file per key under ``root``; writes are atomic."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        if not _STORAGE_KEY_PATTERN.match(key):
            raise ValueError(f"invalid storage key: {key!r}")
        return self.root / f"{key}.json"

    def put(self, key: str, blob: str) -> None:
        _write_atomic_text(self.path_for(key), blob)

    def get(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def remove(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)


def encode_session_record(state: SessionState) -> str:
    return _canonical_json(state.to_dict())


def decode_session_record(blob: str) -> SessionState:
    try:
        payload = json.loads(blob)
    except json.JSONDecodeError as exc:
        raise ValueError(f"session record is not valid JSON: {exc.msg}") from exc
    return SessionState.from_dict(payload)


def load_track_json(path: str | Path) -> list[Position]:
    """Read a recorded position track: a list of ``{"row": ..., "col": ...}`` fixes."""
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("positions")
    if not isinstance(payload, list):
        raise ValueError("track must be a list of positions")
    for index, row in enumerate(payload):
        validate_position_payload(row, field_name=f"track[{index}]")
    return [Position.from_dict(row) for row in payload]


def save_track_json(path: str | Path, positions: list[Position]) -> None:
    _write_atomic_text(path, _canonical_json({"positions": [position.to_dict() for position in positions]}))
