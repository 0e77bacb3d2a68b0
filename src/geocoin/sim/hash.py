from __future__ import annotations

import hashlib
import json
from typing import Any

from geocoin.sim.world import SessionState


def _digest(payload: Any) -> str:
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def registry_hash(state: SessionState) -> str:
    return _digest(sorted(state.registry.items()))


def session_hash(state: SessionState) -> str:
    payload = state.to_dict()
    payload["registry"] = sorted(payload["registry"])
    return _digest(payload)
