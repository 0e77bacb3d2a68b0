from __future__ import annotations

from collections import deque
from typing import Iterable

from geocoin.sim.board import Position


class PositionSensor:
    """Source of asynchronous position fixes.

    ``poll`` returns the fixes that arrived since the previous call, oldest first. A sensor is
    only read while it is started.
    """

    def start(self) -> None:
        """Called when the player turns the sensor on."""

    def stop(self) -> None:
        """Called when the player turns the sensor off."""

    def poll(self) -> list[Position]:
        return []


class ReplaySensor(PositionSensor):
    """Replays a recorded track, releasing ``fixes_per_poll`` positions per poll."""

    def __init__(self, positions: Iterable[Position], *, fixes_per_poll: int = 1) -> None:
        if fixes_per_poll <= 0:
            raise ValueError("fixes_per_poll must be > 0")
        self._pending: deque[Position] = deque(positions)
        self.fixes_per_poll = fixes_per_poll
        self.running = False

    @property
    def remaining(self) -> int:
        return len(self._pending)

    def start(self) -> None:
        self.running = True

    def stop(self) -> None:
        self.running = False

    def poll(self) -> list[Position]:
        if not self.running:
            return []
        fixes: list[Position] = []
        while self._pending and len(fixes) < self.fixes_per_poll:
            fixes.append(self._pending.popleft())
        return fixes
