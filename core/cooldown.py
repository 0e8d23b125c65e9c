from __future__ import annotations

import math
import time
from typing import Callable, Optional


def format_cooldown(seconds: int) -> str:
    """125 -> "2:05"."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


class RefreshCooldown:
    """Manual refresh gate: after `start()` the refresh stays locked for `seconds`."""

    def __init__(self, seconds: int = 120, clock: Callable[[], float] = time.monotonic):
        self.seconds = max(0, int(seconds))
        self._clock = clock
        self._started_at: Optional[float] = None

    def start(self) -> None:
        self._started_at = self._clock()

    def reset(self) -> None:
        self._started_at = None

    def remaining(self) -> int:
        if self._started_at is None:
            return 0
        elapsed = self._clock() - self._started_at
        left = self.seconds - elapsed
        if left <= 0:
            return 0
        # Counts down in whole seconds: 120 right after start, 119 one second later.
        return int(math.ceil(left - 1e-9))

    def ready(self) -> bool:
        return self.remaining() == 0

    def label(self) -> str:
        return format_cooldown(self.remaining())
