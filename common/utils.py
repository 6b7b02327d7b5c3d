from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque


@dataclass(slots=True)
class RateTimer:
    """
    Sliding-window rate tracker for progress logging.

    Usage:
        rt = RateTimer(window=50)
        for tile in stored:
            tiles_per_s = rt.tick()
    """
    window: int = 50
    clock: Callable[[], float] = time.perf_counter
    count: int = 0
    _times: Deque[float] = field(default_factory=deque)

    def __post_init__(self) -> None:
        if self.window < 2:
            raise ValueError("window must be >= 2")
        self._times = deque(maxlen=self.window)

    def tick(self) -> float:
        """Record one event; return events/s over the window (0 until two ticks)."""
        self.count += 1
        self._times.append(self.clock())
        if len(self._times) < 2:
            return 0.0
        dt = (self._times[-1] - self._times[0]) / (len(self._times) - 1)
        return 0.0 if dt <= 0 else 1.0 / dt
