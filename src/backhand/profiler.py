"""Per-stage timing of a frame tick.

Every `deliver_frame` call runs the same fixed stages; each one is timed
with `perf_counter` and only a rolling window of recent ticks is kept.
"""

from __future__ import annotations

import time
from collections import deque
from contextlib import contextmanager
from typing import Iterator

import numpy as np

TICK_STAGES = ("analysis", "taps", "swipes", "dispatch", "total")


class TickProfiler:
    """Rolling millisecond timings for the tick stages.

    Usage:
        profiler = TickProfiler()

        with profiler.stage("analysis"):
            bands = aggregator.compute(frame, *Third)

        print(profiler.summary())
    """

    def __init__(self, window: int = 120, enabled: bool = True):
        self.enabled = enabled
        self._timings = {name: deque(maxlen=window) for name in TICK_STAGES}
        self._calls = dict.fromkeys(TICK_STAGES, 0)

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.record(name, (time.perf_counter() - t0) * 1000.0)

    def record(self, name: str, elapsed_ms: float):
        """Add one timing. Raises KeyError for a name outside TICK_STAGES."""
        if not self.enabled:
            return
        self._timings[name].append(elapsed_ms)
        self._calls[name] += 1

    def summary(self) -> dict[str, dict]:
        """avg/p95/max over the window and total calls, per stage that has run."""
        result = {}
        for name, window in self._timings.items():
            if not window:
                continue
            timings = np.fromiter(window, dtype=np.float64, count=len(window))
            result[name] = {
                "avg_ms": round(float(timings.mean()), 3),
                "p95_ms": round(float(np.percentile(timings, 95)), 3),
                "max_ms": round(float(timings.max()), 3),
                "calls": self._calls[name],
            }
        return result

    def reset(self):
        for window in self._timings.values():
            window.clear()
        self._calls = dict.fromkeys(TICK_STAGES, 0)
