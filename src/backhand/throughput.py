"""Frames-per-second counter, sampled on its own schedule."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger("backhand.throughput")


class ThroughputMonitor:
    """Counts delivered frames and snapshots the count once per interval.

    The snapshot runs on a background thread, not on the frame path, so a
    stalled frame source still reports 0 FPS. Purely diagnostic.

    Usage:
        monitor = ThroughputMonitor(on_sample=lambda fps: print(fps))
        monitor.start()
        # In your frame loop:
        monitor.count()
        # Cleanup:
        monitor.stop()
    """

    def __init__(
        self,
        interval: float = 1.0,
        on_sample: Optional[Callable[[int], None]] = None,
    ):
        self.interval = interval
        self._on_sample = on_sample
        self._frames_this_second = 0
        self._fps = 0
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def count(self):
        with self._lock:
            self._frames_this_second += 1

    def roll(self) -> int:
        """Snapshot the counter into `fps` and reset it."""
        with self._lock:
            self._fps = self._frames_this_second
            self._frames_this_second = 0
        logger.debug("FPS: %d", self._fps)
        if self._on_sample:
            try:
                self._on_sample(self._fps)
            except Exception as e:
                logger.error("FPS callback failed: %s", e)
        return self._fps

    def _run(self):
        while not self._stop.wait(self.interval):
            self.roll()

    def start(self):
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="backhand-fps", daemon=True)
        self._thread.start()

    def stop(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self.interval + 1.0)
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def fps(self) -> int:
        return self._fps

    @property
    def frames_this_second(self) -> int:
        with self._lock:
            return self._frames_this_second
