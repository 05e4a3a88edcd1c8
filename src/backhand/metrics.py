"""Prometheus text-format metrics for the Backhand pipeline.

No client library: the exposition format is rendered directly.

Tracked metrics:
- backhand_taps_total (counter, by tap kind)
- backhand_swipes_total (counter, by direction)
- backhand_frames_total (counter)
- backhand_frames_rejected_total (counter)
- backhand_region_failures_total (counter, by region)
- backhand_fps (gauge)
- backhand_tick_latency_seconds (histogram)
"""

from __future__ import annotations

import threading
import time
from collections import Counter


class _Histogram:
    """Cumulative-bucket histogram."""

    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float):
        with self._lock:
            self.count += 1
            self.sum += value
            for i, b in enumerate(self.buckets):
                if value <= b:
                    self.bucket_counts[i] += 1
                    break

    def render(self, name: str, help_text: str) -> list[str]:
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} histogram",
        ]
        with self._lock:
            cumulative = 0
            for i, b in enumerate(self.buckets):
                cumulative += self.bucket_counts[i]
                lines.append(f'{name}_bucket{{le="{b}"}} {cumulative}')
            lines.append(f'{name}_bucket{{le="+Inf"}} {self.count}')
            lines.append(f"{name}_sum {self.sum:.6f}")
            lines.append(f"{name}_count {self.count}")
        return lines


def _counter(name: str, help_text: str, label: str, counts: Counter) -> list[str]:
    lines = [f"# HELP {name} {help_text}", f"# TYPE {name} counter"]
    for key, count in sorted(counts.items()):
        lines.append(f'{name}{{{label}="{key}"}} {count}')
    return lines


class MetricsCollector:
    """Collects pipeline counters; `render()` returns the exposition text."""

    def __init__(self):
        self._taps: Counter = Counter()
        self._swipes: Counter = Counter()
        self._region_failures: Counter = Counter()
        self._frames_total = 0
        self._rejected_total = 0
        self._fps = 0
        self._lock = threading.Lock()

        # One tick should stay well under a 30 FPS frame period
        self._latency = _Histogram(
            [0.0005, 0.001, 0.002, 0.005, 0.010, 0.020, 0.033, 0.050]
        )
        self._start_time = time.time()

    def record_tap(self, kind: str):
        with self._lock:
            self._taps[kind] += 1

    def record_swipe(self, direction: str):
        with self._lock:
            self._swipes[direction] += 1

    def record_region_failure(self, region: str):
        with self._lock:
            self._region_failures[region] += 1

    def record_frame(self, latency_seconds: float):
        with self._lock:
            self._frames_total += 1
        self._latency.observe(latency_seconds)

    def record_rejected(self):
        with self._lock:
            self._rejected_total += 1

    def set_fps(self, fps: int):
        self._fps = fps

    def render(self) -> str:
        lines: list[str] = [
            "# HELP backhand_uptime_seconds Time since the collector was created",
            "# TYPE backhand_uptime_seconds gauge",
            f"backhand_uptime_seconds {time.time() - self._start_time:.1f}",
            "",
        ]

        with self._lock:
            lines += _counter("backhand_taps_total", "Dispatched taps by kind", "tap", self._taps)
            lines.append("")
            lines += _counter("backhand_swipes_total", "Dispatched swipes by direction", "direction", self._swipes)
            lines.append("")
            lines += _counter(
                "backhand_region_failures_total", "Failed region analysis jobs", "region", self._region_failures
            )
            lines.append("")
            frames, rejected = self._frames_total, self._rejected_total

        lines += self._latency.render("backhand_tick_latency_seconds", "Frame tick latency in seconds")
        lines.append("")

        lines.append("# HELP backhand_frames_total Frames analysed")
        lines.append("# TYPE backhand_frames_total counter")
        lines.append(f"backhand_frames_total {frames}")
        lines.append("")

        lines.append("# HELP backhand_frames_rejected_total Frames rejected as malformed")
        lines.append("# TYPE backhand_frames_rejected_total counter")
        lines.append(f"backhand_frames_rejected_total {rejected}")
        lines.append("")

        lines.append("# HELP backhand_fps Frames delivered during the last second")
        lines.append("# TYPE backhand_fps gauge")
        lines.append(f"backhand_fps {self._fps}")
        lines.append("")

        return "\n".join(lines) + "\n"

    @property
    def tap_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._taps)

    @property
    def swipe_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._swipes)

    @property
    def frames_total(self) -> int:
        return self._frames_total

    @property
    def rejected_total(self) -> int:
        return self._rejected_total
