"""Frame-driven gesture pipeline: frame -> region luminance -> taps/swipes -> sink."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from backhand.aggregator import LumaAggregator, LumaResult
from backhand.config import BackhandConfig
from backhand.errors import BackhandError, InvalidRegion, MalformedFrame
from backhand.events import EventSink, Swipe, Tap
from backhand.luma import check_frame
from backhand.metrics import MetricsCollector
from backhand.profiler import TickProfiler
from backhand.regions import HORIZONTAL_BANDS, RegionCatalog, Third
from backhand.swipes import SwipeDetector
from backhand.taps import TapDetector
from backhand.throughput import ThroughputMonitor

logger = logging.getLogger("backhand.pipeline")


@dataclass
class PipelineStats:
    """Runtime statistics."""
    fps: int
    avg_latency_ms: float
    total_frames: int
    rejected_frames: int
    total_taps: int
    total_swipes: int
    region_failures: int
    profiler_summary: dict = field(default_factory=dict)


class Backhand:
    """Back-of-device finger-on-camera gesture detector.

    One instance owns all pipeline state: the region catalog, the worker
    pool, the tap and swipe state machines and the FPS counter. Frames are
    processed one tick at a time; overlapping `deliver_frame` calls are
    serialised by a per-tick lock.

    Usage:
        with Backhand(CallbackSink(on_tap=print, on_swipe=print)) as backhand:
            for frame in source:
                backhand.deliver_frame(frame)
    """

    def __init__(
        self,
        sink: EventSink,
        config: Optional[BackhandConfig] = None,
        metrics: Optional[MetricsCollector] = None,
        enable_profiling: bool = True,
    ):
        self.config = (config or BackhandConfig()).validate()
        self.sink = sink
        self.metrics = metrics

        self.taps = TapDetector.from_config(self.config)
        self.swipes = SwipeDetector.from_config(self.config)
        self.throughput = ThroughputMonitor(
            interval=self.config.fps_interval, on_sample=self._on_fps_sample
        )
        self.profiler = TickProfiler(enabled=enable_profiling)

        self._catalog: Optional[RegionCatalog] = None
        self._aggregator: Optional[LumaAggregator] = None
        self._tick_lock = threading.Lock()
        self._closed = False

        self._frame_times: deque = deque(maxlen=60)
        self._total_frames = 0
        self._rejected_frames = 0
        self._total_taps = 0
        self._total_swipes = 0
        self._region_failures = 0

        if self.config.frame_shape is not None:
            self._configure(*self.config.frame_shape)

        logger.info(
            "Backhand ready (darkness < %.1f, window %.3f-%.3fs, tap signal: %s)",
            self.config.darkness_threshold,
            self.config.debounce_min,
            self.config.debounce_max,
            self.config.tap_signal,
        )

    def _configure(self, rows: int, cols: int):
        self._catalog = RegionCatalog.for_shape(
            rows, cols, self.config.row_fractions, self.config.col_fractions
        )
        self._aggregator = LumaAggregator(
            self._catalog,
            max_workers=self.config.max_workers,
            job_timeout=self.config.job_timeout,
        )
        logger.debug("Partitioned %dx%d frames into %d regions", rows, cols, len(self._catalog))

    def start(self) -> Backhand:
        """Start the background FPS sampler."""
        self.throughput.start()
        return self

    def deliver_frame(self, frame: np.ndarray, timestamp: Optional[float] = None):
        """Process one grayscale frame.

        Args:
            frame: 2D uint8 array. Not retained after this call returns.
            timestamp: Frame time in seconds; defaults to `time.monotonic()`.

        Raises:
            MalformedFrame: the frame was rejected; gesture state is unchanged.
        """
        if self._closed:
            raise BackhandError("deliver_frame called on a closed pipeline")

        self.throughput.count()
        now = time.monotonic() if timestamp is None else timestamp

        with self._tick_lock:
            if self._closed:
                raise BackhandError("deliver_frame called on a closed pipeline")
            self._accept(frame)

            t_start = time.perf_counter()
            with self.profiler.stage("analysis"):
                bands = self._aggregator.compute(frame, *Third)

            for third in bands.failures:
                self._region_failures += 1
                if self.metrics:
                    self.metrics.record_region_failure(third.name)

            if not bands.samples:
                logger.warning("All region jobs failed, skipping tick at %.3f", now)
                return

            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "Luma %s",
                    " ".join(f"{t.name}={v:.1f}" for t, v in bands.samples.items()),
                )

            with self.profiler.stage("taps"):
                tap = self.taps.update(
                    self._tap_signal(bands), now, defer_onset=self.swipes.tracking
                )

            with self.profiler.stage("swipes"):
                swipe = self.swipes.update(bands.samples, now, suppressed=self.taps.pending)

            with self.profiler.stage("dispatch"):
                if tap is not None:
                    self._dispatch_tap(tap)
                if swipe is not None:
                    self._dispatch_swipe(swipe)

            elapsed = time.perf_counter() - t_start
            self._total_frames += 1
            self._frame_times.append(elapsed)
            self.profiler.record("total", elapsed * 1000.0)
            if self.metrics:
                self.metrics.record_frame(elapsed)

    def _accept(self, frame: np.ndarray):
        try:
            check_frame(frame, self._catalog.shape if self._catalog else None)
            if self._catalog is None:
                try:
                    self._configure(*frame.shape)
                except InvalidRegion as e:
                    raise MalformedFrame(str(e)) from e
        except MalformedFrame as e:
            self._rejected_frames += 1
            if self.metrics:
                self.metrics.record_rejected()
            logger.warning("Rejected frame: %s", e)
            raise

    def _tap_signal(self, bands: LumaResult) -> float:
        if self.config.tap_signal == "center" and Third.CENTER_HORIZ in bands:
            return bands[Third.CENTER_HORIZ]

        values = [bands[t] for t in HORIZONTAL_BANDS if t in bands] or bands.values()
        return sum(values) / len(values)

    def _dispatch_tap(self, tap: Tap):
        self._total_taps += 1
        logger.info("%s tap", tap.value)
        if self.metrics:
            self.metrics.record_tap(tap.value)
        try:
            self.sink.on_tap(tap)
        except Exception as e:
            logger.error("Event sink failed on %s tap: %s", tap.value, e)

    def _dispatch_swipe(self, swipe: Swipe):
        self._total_swipes += 1
        logger.info("%s swipe", swipe.value)
        if self.metrics:
            self.metrics.record_swipe(swipe.value)
        try:
            self.sink.on_swipe(swipe)
        except Exception as e:
            logger.error("Event sink failed on %s swipe: %s", swipe.value, e)

    def _on_fps_sample(self, fps: int):
        if self.metrics:
            self.metrics.set_fps(fps)

    @property
    def tap_state(self) -> Tap:
        return self.taps.state

    @property
    def epoch(self) -> Optional[float]:
        """Timestamp of the last qualifying occlusion onset, or None."""
        return self.taps.epoch

    @property
    def catalog(self) -> Optional[RegionCatalog]:
        return self._catalog

    @property
    def fps(self) -> int:
        return self.throughput.fps

    @property
    def stats(self) -> PipelineStats:
        if self._frame_times:
            avg_latency = sum(self._frame_times) / len(self._frame_times)
        else:
            avg_latency = 0.0

        return PipelineStats(
            fps=self.throughput.fps,
            avg_latency_ms=avg_latency * 1000,
            total_frames=self._total_frames,
            rejected_frames=self._rejected_frames,
            total_taps=self._total_taps,
            total_swipes=self._total_swipes,
            region_failures=self._region_failures,
            profiler_summary=self.profiler.summary(),
        )

    def reset(self):
        """Drop pending gestures and statistics. The partition is kept."""
        with self._tick_lock:
            self.taps.reset()
            self.swipes.reset()
            self._frame_times.clear()
            self._total_frames = 0
            self._rejected_frames = 0
            self._total_taps = 0
            self._total_swipes = 0
            self._region_failures = 0
            self.profiler.reset()

    def close(self):
        """Stop the FPS sampler and the worker pool.

        Waits for a tick in progress; later deliveries raise BackhandError.
        """
        with self._tick_lock:
            if self._closed:
                return
            self._closed = True
        self.throughput.stop()
        if self._aggregator:
            self._aggregator.close()
        logger.info("Backhand closed after %d frames", self._total_frames)

    def __enter__(self):
        return self.start()

    def __exit__(self, *args):
        self.close()
