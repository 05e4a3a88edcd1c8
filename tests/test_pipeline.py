"""End-to-end tests for the Backhand pipeline."""

import threading
import time

import numpy as np
import pytest

from backhand.config import BackhandConfig
from backhand.errors import BackhandError, MalformedFrame
from backhand.events import CallbackSink, EventSink, Swipe, Tap
from backhand.luma import region_luma
from backhand.metrics import MetricsCollector
from backhand.pipeline import Backhand
from backhand.synthetic import EXPECTED, SCRIPTS

SHAPE = (30, 30)
BRIGHT_FRAME = np.full(SHAPE, 230, dtype=np.uint8)
DARK_FRAME = np.full(SHAPE, 8, dtype=np.uint8)


def band_frame(rows=None, cols=None):
    frame = BRIGHT_FRAME.copy()
    if rows is not None:
        frame[rows[0]:rows[1], :] = 8
    if cols is not None:
        frame[:, cols[0]:cols[1]] = 8
    return frame


class RecordingSink(EventSink):
    def __init__(self):
        self.events = []

    def on_tap(self, tap):
        self.events.append(tap)

    def on_swipe(self, swipe):
        self.events.append(swipe)


def feed(backhand, sink, dark_spans, until, period=0.01, dark=DARK_FRAME):
    """Deliver bright frames, dark ones inside `dark_spans`. Returns (t, event) pairs."""
    dispatched = []
    for i in range(int(round(until / period))):
        t = i * period
        covered = any(start <= t < end for start, end in dark_spans)
        before = len(sink.events)
        backhand.deliver_frame(dark if covered else BRIGHT_FRAME, t)
        dispatched += [(t, e) for e in sink.events[before:]]
    return dispatched


def detect(stream, config=None):
    """Run a synthetic stream through a fresh pipeline. Returns event labels."""
    labels = []
    sink = CallbackSink(
        on_tap=lambda tap: labels.append(f"tap:{tap.value}"),
        on_swipe=lambda swipe: labels.append(f"swipe:{swipe.value}"),
    )
    with Backhand(sink, config) as backhand:
        for t, frame in stream:
            backhand.deliver_frame(frame, t)
    return labels


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def backhand(sink):
    pipeline = Backhand(sink)
    yield pipeline
    pipeline.close()


class TestGestures:
    def test_double_tap(self, backhand, sink):
        dispatched = feed(backhand, sink, [(0.0, 0.2), (0.25, 0.6)], until=1.5)
        assert [e for _, e in dispatched] == [Tap.DOUBLE]
        assert dispatched[0][0] >= 0.6

    def test_hold_is_not_dispatched(self, backhand, sink):
        assert feed(backhand, sink, [(0.0, 3.0)], until=4.0) == []
        assert backhand.tap_state is Tap.NONE

    def test_recover_outside_window(self, backhand, sink):
        dispatched = feed(backhand, sink, [(0.0, 0.1), (0.9, 1.0)], until=2.0)
        assert [e for _, e in dispatched] == [Tap.SINGLE, Tap.SINGLE]

    def test_bounce_rejection(self, backhand, sink):
        dispatched = feed(backhand, sink, [(0.0, 0.01), (0.05, 0.06)], until=1.0)
        assert [e for _, e in dispatched] == [Tap.SINGLE]

    def test_bright_frames_are_idempotent(self, backhand):
        for i in range(100):
            backhand.deliver_frame(BRIGHT_FRAME, i * 0.01)
            assert backhand.tap_state is Tap.NONE
            assert backhand.epoch is None
        assert backhand.stats.total_frames == 100

    def test_swipe_down_without_taps(self, backhand, sink):
        steps = [band_frame(rows=(0, 10)), band_frame(rows=(10, 20)), band_frame(rows=(20, 30))]
        t = 0.0
        for step in steps:
            for _ in range(12):
                backhand.deliver_frame(step, t)
                t += 0.01
        for _ in range(50):
            backhand.deliver_frame(BRIGHT_FRAME, t)
            t += 0.01
        assert sink.events == [Swipe.DOWN]

    def test_swipe_right(self, backhand, sink):
        steps = [band_frame(cols=(0, 10)), band_frame(cols=(10, 20)), band_frame(cols=(20, 30))]
        t = 0.0
        for step in steps:
            for _ in range(12):
                backhand.deliver_frame(step, t)
                t += 0.01
        backhand.deliver_frame(BRIGHT_FRAME, t)
        assert sink.events == [Swipe.RIGHT]

    @pytest.mark.parametrize("rows, direction", [
        ([(0, 10), (10, 20), (20, 30)], Swipe.DOWN),
        ([(20, 30), (10, 20), (0, 10)], Swipe.UP),
    ])
    def test_vertical_swipe_with_center_tap_signal(self, sink, rows, direction):
        with Backhand(sink, BackhandConfig(tap_signal="center")) as backhand:
            t = 0.0
            for band in rows:
                step = band_frame(rows=band)
                for _ in range(12):
                    backhand.deliver_frame(step, t)
                    t += 0.01
            for _ in range(100):
                backhand.deliver_frame(BRIGHT_FRAME, t)
                t += 0.01
            assert backhand.tap_state is Tap.NONE
        assert sink.events == [direction]

    @pytest.mark.parametrize("tap_signal", ["frame", "center"])
    def test_cover_entering_from_an_edge_is_a_tap(self, sink, tap_signal):
        entering = band_frame(rows=(0, 10))
        with Backhand(sink, BackhandConfig(tap_signal=tap_signal)) as backhand:
            for i in range(100):
                t = i * 0.01
                if i < 3:
                    frame = entering
                elif i < 8:
                    frame = DARK_FRAME
                else:
                    frame = BRIGHT_FRAME
                backhand.deliver_frame(frame, t)
        assert sink.events == [Tap.SINGLE]

    @pytest.mark.parametrize("gesture", sorted(SCRIPTS))
    def test_scripted_gestures(self, gesture):
        assert detect(SCRIPTS[gesture]()) == EXPECTED[gesture]

    @pytest.mark.parametrize("gesture", sorted(SCRIPTS))
    def test_scripted_gestures_with_sensor_noise(self, gesture):
        stream = SCRIPTS[gesture](noise=12.0)
        _, first = stream.frames()[0]
        assert first.min() < first.max()
        assert detect(stream) == EXPECTED[gesture]

    @pytest.mark.parametrize("gesture", sorted(SCRIPTS))
    def test_scripted_gestures_with_center_tap_signal(self, gesture):
        config = BackhandConfig(tap_signal="center")
        assert detect(SCRIPTS[gesture](), config) == EXPECTED[gesture]

    def test_center_tap_signal(self, sink):
        center = band_frame(rows=(10, 20))
        spans = [(0.0, 0.1), (0.3, 0.4)]

        with Backhand(sink) as backhand:
            assert feed(backhand, sink, spans, until=1.2, dark=center) == []

        centered = RecordingSink()
        with Backhand(centered, BackhandConfig(tap_signal="center")) as backhand:
            dispatched = feed(backhand, centered, spans, until=1.2, dark=center)
        assert [e for _, e in dispatched] == [Tap.DOUBLE]


class TestMalformedFrames:
    def test_shape_mismatch(self, backhand, sink):
        backhand.deliver_frame(DARK_FRAME, 0.0)
        epoch = backhand.epoch

        with pytest.raises(MalformedFrame):
            backhand.deliver_frame(np.zeros((20, 30), dtype=np.uint8), 0.05)

        assert backhand.epoch == epoch
        assert backhand.tap_state is Tap.SINGLE
        assert backhand.stats.rejected_frames == 1
        assert backhand.stats.total_frames == 1

    def test_wrong_dtype(self, backhand):
        with pytest.raises(MalformedFrame):
            backhand.deliver_frame(np.zeros(SHAPE, dtype=np.float32), 0.0)
        assert backhand.catalog is None

    def test_wrong_rank(self, backhand):
        with pytest.raises(MalformedFrame):
            backhand.deliver_frame(np.zeros((30, 30, 3), dtype=np.uint8), 0.0)

    def test_first_frame_too_small(self, backhand):
        with pytest.raises(MalformedFrame):
            backhand.deliver_frame(np.zeros((2, 2), dtype=np.uint8), 0.0)
        assert backhand.catalog is None

        backhand.deliver_frame(BRIGHT_FRAME, 0.1)
        assert backhand.catalog.shape == SHAPE

    def test_configured_frame_shape(self, sink):
        with Backhand(sink, BackhandConfig(frame_shape=(40, 40))) as backhand:
            assert backhand.catalog.shape == (40, 40)
            with pytest.raises(MalformedFrame):
                backhand.deliver_frame(BRIGHT_FRAME, 0.0)

    def test_rejections_reach_metrics(self, sink):
        metrics = MetricsCollector()
        with Backhand(sink, metrics=metrics) as backhand:
            with pytest.raises(MalformedFrame):
                backhand.deliver_frame([[1, 2, 3]], 0.0)
        assert metrics.rejected_total == 1


class TestPartialFailure:
    def test_failed_region_does_not_block_taps(self, sink):
        def flaky(frame, region):
            if region.name == "LEFT":
                raise RuntimeError("sensor glitch")
            return region_luma(frame, region)

        with Backhand(sink, BackhandConfig(frame_shape=SHAPE)) as backhand:
            backhand._aggregator._analyzer = flaky
            dispatched = feed(backhand, sink, [(0.0, 0.2), (0.25, 0.6)], until=1.5)
            stats = backhand.stats

        assert [e for _, e in dispatched] == [Tap.DOUBLE]
        assert stats.region_failures == 150
        assert stats.total_frames == 150

    def test_all_regions_failing_skips_tick(self, sink):
        def broken(frame, region):
            raise RuntimeError("no data")

        metrics = MetricsCollector()
        with Backhand(sink, BackhandConfig(frame_shape=SHAPE), metrics=metrics) as backhand:
            backhand._aggregator._analyzer = broken
            backhand.deliver_frame(DARK_FRAME, 0.0)
            assert backhand.tap_state is Tap.NONE
            assert backhand.stats.total_frames == 0
            assert backhand.stats.region_failures == 6
        assert 'backhand_region_failures_total{region="TOP"} 1' in metrics.render()

    def test_sink_errors_are_contained(self):
        class BrokenSink(EventSink):
            def on_tap(self, tap):
                raise RuntimeError("UI thread gone")

            def on_swipe(self, swipe):
                raise RuntimeError("UI thread gone")

        with Backhand(BrokenSink()) as backhand:
            for i in range(100):
                frame = DARK_FRAME if i < 10 else BRIGHT_FRAME
                backhand.deliver_frame(frame, i * 0.01)
            assert backhand.stats.total_taps == 1
            assert backhand.tap_state is Tap.NONE


class TestLifecycle:
    def test_context_manager_runs_fps_sampler(self, sink):
        with Backhand(sink) as backhand:
            assert backhand.throughput.running
        assert not backhand.throughput.running

    def test_closed_pipeline_rejects_frames(self, sink):
        backhand = Backhand(sink)
        backhand.close()
        backhand.close()
        with pytest.raises(BackhandError):
            backhand.deliver_frame(BRIGHT_FRAME, 0.0)

    def test_close_waits_for_running_tick(self, sink):
        def slow(frame, region):
            time.sleep(0.002)
            return region_luma(frame, region)

        backhand = Backhand(sink, BackhandConfig(frame_shape=SHAPE))
        backhand._aggregator._analyzer = slow
        delivered = []
        errors = []

        def worker():
            for i in range(500):
                try:
                    backhand.deliver_frame(BRIGHT_FRAME, i * 0.01)
                except BackhandError:
                    return
                except Exception as e:
                    errors.append(e)
                    return
                delivered.append(i)

        thread = threading.Thread(target=worker)
        thread.start()
        time.sleep(0.05)
        backhand.close()
        thread.join()

        assert errors == []
        assert delivered
        assert backhand.stats.total_frames == len(delivered)

    def test_invalid_config(self, sink):
        with pytest.raises(ValueError):
            Backhand(sink, BackhandConfig(debounce_max=0.05))

    def test_instances_are_independent(self):
        sink_a, sink_b = RecordingSink(), RecordingSink()
        with Backhand(sink_a) as a, Backhand(sink_b) as b:
            feed(a, sink_a, [(0.0, 0.1)], until=1.0)
            feed(b, sink_b, [], until=1.0)
        assert sink_a.events == [Tap.SINGLE]
        assert sink_b.events == []

    def test_reset(self, backhand, sink):
        backhand.deliver_frame(DARK_FRAME, 0.0)
        assert backhand.tap_state is Tap.SINGLE
        backhand.reset()
        assert backhand.tap_state is Tap.NONE
        assert backhand.epoch is None
        assert backhand.stats.total_frames == 0
        assert backhand.catalog is not None

    def test_default_timestamps(self, backhand):
        backhand.deliver_frame(DARK_FRAME)
        assert backhand.epoch == pytest.approx(time.monotonic(), abs=1.0)

    def test_overlapping_deliveries_are_serialised(self, backhand):
        original = backhand.taps.update
        lock = threading.Lock()
        active = [0]
        overlaps = []

        def guarded(luma, t, **kwargs):
            with lock:
                active[0] += 1
                if active[0] > 1:
                    overlaps.append(t)
            time.sleep(0.001)
            try:
                return original(luma, t, **kwargs)
            finally:
                with lock:
                    active[0] -= 1

        backhand.taps.update = guarded

        def worker(offset):
            for i in range(25):
                backhand.deliver_frame(BRIGHT_FRAME, offset + i * 0.01)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == []
        assert backhand.stats.total_frames == 100


class TestObservability:
    def test_metrics_integration(self, sink):
        metrics = MetricsCollector()
        with Backhand(sink, metrics=metrics) as backhand:
            feed(backhand, sink, [(0.0, 0.2), (0.25, 0.6)], until=1.5)
        assert metrics.tap_counts == {"double": 1}
        assert metrics.frames_total == 150
        assert "backhand_tick_latency_seconds_count 150" in metrics.render()

    def test_stats_and_profile(self, backhand, sink):
        feed(backhand, sink, [(0.0, 0.1)], until=1.0)
        stats = backhand.stats
        assert stats.total_frames == 100
        assert stats.total_taps == 1
        assert stats.total_swipes == 0
        assert stats.avg_latency_ms > 0
        assert {"analysis", "taps", "swipes", "dispatch", "total"} <= set(stats.profiler_summary)

    def test_profiling_disabled(self, sink):
        with Backhand(sink, enable_profiling=False) as backhand:
            backhand.deliver_frame(BRIGHT_FRAME, 0.0)
            assert backhand.stats.profiler_summary == {}

    def test_fps_sampling(self, sink):
        with Backhand(sink, BackhandConfig(fps_interval=0.05)) as backhand:
            for i in range(10):
                backhand.deliver_frame(BRIGHT_FRAME, i * 0.01)
            time.sleep(0.2)
            assert backhand.fps == 0
        assert backhand.throughput.frames_this_second == 0
