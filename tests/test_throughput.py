"""Tests for the FPS counter."""

import threading
import time

from backhand.throughput import ThroughputMonitor


class TestThroughputMonitor:
    def test_roll_snapshots_and_resets(self):
        monitor = ThroughputMonitor()
        for _ in range(7):
            monitor.count()
        assert monitor.frames_this_second == 7
        assert monitor.roll() == 7
        assert monitor.fps == 7
        assert monitor.frames_this_second == 0

    def test_stalled_source_reports_zero(self):
        monitor = ThroughputMonitor()
        monitor.count()
        monitor.roll()
        assert monitor.roll() == 0
        assert monitor.fps == 0

    def test_callback_receives_samples(self):
        samples = []
        monitor = ThroughputMonitor(on_sample=samples.append)
        monitor.count()
        monitor.count()
        monitor.roll()
        monitor.roll()
        assert samples == [2, 0]

    def test_callback_errors_are_logged(self, caplog):
        def boom(fps):
            raise RuntimeError("display gone")

        monitor = ThroughputMonitor(on_sample=boom)
        monitor.count()
        assert monitor.roll() == 1
        assert "FPS callback failed" in caplog.text

    def test_background_sampling(self):
        samples = []
        monitor = ThroughputMonitor(interval=0.02, on_sample=samples.append)
        monitor.start()
        assert monitor.running
        try:
            for _ in range(50):
                monitor.count()
                time.sleep(0.002)
        finally:
            monitor.stop()
        assert not monitor.running
        assert samples
        # No frame is lost or counted twice across snapshots
        assert sum(samples) + monitor.frames_this_second == 50

    def test_start_is_idempotent(self):
        monitor = ThroughputMonitor(interval=0.05)
        monitor.start()
        thread = monitor._thread
        monitor.start()
        assert monitor._thread is thread
        monitor.stop()

    def test_concurrent_counting(self):
        monitor = ThroughputMonitor()

        def worker():
            for _ in range(1000):
                monitor.count()

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert monitor.roll() == 4000
