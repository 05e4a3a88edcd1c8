"""Backhand CLI.

Usage:
    backhand simulate           Run a scripted synthetic gesture through the pipeline
    backhand record-synthetic   Save a scripted gesture as a replayable recording
    backhand replay             Replay a recorded frame session
    backhand video              Run a video file through the pipeline
    backhand benchmark          Measure tick latency
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

import typer

from backhand.config import BackhandConfig
from backhand.errors import BackhandError, MalformedFrame
from backhand.events import CallbackSink, Swipe, Tap
from backhand.metrics import MetricsCollector
from backhand.pipeline import Backhand
from backhand.synthetic import EXPECTED, SCRIPTS, SyntheticStream

app = typer.Typer(
    name="backhand",
    help="Back-of-device tap and swipe detection from camera luminance.",
    add_completion=False,
)


@app.callback()
def main_options(
    log_level: str = typer.Option("warning", "--log-level", help="Log level"),
):
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


def _load_config(path: Optional[str]) -> BackhandConfig:
    if path is None:
        return BackhandConfig()
    try:
        return BackhandConfig.from_yaml(path)
    except (OSError, BackhandError) as e:
        typer.echo(f"❌ Could not load config {path}: {e}", err=True)
        raise typer.Exit(1)


def _echo_sink(labels: Optional[list[str]] = None) -> CallbackSink:
    def on_tap(tap: Tap):
        typer.echo(f"   👆 {tap.value} tap")
        if labels is not None:
            labels.append(f"tap:{tap.value}")

    def on_swipe(swipe: Swipe):
        typer.echo(f"   👉 swipe {swipe.value}")
        if labels is not None:
            labels.append(f"swipe:{swipe.value}")

    return CallbackSink(on_tap=on_tap, on_swipe=on_swipe)


def _build_script(gesture: str, fps: float, rows: int, cols: int, noise: float = 0.0) -> SyntheticStream:
    if gesture not in SCRIPTS:
        typer.echo(f"❌ Unknown gesture '{gesture}'. Choose from: {', '.join(SCRIPTS)}", err=True)
        raise typer.Exit(1)
    return SCRIPTS[gesture](shape=(rows, cols), fps=fps, noise=noise)


def _print_stats(backhand: Backhand):
    stats = backhand.stats
    typer.echo(f"\n📊 {stats.total_frames} frames, {stats.total_taps} taps, {stats.total_swipes} swipes")
    if stats.rejected_frames or stats.region_failures:
        typer.echo(f"   rejected frames: {stats.rejected_frames}, region failures: {stats.region_failures}")
    typer.echo(f"   average tick: {stats.avg_latency_ms:.3f} ms")


@app.command()
def simulate(
    gesture: str = typer.Argument(..., help=f"One of: {', '.join(SCRIPTS)}"),
    fps: float = typer.Option(30.0, help="Synthetic frame rate"),
    rows: int = typer.Option(48, help="Frame height"),
    cols: int = typer.Option(64, help="Frame width"),
    noise: float = typer.Option(0.0, min=0.0, help="Gaussian sensor noise (std dev, 0-255 scale)"),
    config: Optional[str] = typer.Option(None, "--config", help="Path to YAML config"),
    metrics: bool = typer.Option(False, help="Print Prometheus metrics afterwards"),
):
    """Run a scripted synthetic gesture through the pipeline."""
    stream = _build_script(gesture, fps, rows, cols, noise)
    collector = MetricsCollector()

    typer.echo(f"🧪 Simulating {gesture} ({len(stream)} frames at {fps:g} FPS)")
    with Backhand(_echo_sink(), _load_config(config), metrics=collector) as backhand:
        for t, frame in stream:
            backhand.deliver_frame(frame, t)
        _print_stats(backhand)

    if metrics:
        typer.echo("")
        typer.echo(collector.render())


@app.command("record-synthetic")
def record_synthetic(
    gesture: str = typer.Argument(..., help=f"One of: {', '.join(SCRIPTS)}"),
    output: str = typer.Option("gesture.npz", "-o", help="Output file path"),
    fps: float = typer.Option(30.0, help="Synthetic frame rate"),
    rows: int = typer.Option(48, help="Frame height"),
    cols: int = typer.Option(64, help="Frame width"),
    noise: float = typer.Option(0.0, min=0.0, help="Gaussian sensor noise (std dev, 0-255 scale)"),
):
    """Save a scripted gesture as a replayable recording."""
    from backhand.recorder import FrameRecorder

    stream = _build_script(gesture, fps, rows, cols, noise)
    recorder = FrameRecorder()
    recorder.start()
    for t, frame in stream:
        recorder.add_frame(frame, timestamp=t)
    for label in EXPECTED.get(gesture, []):
        recorder.label_last(label)
    recorder.stop()

    path = recorder.save(output)
    typer.echo(f"💾 Saved {recorder.frame_count} frames ({recorder.duration:.2f}s) to: {path}")


@app.command()
def replay(
    recording: str = typer.Argument(..., help="Path to .npz recording"),
    speed: float = typer.Option(1.0, help="Playback speed multiplier"),
    realtime: bool = typer.Option(False, help="Play at original timing"),
    config: Optional[str] = typer.Option(None, "--config", help="Path to YAML config"),
):
    """Replay a recorded frame session through the pipeline."""
    from backhand.recorder import FramePlayer

    path = Path(recording)
    if not path.exists():
        typer.echo(f"❌ Recording not found: {recording}", err=True)
        raise typer.Exit(1)

    player = FramePlayer.load(path)
    typer.echo(f"▶️  Replaying {path.name} ({player.frame_count} frames, {player.duration:.1f}s)")

    detected: list[str] = []
    with Backhand(_echo_sink(detected), _load_config(config)) as backhand:
        frames = player.play_realtime(speed=speed) if realtime else player.play()
        for rec in frames:
            try:
                backhand.deliver_frame(rec.frame, rec.timestamp)
            except MalformedFrame:
                continue
        _print_stats(backhand)

    expected = player.labels()
    if expected:
        status = "✅ matches" if expected == detected else "⚠️  differs from"
        typer.echo(f"   {status} recorded labels {expected}")


@app.command()
def video(
    path: str = typer.Argument(..., help="Video file to analyse"),
    scale: float = typer.Option(0.25, help="Downscale factor applied before analysis"),
    config: Optional[str] = typer.Option(None, "--config", help="Path to YAML config"),
):
    """Run a video file through the pipeline, converting frames to grayscale."""
    import cv2

    cap = cv2.VideoCapture(path)
    if not cap.isOpened():
        typer.echo(f"❌ Could not open video {path}", err=True)
        raise typer.Exit(1)

    typer.echo(f"🎥 Analysing {path}")
    try:
        with Backhand(_echo_sink(), _load_config(config)) as backhand:
            while True:
                ret, frame = cap.read()
                if not ret:
                    break
                gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
                if scale != 1.0:
                    gray = cv2.resize(gray, None, fx=scale, fy=scale, interpolation=cv2.INTER_AREA)
                timestamp = cap.get(cv2.CAP_PROP_POS_MSEC) / 1000.0
                try:
                    backhand.deliver_frame(gray, timestamp)
                except MalformedFrame:
                    continue
            _print_stats(backhand)
    finally:
        cap.release()


@app.command()
def benchmark(
    iterations: int = typer.Option(1000, min=1, help="Number of frames"),
    rows: int = typer.Option(120, help="Frame height"),
    cols: int = typer.Option(160, help="Frame width"),
):
    """Measure per-tick latency on synthetic frames."""
    import numpy as np

    typer.echo(f"⚡ Running benchmark: {iterations} frames of {rows}x{cols}")

    rng = np.random.default_rng(42)
    frames = [rng.integers(0, 256, (rows, cols), dtype=np.uint8) for _ in range(16)]

    with Backhand(CallbackSink()) as backhand:
        times = []
        for i in range(iterations):
            t0 = time.perf_counter()
            backhand.deliver_frame(frames[i % len(frames)], i / 30.0)
            times.append(time.perf_counter() - t0)
        summary = backhand.profiler.summary()

    avg_ms = sum(times) / len(times) * 1000
    p95_ms = sorted(times)[int(len(times) * 0.95)] * 1000
    fps = 1000 / avg_ms if avg_ms > 0 else 0

    typer.echo(f"\n📊 Results:")
    typer.echo(f"   Average latency: {avg_ms:.3f} ms")
    typer.echo(f"   P95 latency:     {p95_ms:.3f} ms")
    typer.echo(f"   Throughput:      {fps:.0f} FPS")

    typer.echo(f"\n📈 Stage breakdown:")
    for name, stats in summary.items():
        typer.echo(f"   {name:12s} avg={stats['avg_ms']:.3f}ms  p95={stats['p95_ms']:.3f}ms")


def main():
    app()


if __name__ == "__main__":
    main()
