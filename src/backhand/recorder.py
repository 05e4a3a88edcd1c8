"""Frame recording and replay.

Record grayscale frame streams for:
- Reproducing gesture sessions without a camera
- Regression runs on headless machines
- Tuning thresholds offline against the same input
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

import numpy as np


@dataclass
class RecordedFrame:
    """A single frame in a recording."""
    timestamp: float  # seconds from recording start
    frame: np.ndarray  # (H, W) uint8
    events: list[str] = field(default_factory=list)  # e.g. ["tap:double"]


class FrameRecorder:
    """Records grayscale frames (and optional event labels) to an .npz file.

    Usage:
        recorder = FrameRecorder()
        recorder.start()
        # In your frame loop:
        recorder.add_frame(frame)
        # When done:
        recorder.save("session.npz")
    """

    def __init__(self):
        self._frames: list[RecordedFrame] = []
        self._start_time: Optional[float] = None
        self._recording = False

    def start(self):
        """Begin a new recording session."""
        self._frames = []
        self._start_time = time.monotonic()
        self._recording = True

    def stop(self) -> int:
        """Stop recording. Returns number of frames captured."""
        self._recording = False
        return len(self._frames)

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def duration(self) -> float:
        if not self._frames:
            return 0.0
        return self._frames[-1].timestamp

    def add_frame(
        self,
        frame: np.ndarray,
        timestamp: Optional[float] = None,
        events: Optional[list[str]] = None,
    ):
        """Add a private copy of `frame` to the recording.

        Args:
            frame: 2D uint8 grayscale frame.
            timestamp: Seconds from start; measured from `start()` if omitted.
            events: Optional labels for gestures observed on this frame.
        """
        if not self._recording:
            return

        if self._frames and frame.shape != self._frames[0].frame.shape:
            raise ValueError(
                f"frame shape {frame.shape} differs from recording shape {self._frames[0].frame.shape}"
            )

        if timestamp is None:
            timestamp = time.monotonic() - self._start_time

        self._frames.append(RecordedFrame(
            timestamp=float(timestamp),
            frame=np.array(frame, dtype=np.uint8, copy=True),
            events=list(events or []),
        ))

    def label_last(self, event: str):
        """Attach an event label to the most recent frame."""
        if self._frames:
            self._frames[-1].events.append(event)

    def save(self, path: str | Path) -> Path:
        """Save as compressed numpy archive. Returns the written path."""
        path = Path(path).with_suffix(".npz")
        path.parent.mkdir(parents=True, exist_ok=True)

        if self._frames:
            frames = np.stack([f.frame for f in self._frames])
        else:
            frames = np.zeros((0, 0, 0), dtype=np.uint8)

        np.savez_compressed(
            path,
            version=np.array([1]),
            timestamps=np.array([f.timestamp for f in self._frames], dtype=np.float64),
            frames=frames,
            events=np.array([json.dumps([f.events for f in self._frames])]),
        )
        return path


class FramePlayer:
    """Replays a recorded frame session.

    Usage:
        player = FramePlayer.load("session.npz")
        for rec in player.play():
            backhand.deliver_frame(rec.frame, rec.timestamp)

        # Or replay at original speed:
        for rec in player.play_realtime():
            ...
    """

    def __init__(self, frames: list[RecordedFrame]):
        self._frames = frames

    @classmethod
    def load(cls, path: str | Path) -> FramePlayer:
        data = np.load(Path(path), allow_pickle=False)
        timestamps = data["timestamps"]
        frames = data["frames"]
        events = json.loads(str(data["events"][0]))

        recorded = []
        for i in range(len(timestamps)):
            recorded.append(RecordedFrame(
                timestamp=float(timestamps[i]),
                frame=frames[i],
                events=events[i] if i < len(events) else [],
            ))
        return cls(recorded)

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def duration(self) -> float:
        if not self._frames:
            return 0.0
        return self._frames[-1].timestamp

    @property
    def shape(self) -> Optional[tuple[int, int]]:
        if not self._frames:
            return None
        return self._frames[0].frame.shape

    def play(self) -> Iterator[RecordedFrame]:
        """Iterate through all frames instantly (no timing)."""
        yield from self._frames

    def play_realtime(self, speed: float = 1.0) -> Iterator[RecordedFrame]:
        """Replay at original timing (or scaled by speed factor).

        Args:
            speed: Playback speed multiplier (2.0 = double speed).
        """
        if not self._frames:
            return

        start = time.monotonic()

        for rec in self.play():
            target_time = rec.timestamp / speed
            elapsed = time.monotonic() - start
            if target_time > elapsed:
                time.sleep(target_time - elapsed)
            yield rec

    def labels(self) -> list[str]:
        """All event labels in recording order."""
        return [e for rec in self._frames for e in rec.events]
