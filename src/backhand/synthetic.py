"""Scripted synthetic frame streams.

Builds timed grayscale frames on a fixed frame grid so gestures can be
exercised without a camera:

    stream = SyntheticStream((48, 64), fps=60)
    stream.bright(0.1).dark(0.08).bright(0.15).dark(0.08).bright(1.0)
    for t, frame in stream:
        backhand.deliver_frame(frame, t)
"""

from __future__ import annotations

from typing import Iterator, Optional

import numpy as np

from backhand.events import Swipe
from backhand.regions import RegionCatalog, Third

BRIGHT = 230
DARK = 8

SWIPE_PATHS = {
    Swipe.DOWN: (Third.TOP, Third.CENTER_HORIZ, Third.BOTTOM),
    Swipe.UP: (Third.BOTTOM, Third.CENTER_HORIZ, Third.TOP),
    Swipe.RIGHT: (Third.LEFT, Third.CENTER_VERT, Third.RIGHT),
    Swipe.LEFT: (Third.RIGHT, Third.CENTER_VERT, Third.LEFT),
}


class SyntheticStream:
    """Accumulates (timestamp, frame) pairs segment by segment."""

    def __init__(self, shape: tuple[int, int] = (48, 64), fps: float = 30.0, noise: float = 0.0, seed: int = 0):
        self.shape = tuple(shape)
        self.fps = fps
        self.noise = noise
        self.catalog = RegionCatalog.for_shape(*self.shape)
        self._rng = np.random.default_rng(seed)
        self._frames: list[tuple[float, np.ndarray]] = []
        self._index = 0  # next frame slot on the grid
        self._t = 0.0

    @property
    def period(self) -> float:
        return 1.0 / self.fps

    @property
    def duration(self) -> float:
        return self._t

    def _emit(self, template: np.ndarray, duration: float) -> SyntheticStream:
        end = self._t + duration
        while self._index * self.period < end - 1e-9:
            frame = template
            if self.noise:
                jitter = self._rng.normal(0.0, self.noise, self.shape)
                frame = np.clip(template.astype(np.float64) + jitter, 0, 255).astype(np.uint8)
            self._frames.append((self._index * self.period, frame.copy()))
            self._index += 1
        self._t = end
        return self

    def bright(self, duration: float, level: int = BRIGHT) -> SyntheticStream:
        """Uncovered lens."""
        return self._emit(np.full(self.shape, level, dtype=np.uint8), duration)

    def dark(self, duration: float, level: int = DARK) -> SyntheticStream:
        """Fully covered lens."""
        return self._emit(np.full(self.shape, level, dtype=np.uint8), duration)

    def band(self, third: Third, duration: float, level: int = DARK, background: int = BRIGHT) -> SyntheticStream:
        """Only one region covered."""
        frame = np.full(self.shape, background, dtype=np.uint8)
        region = self.catalog[third]
        frame[region.start_row:region.end_row, region.start_col:region.end_col] = level
        return self._emit(frame, duration)

    def frames(self) -> list[tuple[float, np.ndarray]]:
        return list(self._frames)

    def __iter__(self) -> Iterator[tuple[float, np.ndarray]]:
        return iter(self._frames)

    def __len__(self) -> int:
        return len(self._frames)


def tap_script(
    count: int,
    cover: float = 0.08,
    gap: float = 0.18,
    shape: tuple[int, int] = (48, 64),
    fps: float = 30.0,
    noise: float = 0.0,
) -> SyntheticStream:
    """`count` short coverings separated by `gap`, then a bright tail."""
    stream = SyntheticStream(shape, fps, noise=noise).bright(0.1)
    for i in range(count):
        stream.dark(cover)
        stream.bright(gap if i < count - 1 else 1.0)
    return stream


def hold_script(
    seconds: float,
    shape: tuple[int, int] = (48, 64),
    fps: float = 30.0,
    noise: float = 0.0,
) -> SyntheticStream:
    """One continuous covering of `seconds`, then a bright tail."""
    return SyntheticStream(shape, fps, noise=noise).bright(0.1).dark(seconds).bright(1.0)


def swipe_script(
    direction: Swipe,
    step: float = 0.12,
    shape: tuple[int, int] = (48, 64),
    fps: float = 30.0,
    path: Optional[tuple[Third, Third, Third]] = None,
    noise: float = 0.0,
) -> SyntheticStream:
    """Occlusion crossing three bands, `step` seconds each, then clearing."""
    stream = SyntheticStream(shape, fps, noise=noise).bright(0.1)
    for third in path or SWIPE_PATHS[direction]:
        stream.band(third, step)
    return stream.bright(1.0)


SCRIPTS = {
    "single-tap": lambda **kw: tap_script(1, **kw),
    "double-tap": lambda **kw: tap_script(2, **kw),
    "triple-tap": lambda **kw: tap_script(3, **kw),
    "hold": lambda **kw: hold_script(2.0, **kw),
    "swipe-up": lambda **kw: swipe_script(Swipe.UP, **kw),
    "swipe-down": lambda **kw: swipe_script(Swipe.DOWN, **kw),
    "swipe-left": lambda **kw: swipe_script(Swipe.LEFT, **kw),
    "swipe-right": lambda **kw: swipe_script(Swipe.RIGHT, **kw),
}

EXPECTED = {
    "single-tap": ["tap:single"],
    "double-tap": ["tap:double"],
    "triple-tap": ["tap:triple"],
    "hold": [],
    "swipe-up": ["swipe:up"],
    "swipe-down": ["swipe:down"],
    "swipe-left": ["swipe:left"],
    "swipe-right": ["swipe:right"],
}
