"""Directional swipe detection from band luminance.

A swipe is an occlusion that travels across one axis of bands and then
clears. Each axis is read in both directions using the aggregator's
forward/backward orderings, so every track only needs to recognise a
first-band to last-band sweep:

    DOWN   TOP -> CENTER_HORIZ -> BOTTOM     forward_thirds(0)
    UP     BOTTOM -> CENTER_HORIZ -> TOP     backward_thirds(6)
    RIGHT  LEFT -> CENTER_VERT -> RIGHT      forward_thirds(3)
    LEFT   RIGHT -> CENTER_VERT -> LEFT      backward_thirds(3)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from backhand.aggregator import backward_thirds, forward_thirds
from backhand.config import BackhandConfig
from backhand.events import Swipe
from backhand.regions import Third

logger = logging.getLogger("backhand.swipes")


@dataclass
class SweepTrack:
    """Progress of one candidate sweep along an ordered band triple."""
    direction: Swipe
    order: Sequence[Third]
    started: Optional[float] = None
    position: float = 0.0  # mean index of the dark bands
    reached_end: Optional[float] = None

    def reset(self):
        self.started = None
        self.position = 0.0
        self.reached_end = None

    @property
    def active(self) -> bool:
        return self.started is not None


class SwipeDetector:
    """Resolves at most one swipe per frame from the six band means."""

    def __init__(
        self,
        darkness_threshold: float = 50.0,
        debounce_min: float = 0.120,
        window: float = 0.500,
    ):
        self.darkness_threshold = darkness_threshold
        self.debounce_min = debounce_min
        self.window = window

        # Evaluation order is the tie-break when two tracks resolve together
        self.tracks = [
            SweepTrack(Swipe.DOWN, forward_thirds(0)),
            SweepTrack(Swipe.UP, backward_thirds(6)),
            SweepTrack(Swipe.RIGHT, forward_thirds(3)),
            SweepTrack(Swipe.LEFT, backward_thirds(3)),
        ]

    @classmethod
    def from_config(cls, config: BackhandConfig) -> SwipeDetector:
        return cls(
            darkness_threshold=config.darkness_threshold,
            debounce_min=config.debounce_min,
            window=config.swipe_window,
        )

    def update(
        self,
        bands: Mapping[Third, float],
        t: float,
        suppressed: bool = False,
    ) -> Optional[Swipe]:
        """Advance all tracks by one frame.

        Args:
            bands: Mean luminance per region. Missing regions (failed
                analysis) leave the affected tracks untouched this frame.
            t: Frame timestamp in seconds.
            suppressed: True while a tap is escalating; drops all tracks so
                the same covering is never reported twice.
        """
        if suppressed:
            self.reset()
            return None

        resolved = None
        for track in self.tracks:
            swipe = self._advance(track, bands, t)
            if swipe is not None and resolved is None:
                resolved = swipe

        if resolved is not None:
            logger.debug("Swipe %s resolved at %.3f", resolved.value, t)
            self.reset()
        return resolved

    def _advance(self, track: SweepTrack, bands: Mapping[Third, float], t: float) -> Optional[Swipe]:
        lumas = [bands.get(third) for third in track.order]
        if any(luma is None for luma in lumas):
            return None

        dark = [i for i, luma in enumerate(lumas) if luma < self.darkness_threshold]
        last = len(lumas) - 1

        if len(dark) == len(lumas):
            # Whole axis covered: a tap or hold, not a sweep
            track.reset()
            return None

        if not dark:
            return self._clear(track, t)

        if track.active and t - track.started > self.window:
            track.reset()

        position = sum(dark) / len(dark)

        if not track.active:
            if dark[0] == 0 and last not in dark:
                track.started = t
                track.position = position
            return None

        if position < track.position:
            track.reset()
            return None

        track.position = position
        if last in dark and track.reached_end is None:
            track.reached_end = t
        return None

    def _clear(self, track: SweepTrack, t: float) -> Optional[Swipe]:
        if not track.active:
            return None

        swipe = None
        if track.reached_end is not None:
            traversal = track.reached_end - track.started
            total = t - track.started
            if traversal > self.debounce_min and total <= self.window:
                swipe = track.direction
            else:
                logger.debug(
                    "%s sweep rejected (traversal %.3fs, total %.3fs)",
                    track.direction.value, traversal, total,
                )
        track.reset()
        return swipe

    @property
    def tracking(self) -> bool:
        """True while any sweep has started and not yet resolved or dropped."""
        return any(track.active for track in self.tracks)

    def reset(self):
        for track in self.tracks:
            track.reset()
