"""Tap classification from per-frame luminance.

A tap is a distinct covering of the lens: a dark frame following a bright
one. Coverings are grouped into single/double/triple taps by the debounce
window. A re-covering closer than `debounce_min` to the previous onset is a
bounce of the same covering; one further away than `debounce_max` belongs to
a new sequence. A sequence is finalized by the first frame arriving more
than `debounce_max` after its last onset, so finalization needs frames to
keep flowing (dark ones included).
"""

from __future__ import annotations

import logging
from typing import Optional

from backhand.config import BackhandConfig
from backhand.events import Tap

logger = logging.getLogger("backhand.taps")


class TapDetector:
    """Escalates NONE -> SINGLE -> DOUBLE -> TRIPLE -> HELD and finalizes.

    Usage:
        taps = TapDetector()
        for luma, t in stream:
            tap = taps.update(luma, t)
            if tap is not None:
                sink.on_tap(tap)
    """

    def __init__(
        self,
        darkness_threshold: float = 50.0,
        debounce_min: float = 0.120,
        debounce_max: float = 0.500,
        retap_floor: float = 0.0,
    ):
        self.darkness_threshold = darkness_threshold
        self.debounce_min = debounce_min
        self.debounce_max = debounce_max
        self.retap_floor = retap_floor

        self.state = Tap.NONE
        self.epoch: Optional[float] = None  # last qualifying onset
        self._covered = False
        self._finalized_at: Optional[float] = None

    @classmethod
    def from_config(cls, config: BackhandConfig) -> TapDetector:
        return cls(
            darkness_threshold=config.darkness_threshold,
            debounce_min=config.debounce_min,
            debounce_max=config.debounce_max,
            retap_floor=config.retap_floor,
        )

    @property
    def pending(self) -> bool:
        """True while a sequence is escalating and not yet finalized."""
        return self.state is not Tap.NONE

    @property
    def provisional(self) -> Tap:
        """MAYBE_* form of the pending sequence, for live feedback."""
        return self.state.provisional

    @property
    def covered(self) -> bool:
        return self._covered

    def update(self, luma: float, t: float, defer_onset: bool = False) -> Optional[Tap]:
        """Advance one frame. Returns the finalized tap to dispatch, if any.

        Args:
            luma: Tap signal for this frame.
            t: Frame timestamp in seconds.
            defer_onset: True while a swipe is being tracked. A covering
                that starts now is not counted yet; it becomes an onset on
                the first frame it is still dark after tracking stops.
        """
        dark = luma < self.darkness_threshold
        onset = dark and not self._covered

        finalized = None
        if self.epoch is not None:
            elapsed = t - self.epoch
            # A re-covering exactly at the upper bound opens a new sequence
            if elapsed > self.debounce_max or (onset and elapsed >= self.debounce_max):
                finalized = self._finalize(t)

        if onset and defer_onset:
            logger.debug("Onset at %.3f deferred while a swipe is tracked", t)
            return finalized

        if onset:
            self._onset(t)

        self._covered = dark
        return finalized

    def _onset(self, t: float):
        if self.epoch is None:
            if (
                self._finalized_at is not None
                and t - self._finalized_at < self.retap_floor
            ):
                logger.debug("Onset %.3fs after finalization dropped", t - self._finalized_at)
                return
        else:
            gap = t - self.epoch
            if not self.debounce_min < gap < self.debounce_max:
                logger.debug("Bounce ignored (%.3fs after onset)", gap)
                return

        self.epoch = t
        self.state = self.state.escalate()
        logger.debug("Occlusion onset at %.3f -> %s", t, self.state.value)

    def _finalize(self, t: float) -> Optional[Tap]:
        tap = self.state
        # Still covering when the window closes: that is a hold
        held = self._covered or tap is Tap.HELD

        self.state = Tap.NONE
        self.epoch = None
        self._finalized_at = t

        if held:
            logger.debug("Hold finalized at %.3f, not dispatched", t)
            return None
        return tap

    def reset(self):
        """Drop any pending sequence without dispatching it."""
        self.state = Tap.NONE
        self.epoch = None
        self._covered = False
        self._finalized_at = None
