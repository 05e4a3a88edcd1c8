"""Gesture event types and the sinks that receive them."""

from __future__ import annotations

import logging
import queue
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger("backhand.events")


class Tap(Enum):
    NONE = "none"
    SINGLE = "single"
    DOUBLE = "double"
    TRIPLE = "triple"
    HELD = "held"

    MAYBE_SINGLE = "maybe single"
    MAYBE_DOUBLE = "maybe double"
    MAYBE_TRIPLE = "maybe triple"
    MAYBE_HELD = "maybe held"

    def escalate(self) -> Tap:
        """Next step along NONE -> SINGLE -> DOUBLE -> TRIPLE -> HELD."""
        return _ESCALATION.get(self, Tap.HELD)

    @property
    def provisional(self) -> Tap:
        """The MAYBE_* form of a pending tap (NONE stays NONE)."""
        return _PROVISIONAL.get(self, self)


_ESCALATION = {
    Tap.NONE: Tap.SINGLE,
    Tap.SINGLE: Tap.DOUBLE,
    Tap.DOUBLE: Tap.TRIPLE,
    Tap.TRIPLE: Tap.HELD,
}

_PROVISIONAL = {
    Tap.SINGLE: Tap.MAYBE_SINGLE,
    Tap.DOUBLE: Tap.MAYBE_DOUBLE,
    Tap.TRIPLE: Tap.MAYBE_TRIPLE,
    Tap.HELD: Tap.MAYBE_HELD,
}


class Swipe(Enum):
    """Swipe direction in frame coordinates."""
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


class EventSink(ABC):
    """Receives finalized gestures. Both calls are fire-and-forget."""

    @abstractmethod
    def on_tap(self, tap: Tap):
        ...

    @abstractmethod
    def on_swipe(self, swipe: Swipe):
        ...


class CallbackSink(EventSink):
    """Forwards events to plain callables, synchronously."""

    def __init__(
        self,
        on_tap: Optional[Callable[[Tap], None]] = None,
        on_swipe: Optional[Callable[[Swipe], None]] = None,
    ):
        self._on_tap = on_tap
        self._on_swipe = on_swipe

    def on_tap(self, tap: Tap):
        if self._on_tap:
            self._on_tap(tap)

    def on_swipe(self, swipe: Swipe):
        if self._on_swipe:
            self._on_swipe(swipe)


class QueuedSink(EventSink):
    """Hands events to a worker thread so a slow consumer never stalls a tick.

    Usage:
        sink = QueuedSink(CallbackSink(on_tap=print))
        ...
        sink.close()  # drains pending events, then stops the worker
    """

    _STOP = object()

    def __init__(self, target: EventSink, maxsize: int = 0):
        self.target = target
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._closed = False
        self._worker = threading.Thread(target=self._drain, name="backhand-sink", daemon=True)
        self._worker.start()

    def on_tap(self, tap: Tap):
        self._put("tap", tap)

    def on_swipe(self, swipe: Swipe):
        self._put("swipe", swipe)

    def _put(self, kind: str, value):
        if self._closed:
            logger.warning("Dropped %s %s: sink is closed", value.value, kind)
            return
        self._queue.put((kind, value))

    def _drain(self):
        while True:
            item = self._queue.get()
            try:
                if item is self._STOP:
                    return
                kind, value = item
                if kind == "tap":
                    self.target.on_tap(value)
                else:
                    self.target.on_swipe(value)
            except Exception as e:
                logger.error("Event sink %s failed: %s", type(self.target).__name__, e)
            finally:
                self._queue.task_done()

    def join(self):
        """Block until every queued event has been delivered."""
        self._queue.join()

    def close(self, timeout: Optional[float] = 5.0):
        """Deliver what is queued, then stop the worker. Later events are dropped."""
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put(self._STOP, timeout=timeout)
        except queue.Full:
            logger.warning("Event queue still full after %ss, worker left running", timeout)
            return
        self._worker.join(timeout)

    @property
    def closed(self) -> bool:
        return self._closed
