"""
Timing Primitives
=================

Clock, ticker and cancellation capabilities used by the pacer.

The pacer never touches process-wide timers or signal handlers itself: the
CLI builds these objects and passes them in, and tests replace them with
simulated versions.
"""

import logging
import signal
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# A clock is any zero-argument callable returning seconds as a float
Clock = Callable[[], float]


class CancelSource:
    """One-shot cancellation signal backed by a threading.Event."""

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def set(self, reason: str = "cancelled") -> None:
        """Mark the source as ready. Only the first call records a reason."""
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the source is set or the timeout expires."""
        return self._event.wait(timeout)


class SignalCancelSource(CancelSource):
    """
    Cancellation source armed by SIGINT and SIGTERM.

    Use it as a context manager: the previous signal handlers are restored
    on exit. Must be entered from the main thread.
    """

    SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(self):
        super().__init__()
        self._previous = {}

    def _handle(self, signum, frame):
        name = signal.Signals(signum).name
        logger.debug(f"Received {name}")
        self.set(reason=name)

    def __enter__(self) -> "SignalCancelSource":
        for signum in self.SIGNALS:
            self._previous[signum] = signal.signal(signum, self._handle)
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        for signum, handler in self._previous.items():
            signal.signal(signum, handler)
        self._previous.clear()


def schedule_cancel(cancel: CancelSource, seconds: float) -> threading.Timer:
    """Set the cancel source after the given number of seconds."""
    timer = threading.Timer(seconds, cancel.set, kwargs={"reason": "duration elapsed"})
    timer.daemon = True
    timer.start()
    return timer


class IntervalTicker:
    """
    Fires every ``interval`` seconds until cancelled.

    Ticks that are missed while the caller is busy are dropped rather than
    queued, and later ticks keep their initial phase.
    """

    def __init__(self, interval: float, clock: Clock = time.monotonic):
        if interval <= 0:
            raise ValueError(f"Tick interval must be positive, got {interval}")
        self.interval = interval
        self.clock = clock
        self._next_tick: Optional[float] = None

    def wait(self, cancel: CancelSource) -> bool:
        """
        Block until the next tick or until ``cancel`` is set.

        Returns:
            True when a tick fired, False when cancelled.
        """
        if cancel.is_set():
            return False

        now = self.clock()
        if self._next_tick is None:
            self._next_tick = now + self.interval

        delay = self._next_tick - now
        if delay > 0 and cancel.wait(delay):
            return False
        if cancel.is_set():
            return False

        now = self.clock()
        missed = int((now - self._next_tick) // self.interval)
        self._next_tick += (missed + 1) * self.interval
        return True
