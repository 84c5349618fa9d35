"""A controllable clock for tests, with timers that fire as time is moved."""

from __future__ import annotations

import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable


@dataclass
class _TimedCallback:
    when: int
    func: Callable[[], None]


class MockClock:
    """A clock whose time (integer nanoseconds) only moves when told to."""

    def __init__(self, now: int = 0) -> None:
        self._current = now
        self._callbacks: list[_TimedCallback] = []
        self._lock = threading.Lock()

    def set(self, t: int) -> int:
        """Set the current time, firing any timers that are due."""
        with self._lock:
            self._current = t
        self._trigger_callbacks()
        return t

    def add(self, d: int) -> int:
        """Move time forward by d nanoseconds, firing due timers."""
        return self.set(self.now() + d)

    def _trigger_callbacks(self) -> None:
        with self._lock:
            due = [c for c in self._callbacks if c.when <= self._current]
            self._callbacks = [c for c in self._callbacks if c.when > self._current]
        for callback in due:
            callback.func()

    def now(self) -> int:
        with self._lock:
            return self._current

    def after_func(self, d: int, f: Callable[[], None]) -> None:
        """Run f once the clock has moved d nanoseconds forward."""
        if d == 0:
            f()
            return
        with self._lock:
            self._callbacks.append(_TimedCallback(self._current + d, f))

    def after(self, d: int) -> queue.Queue:
        """A queue that receives the clock's time once d nanoseconds pass."""
        result: queue.Queue = queue.Queue(maxsize=1)
        self.after_func(d, lambda: result.put(self.now()))
        return result


def tick_until(
    clock: MockClock,
    should_stop: Callable[[], bool],
    real_sleep: int,
    mock_incr: int,
) -> None:
    """Advance clock by mock_incr, sleeping real_sleep ns between steps, until should_stop()."""
    while not should_stop():
        time.sleep(real_sleep / 1_000_000_000)
        clock.add(mock_incr)