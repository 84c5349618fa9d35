"""Allow a limited number of events once every sleep interval."""

from __future__ import annotations

import json
import threading
from typing import Any, Callable, Optional

from circuitstats.atomic import AtomicBoolean, AtomicInt

AfterFunc = Callable[[int, Callable[[], None]], Any]


def _real_after_func(d: int, f: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(d / 1_000_000_000, f)
    timer.daemon = True
    timer.start()
    return timer


class TimedCheck:
    """Lets a number of checks pass every sleep duration (nanoseconds).

    A timer clears a fast-fail flag when the sleep is over; the timer is made
    by ``time_after_func(delay_ns, callback)``, defaulting to a real timer.
    """

    def __init__(self, time_after_func: Optional[AfterFunc] = None) -> None:
        self.time_after_func = time_after_func
        self._sleep_duration = AtomicInt()
        self._event_count_to_allow = AtomicInt()
        self._is_fast_fail = AtomicBoolean()
        self._fast_fail_version = AtomicInt()
        self._next_open_time = 0
        self._allowed_event_count = 0
        self._last_timer: Any = None
        self._lock = threading.Lock()

    @property
    def sleep_duration(self) -> int:
        return self._sleep_duration.get()

    @property
    def event_count_to_allow(self) -> int:
        return self._event_count_to_allow.get()

    @property
    def next_open_time(self) -> int:
        with self._lock:
            return self._next_open_time

    def __str__(self) -> str:
        with self._lock:
            return f"TimedCheck(open={self._next_open_time})"

    def set_sleep_duration(self, duration: int) -> None:
        """Change the sleep length; checks already sleeping keep their time."""
        self._sleep_duration.set(duration)

    def set_event_count_to_allow(self, count: int) -> None:
        """How many checks may pass before sleeping again."""
        self._event_count_to_allow.set(count)

    def _after_func(self, d: int, f: Callable[[], None]) -> Any:
        if self.time_after_func is None:
            return _real_after_func(d, f)
        return self.time_after_func(d, f)

    def sleep_start(self, now: int) -> None:
        """Start sleeping until now plus the sleep duration."""
        with self._lock:
            self._reset_open_time_locked(now)

    def _reset_open_time_locked(self, now: int) -> None:
        if self._last_timer is not None:
            cancel = getattr(self._last_timer, "cancel", None)
            if callable(cancel):
                cancel()
            self._last_timer = None
        sleep = self._sleep_duration.get()
        self._next_open_time = now + sleep
        self._allowed_event_count = 0
        self._is_fast_fail.set(True)
        version = self._fast_fail_version.add(1)

        def reopen() -> None:
            if version == self._fast_fail_version.get():
                self._is_fast_fail.set(False)

        self._last_timer = self._after_func(sleep, reopen)

    def check(self, now: int) -> bool:
        """True if an event is allowed at time now."""
        if self._is_fast_fail.get():
            return False
        with self._lock:
            if self._next_open_time > now:
                return False
            self._allowed_event_count += 1
            if self._allowed_event_count >= self._event_count_to_allow.get():
                self._reset_open_time_locked(now)
            return True

    def to_json(self) -> str:
        with self._lock:
            return json.dumps(
                {
                    "SleepDuration": self._sleep_duration.get(),
                    "EventCountToAllow": self._event_count_to_allow.get(),
                    "NextOpenTime": self._next_open_time,
                    "CurrentlyAllowedEventCount": self._allowed_event_count,
                }
            )

    @classmethod
    def from_json(cls, data: str | bytes) -> TimedCheck:
        try:
            raw = json.loads(data)
            sleep = int(raw["SleepDuration"])
            count = int(raw["EventCountToAllow"])
            open_time = int(raw["NextOpenTime"])
            allowed = int(raw["CurrentlyAllowedEventCount"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"invalid timed check JSON: {exc}") from exc
        checker = cls()
        checker._sleep_duration.set(sleep)
        checker._event_count_to_allow.set(count)
        checker._next_open_time = open_time
        checker._allowed_event_count = allowed
        return checker