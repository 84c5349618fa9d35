"""Rolling windows of durations with percentile snapshots.

Durations and times are integer nanoseconds.
"""

from __future__ import annotations

import json
import math
import time
from typing import Callable, Iterable

from circuitstats.atomic import AtomicInt
from circuitstats.evar import for_expvar
from circuitstats.rolling_buckets import RollingBuckets

_NS_PER_US = 1_000
_NS_PER_MS = 1_000_000
_NS_PER_S = 1_000_000_000
_NS_PER_MIN = 60 * _NS_PER_S
_NS_PER_HOUR = 60 * _NS_PER_MIN


def _with_fraction(value: int, unit: int) -> str:
    whole, frac = divmod(value, unit)
    if not frac:
        return str(whole)
    digits = str(frac).rjust(len(str(unit)) - 1, "0").rstrip("0")
    return f"{whole}.{digits}"


def format_duration(ns: int) -> str:
    """Render nanoseconds in a compact form such as ``1.5s`` or ``250ms``."""
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    u = abs(ns)
    if u < _NS_PER_US:
        text = f"{u}ns"
    elif u < _NS_PER_MS:
        text = _with_fraction(u, _NS_PER_US) + "µs"
    elif u < _NS_PER_S:
        text = _with_fraction(u, _NS_PER_MS) + "ms"
    else:
        hours, rem = divmod(u, _NS_PER_HOUR)
        minutes, rem = divmod(rem, _NS_PER_MIN)
        text = ""
        if hours:
            text += f"{hours}h"
        if hours or minutes:
            text += f"{minutes}m"
        text += _with_fraction(rem, _NS_PER_S) + "s"
    return sign + text


class SortedDurations(tuple):
    """An ordered snapshot of durations supporting percentile queries."""

    def __new__(cls, durations: Iterable[int] = ()) -> SortedDurations:
        return super().__new__(cls, durations)

    def __str__(self) -> str:
        return "(" + ",".join(format_duration(d) for d in self) + ")"

    def mean(self) -> int:
        """Average duration, or -1 for an empty snapshot."""
        if not self:
            return -1
        total = sum(self)
        quotient = abs(total) // len(self)
        return quotient if total >= 0 else -quotient

    def min(self) -> int:
        """Smallest duration, or -1 for an empty snapshot."""
        return self[0] if self else -1

    def max(self) -> int:
        """Largest duration, or -1 for an empty snapshot."""
        return self[-1] if self else -1

    def percentile(self, p: float) -> int:
        """Interpolated duration at percentile p, where p runs from 0 to 100."""
        if not self:
            return -1
        if len(self) == 1 or p <= 0:
            return self[0]
        if p >= 100:
            return self[-1]
        absolute_index = p / 100 * float(len(self) - 1)
        low = math.floor(absolute_index)
        first = self[int(low)]
        second = self[int(math.ceil(absolute_index))]
        weight = absolute_index - low
        return first + int(float(second - first) * weight)

    def var(self) -> Callable[[], dict[str, str]]:
        """A callable giving a readable summary of the snapshot."""

        def summary() -> dict[str, str]:
            return {
                "min": format_duration(self.min()),
                "p25": format_duration(self.percentile(0.25)),
                "p50": format_duration(self.percentile(0.5)),
                "p90": format_duration(self.percentile(0.9)),
                "p99": format_duration(self.percentile(0.99)),
                "max": format_duration(self.max()),
                "mean": format_duration(self.mean()),
            }

        return summary


class DurationsBucket:
    """A fixed size ring of durations; once full, new values overwrite old ones."""

    def __init__(self, bucket_size: int = 0) -> None:
        self._slots = [AtomicInt() for _ in range(bucket_size)]
        self._current_index = AtomicInt()

    def __str__(self) -> str:
        return f"DurationsBucket(idx={self._current_index.get()})"

    def durations(self) -> list[int]:
        """The stored durations in slot order."""
        count = min(self._current_index.get(), len(self._slots))
        return [slot.get() for slot in self._slots[:count]]

    def iterate_durations(self, starting_index: int, callback: Callable[[int], None]) -> int:
        """Call callback on entries from the newest back to starting_index.

        Returns a cursor to pass as starting_index on a later call.
        """
        last = self._current_index.get() - 1
        for absolute in range(last, starting_index - 1, -1):
            callback(self._slots[absolute % len(self._slots)].get())
        return last + 1

    def add_duration(self, d: int) -> None:
        if not self._slots:
            return
        next_index = self._current_index.add(1) - 1
        self._slots[next_index % len(self._slots)].set(d)

    def clear(self) -> None:
        self._current_index.set(0)

    def to_json(self) -> str:
        return json.dumps(
            {
                "DurationsSomeInvalid": [slot.get() for slot in self._slots],
                "CurrentIndex": self._current_index.get(),
            }
        )

    @classmethod
    def from_json(cls, data: str | bytes) -> DurationsBucket:
        try:
            raw = json.loads(data)
            values = [int(v) for v in raw["DurationsSomeInvalid"]]
            current = int(raw["CurrentIndex"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"invalid durations bucket JSON: {exc}") from exc
        bucket = cls()
        bucket._slots = [AtomicInt(v) for v in values]
        bucket._current_index = AtomicInt(current)
        return bucket


class RollingPercentile:
    """Durations kept in time buckets that roll off as the window moves."""

    def __init__(
        self, bucket_width: int = 0, num_buckets: int = 0, bucket_size: int = 0, now: int = 0
    ) -> None:
        self._buckets = [DurationsBucket(bucket_size) for _ in range(num_buckets)]
        self._rolling_bucket = RollingBuckets(
            num_buckets=num_buckets, start_time=now, bucket_width=bucket_width
        )

    def _clear_bucket(self, idx: int) -> None:
        self._buckets[idx].clear()

    def sorted_durations(self, now: int) -> list[int]:
        """Every duration in the window ending at now, in ascending order."""
        if not self._buckets:
            return []
        self._rolling_bucket.advance(now, self._clear_bucket)
        return sorted(d for bucket in self._buckets for d in bucket.durations())

    def snapshot(self) -> SortedDurations:
        return self.snapshot_at(time.time_ns())

    def snapshot_at(self, now: int) -> SortedDurations:
        return SortedDurations(self.sorted_durations(now))

    def add_duration(self, d: int, now: int) -> None:
        """Record duration d at time now; times outside the window are ignored."""
        if not self._buckets:
            return
        idx = self._rolling_bucket.advance(now, self._clear_bucket)
        if idx < 0:
            return
        self._buckets[idx].add_duration(d)

    def reset(self, now: int) -> None:
        self._rolling_bucket.advance(now, self._clear_bucket)
        for idx in range(self._rolling_bucket.num_buckets):
            self._clear_bucket(idx)

    def var(self) -> Callable[[], dict[str, object]]:
        """A callable giving a summary of the current snapshot."""
        return lambda: {"snap": for_expvar(self.snapshot())}