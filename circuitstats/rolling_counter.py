"""Counts events over a sliding window of time."""

from __future__ import annotations

import json
import time

from circuitstats.atomic import AtomicInt
from circuitstats.rolling_buckets import RollingBuckets


class RollingCounter:
    """Counts events in time buckets, keeping a rolling and an all time sum.

    Times and the bucket width are integer nanoseconds.
    """

    def __init__(self, bucket_width: int = 0, num_buckets: int = 0, now: int = 0) -> None:
        self._buckets = [AtomicInt() for _ in range(num_buckets)]
        self._rolling_sum = AtomicInt()
        self._total_sum = AtomicInt()
        self._rolling_bucket = RollingBuckets(
            num_buckets=num_buckets, start_time=now, bucket_width=bucket_width
        )

    def _clear_bucket(self, idx: int) -> None:
        self._rolling_sum.add(-self._buckets[idx].swap(0))

    def inc(self, now: int) -> None:
        """Record one event at time now."""
        self._total_sum.add(1)
        if not self._buckets:
            return
        idx = self._rolling_bucket.advance(now, self._clear_bucket)
        if idx < 0:
            return
        self._buckets[idx].add(1)
        self._rolling_sum.add(1)

    def rolling_sum_at(self, now: int) -> int:
        """Number of events inside the window ending at now."""
        self._rolling_bucket.advance(now, self._clear_bucket)
        return self._rolling_sum.get()

    def rolling_sum(self) -> int:
        """Number of events inside the window ending at the current time."""
        return self.rolling_sum_at(time.time_ns())

    def total_sum(self) -> int:
        """Number of events ever recorded."""
        return self._total_sum.get()

    def get_buckets(self, now: int) -> list[int]:
        """Bucket counts, newest first."""
        self._rolling_bucket.advance(now, self._clear_bucket)
        n = self._rolling_bucket.num_buckets
        start = self._rolling_bucket.last_abs_index.get() % n
        return [self._buckets[(start - i) % n].get() for i in range(n)]

    def reset(self, now: int) -> None:
        """Clear every bucket."""
        self._rolling_bucket.advance(now, self._clear_bucket)
        for idx in range(self._rolling_bucket.num_buckets):
            self._clear_bucket(idx)

    def string_at(self, now: int) -> str:
        parts = ",".join(str(v) for v in self.get_buckets(now))
        return (
            f"rolling_sum={self.rolling_sum_at(now)} "
            f"total_sum={self.total_sum()} parts=({parts})"
        )

    def __str__(self) -> str:
        return self.string_at(time.time_ns())

    def to_json(self) -> str:
        rb = self._rolling_bucket
        return json.dumps(
            {
                "Buckets": [b.get() for b in self._buckets],
                "RollingSum": self._rolling_sum.get(),
                "TotalSum": self._total_sum.get(),
                "RollingBucket": {
                    "NumBuckets": rb.num_buckets,
                    "StartTime": rb.start_time,
                    "BucketWidth": rb.bucket_width,
                    "LastAbsIndex": rb.last_abs_index.get(),
                },
            }
        )

    @classmethod
    def from_json(cls, data: str | bytes) -> RollingCounter:
        try:
            raw = json.loads(data)
            rb = raw["RollingBucket"]
            counter = cls()
            counter._buckets = [AtomicInt(v) for v in raw["Buckets"]]
            counter._rolling_sum = AtomicInt(raw["RollingSum"])
            counter._total_sum = AtomicInt(raw["TotalSum"])
            counter._rolling_bucket = RollingBuckets(
                num_buckets=rb["NumBuckets"],
                start_time=rb["StartTime"],
                bucket_width=rb["BucketWidth"],
                last_abs_index=AtomicInt(rb["LastAbsIndex"]),
            )
        except (KeyError, TypeError) as exc:
            raise ValueError(f"invalid rolling counter JSON: {exc}") from exc
        return counter