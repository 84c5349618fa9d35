"""A time indexed ring of buckets that rolls forward as time passes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from circuitstats.atomic import AtomicInt


@dataclass(eq=False)
class RollingBuckets:
    """Maps points in time onto a fixed ring of buckets.

    Times and widths are integer nanoseconds. Buckets that fall out of the
    window as time moves forward are passed to a clearing callback.
    """

    num_buckets: int = 0
    start_time: int = 0
    bucket_width: int = 0
    last_abs_index: AtomicInt = field(default_factory=AtomicInt)

    def __str__(self) -> str:
        return f"RollingBucket(num={self.num_buckets}, width={self.bucket_width}ns)"

    def advance(self, now: int, clear_bucket: Optional[Callable[[int], None]]) -> int:
        """Move the window to now, clearing buckets as needed.

        Returns the bucket index for now, or -1 if now cannot be placed.
        """
        if self.num_buckets == 0:
            return -1
        diff = now - self.start_time
        if diff < 0:
            return -1
        abs_index = diff // self.bucket_width
        while True:
            last = self.last_abs_index.get()
            if abs_index <= last:
                return abs_index % self.num_buckets
            contended = False
            for _ in range(self.num_buckets):
                if last >= abs_index:
                    break
                if not self.last_abs_index.compare_and_swap(last, last + 1):
                    contended = True
                    break
                last += 1
                clear_bucket(last % self.num_buckets)
            if not contended:
                self.last_abs_index.compare_and_swap(last, abs_index)