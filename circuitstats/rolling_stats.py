"""In-memory rolling statistics for circuit run and fallback events.

Times and durations are integer nanoseconds.
"""

from __future__ import annotations

import dataclasses
import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from circuitstats.evar import for_expvar
from circuitstats.rolling_counter import RollingCounter
from circuitstats.rolling_percentile import RollingPercentile

_NS_PER_S = 1_000_000_000

Clock = Callable[[], int]


@dataclass
class RunStatsConfig:
    """Window sizes for run statistics; zero values mean unset."""

    now: Optional[Clock] = None
    rolling_stats_duration: int = 0
    rolling_stats_num_buckets: int = 0
    rolling_percentile_duration: int = 0
    rolling_percentile_num_buckets: int = 0
    rolling_percentile_bucket_size: int = 0

    def merge(self, other: RunStatsConfig) -> None:
        """Fill unset values from other."""
        if self.now is None:
            self.now = other.now
        if self.rolling_stats_duration == 0:
            self.rolling_stats_duration = other.rolling_stats_duration
        if self.rolling_stats_num_buckets == 0:
            self.rolling_stats_num_buckets = other.rolling_stats_num_buckets
        if self.rolling_percentile_duration == 0:
            self.rolling_percentile_duration = other.rolling_percentile_duration
        if self.rolling_percentile_num_buckets == 0:
            self.rolling_percentile_num_buckets = other.rolling_percentile_num_buckets
        if self.rolling_percentile_bucket_size == 0:
            self.rolling_percentile_bucket_size = other.rolling_percentile_bucket_size


@dataclass
class FallbackStatsConfig:
    """Window sizes for fallback statistics; zero values mean unset."""

    rolling_stats_duration: int = 0
    now: Optional[Clock] = None
    rolling_stats_num_buckets: int = 0

    def merge(self, other: FallbackStatsConfig) -> None:
        """Fill unset values from other."""
        if self.now is None:
            self.now = other.now
        if self.rolling_stats_duration == 0:
            self.rolling_stats_duration = other.rolling_stats_duration
        if self.rolling_stats_num_buckets == 0:
            self.rolling_stats_num_buckets = other.rolling_stats_num_buckets


DEFAULT_RUN_STATS_CONFIG = RunStatsConfig(
    now=time.time_ns,
    rolling_stats_duration=10 * _NS_PER_S,
    rolling_stats_num_buckets=10,
    rolling_percentile_duration=60 * _NS_PER_S,
    rolling_percentile_num_buckets=6,
    rolling_percentile_bucket_size=100,
)

DEFAULT_FALLBACK_STATS_CONFIG = FallbackStatsConfig(
    now=time.time_ns,
    rolling_stats_duration=10 * _NS_PER_S,
    rolling_stats_num_buckets=10,
)


def _bucket_width(duration: int, num_buckets: int, what: str) -> int:
    if num_buckets <= 0:
        raise ValueError(f"{what} needs a positive number of buckets, got {num_buckets}")
    return duration // num_buckets


def _counter_value(counter: RollingCounter) -> Any:
    return json.loads(counter.to_json())


class RunStats:
    """Rolling counts of each run outcome plus rolling latencies."""

    def __init__(self, config: Optional[RunStatsConfig] = None) -> None:
        self._lock = threading.Lock()
        self._config = RunStatsConfig()
        self.successes = RollingCounter()
        self.err_concurrency_limit_rejects = RollingCounter()
        self.err_failures = RollingCounter()
        self.err_short_circuits = RollingCounter()
        self.err_timeouts = RollingCounter()
        self.err_bad_requests = RollingCounter()
        self.err_interrupts = RollingCounter()
        self.latencies = RollingPercentile()
        if config is not None:
            self.set_config(config)

    def set_config(self, config: RunStatsConfig) -> None:
        """Apply config, replacing every counter with a fresh one."""
        if config.now is None:
            raise ValueError("run stats config needs a clock")
        width = _bucket_width(
            config.rolling_stats_duration, config.rolling_stats_num_buckets, "rolling stats"
        )
        pct_width = _bucket_width(
            config.rolling_percentile_duration,
            config.rolling_percentile_num_buckets,
            "rolling percentile",
        )
        with self._lock:
            self._config = dataclasses.replace(config)
            now = config.now()
            buckets = config.rolling_stats_num_buckets
            self.successes = RollingCounter(width, buckets, now)
            self.err_concurrency_limit_rejects = RollingCounter(width, buckets, now)
            self.err_failures = RollingCounter(width, buckets, now)
            self.err_short_circuits = RollingCounter(width, buckets, now)
            self.err_timeouts = RollingCounter(width, buckets, now)
            self.err_bad_requests = RollingCounter(width, buckets, now)
            self.err_interrupts = RollingCounter(width, buckets, now)
            self.latencies = RollingPercentile(
                pct_width,
                config.rolling_percentile_num_buckets,
                config.rolling_percentile_bucket_size,
                now,
            )

    def config(self) -> RunStatsConfig:
        """A copy of the current configuration."""
        with self._lock:
            return dataclasses.replace(self._config)

    def success(self, now: int, duration: int) -> None:
        self.successes.inc(now)
        self.latencies.add_duration(duration, now)

    def err_failure(self, now: int, duration: int) -> None:
        self.err_failures.inc(now)
        self.latencies.add_duration(duration, now)

    def err_timeout(self, now: int, duration: int) -> None:
        self.err_timeouts.inc(now)
        self.latencies.add_duration(duration, now)

    def err_bad_request(self, now: int, duration: int) -> None:
        self.err_bad_requests.inc(now)
        self.latencies.add_duration(duration, now)

    def err_interrupt(self, now: int, duration: int) -> None:
        self.err_interrupts.inc(now)
        self.latencies.add_duration(duration, now)

    def err_concurrency_limit_reject(self, now: int) -> None:
        self.err_concurrency_limit_rejects.inc(now)

    def err_short_circuit(self, now: int) -> None:
        self.err_short_circuits.inc(now)

    def errors_at(self, now: int) -> int:
        """Failures plus timeouts in the window ending at now."""
        return self.err_failures.rolling_sum_at(now) + self.err_timeouts.rolling_sum_at(now)

    def legitimate_attempts_at(self, now: int) -> int:
        """Successes plus errors in the window ending at now."""
        return self.successes.rolling_sum_at(now) + self.errors_at(now)

    def error_percentage_at(self, now: int) -> float:
        """Fraction (0.0 to 1.0) of legitimate attempts that were errors."""
        attempts = self.legitimate_attempts_at(now)
        if attempts == 0:
            return 0.0
        return self.errors_at(now) / attempts

    def error_percentage(self) -> float:
        return self.error_percentage_at(time.time_ns())

    def var(self) -> Callable[[], dict[str, Any]]:
        """A callable giving the state of every counter and the latencies."""

        def snapshot() -> dict[str, Any]:
            return {
                "Successes": _counter_value(self.successes),
                "ErrConcurrencyLimitRejects": _counter_value(self.err_concurrency_limit_rejects),
                "ErrFailures": _counter_value(self.err_failures),
                "ErrShortCircuits": _counter_value(self.err_short_circuits),
                "ErrTimeouts": _counter_value(self.err_timeouts),
                "ErrBadRequests": _counter_value(self.err_bad_requests),
                "ErrInterrupts": _counter_value(self.err_interrupts),
                "Latencies": for_expvar(self.latencies),
            }

        return snapshot


class FallbackStats:
    """Rolling counts of each fallback outcome."""

    def __init__(self, config: Optional[FallbackStatsConfig] = None) -> None:
        self.successes = RollingCounter()
        self.err_concurrency_limit_rejects = RollingCounter()
        self.err_failures = RollingCounter()
        if config is not None:
            self.set_config(config)

    def set_config(self, config: FallbackStatsConfig) -> None:
        """Apply config, replacing every counter with a fresh one."""
        if config.now is None:
            raise ValueError("fallback stats config needs a clock")
        width = _bucket_width(
            config.rolling_stats_duration, config.rolling_stats_num_buckets, "rolling stats"
        )
        now = config.now()
        buckets = config.rolling_stats_num_buckets
        self.successes = RollingCounter(width, buckets, now)
        self.err_concurrency_limit_rejects = RollingCounter(width, buckets, now)
        self.err_failures = RollingCounter(width, buckets, now)

    def success(self, now: int, duration: int) -> None:
        self.successes.inc(now)

    def err_failure(self, now: int, duration: int) -> None:
        self.err_failures.inc(now)

    def err_concurrency_limit_reject(self, now: int) -> None:
        self.err_concurrency_limit_rejects.inc(now)

    def var(self) -> Callable[[], dict[str, int]]:
        """A callable giving the all time totals."""
        return lambda: {
            "Successes": self.successes.total_sum(),
            "ErrConcurrencyLimitRejects": self.err_concurrency_limit_rejects.total_sum(),
            "ErrFailures": self.err_failures.total_sum(),
        }