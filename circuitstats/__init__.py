"""Rolling counters, latency percentiles, timed checks, SLO tracking and statsd reporting for circuit breakers."""

__version__ = "0.1.0"

__all__ = [
    "atomic",
    "clock",
    "evar",
    "metrics",
    "rolling_buckets",
    "rolling_counter",
    "rolling_percentile",
    "rolling_stats",
    "slo",
    "statsd",
    "timed_check",
    "wrapper",
]