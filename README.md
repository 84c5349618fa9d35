# circuitstats

Building blocks for measuring the health of circuit breakers: thread-safe
atomic values, rolling time-window counters, rolling latency percentiles,
timed checks, response-time SLO tracking and statsd reporting.

All times and durations are plain integers counting **nanoseconds**
(for example the values of `time.time_ns()`).

## Installation

```
pip install circuitstats
```

The package has no runtime dependencies. For development install the test
extra:

```
pip install "circuitstats[test]"
```

## Overview

| Module | What it offers |
| --- | --- |
| `circuitstats.atomic` | `AtomicBoolean`, `AtomicInt` with `to_json` / `from_json` |
| `circuitstats.rolling_buckets` | `RollingBuckets`, maps a time onto a ring of buckets |
| `circuitstats.rolling_counter` | `RollingCounter`, counts in a sliding window plus an all-time total |
| `circuitstats.rolling_percentile` | `RollingPercentile`, `SortedDurations`, `DurationsBucket`, `format_duration` |
| `circuitstats.timed_check` | `TimedCheck`, lets a number of checks pass once every sleep interval |
| `circuitstats.clock` | `MockClock` and `tick_until` for driving time in tests |
| `circuitstats.evar` | `for_expvar`, turns an object with a `var()` into a plain value |
| `circuitstats.metrics` | `RunMetrics`, `FallbackMetrics`, `Metrics` protocols and fan-out collections |
| `circuitstats.wrapper` | `Context`, `ContextCancelled`, `TaskWrapper` to run callables so callers can stop waiting |
| `circuitstats.slo` | `Tracker`, `Factory`, `SloConfig`, `Collector` for response-time SLOs |
| `circuitstats.rolling_stats` | `RunStats`, `FallbackStats`, `RunStatsConfig`, `FallbackStatsConfig` |
| `circuitstats.statsd` | statsd collectors, `CommandFactory`, `sanitize_statsd`, `append_statsd_parts` |

Objects that can describe themselves have a `var()` method returning a
zero-argument callable; calling it gives a snapshot (a dict or list).
`for_expvar(obj)` returns that snapshot, or `obj` itself if it has no `var`.

## Counting events in a sliding window

```python
import time
from circuitstats.rolling_counter import RollingCounter

MS = 1_000_000
start = time.time_ns()
counter = RollingCounter(1 * MS, 4, start)   # 4 buckets of 1 ms
counter.inc(start)
counter.inc(start)
counter.inc(start + MS)

counter.rolling_sum_at(start + MS)   # 3
counter.get_buckets(start + MS)      # [1, 2, 0, 0], newest first
counter.total_sum()                  # 3
```

Events at times before the counter's start are counted in `total_sum()`
but not in the window.

## Latency percentiles

```python
import time
from circuitstats.rolling_percentile import RollingPercentile

S = 1_000_000_000
now = time.time_ns()
latencies = RollingPercentile(1 * S, 10, 100, now)   # 10 buckets of 1 s, 100 values each
latencies.add_duration(1 * S, now)
latencies.add_duration(3 * S, now)

snap = latencies.snapshot_at(now)
snap.percentile(50)   # 2_000_000_000
snap.mean()           # 2_000_000_000
str(snap)             # "(1s,3s)"
```

Percentiles take a value from 0 to 100 and interpolate between
neighbouring values. An empty snapshot reports `-1` for `min()`, `max()`,
`mean()` and every percentile.

## Timed checks

```python
from circuitstats.clock import MockClock
from circuitstats.timed_check import TimedCheck

S = 1_000_000_000
clock = MockClock(0)
check = TimedCheck(time_after_func=clock.after_func)
check.set_sleep_duration(1 * S)
check.sleep_start(0)

check.check(0)                  # False, still sleeping
check.check(clock.set(1 * S))   # True
check.check(1 * S)              # False, sleeping again
```

Without `time_after_func`, a real `threading.Timer` is used.

## Running with a cancellable context

```python
from circuitstats.wrapper import Context, ContextCancelled, TaskWrapper

wrapper = TaskWrapper(lost_errors=lambda err, panic: print("lost", err, panic))
run = wrapper.run(lambda ctx: "done")
run(Context())                              # "done"

slow = wrapper.run(lambda ctx: ctx.wait())
try:
    slow(Context.with_timeout(10_000_000))  # gives up after 10 ms
except ContextCancelled as exc:
    exc.deadline                            # True
```

Exceptions from the function are re-raised to the caller. If the context
ends first, the caller gets `ContextCancelled` and the abandoned call's
outcome is passed to `lost_errors` when it finishes.

## Tracking a response-time SLO

```python
from circuitstats.slo import Factory, SloConfig

MS = 1_000_000
factory = Factory(config=SloConfig(maximum_healthy_time=20 * MS))
tracker = factory.create_tracker("my-circuit")
tracker.success(0, 5 * MS)        # meets the SLO
tracker.err_timeout(0, 1000 * MS) # fails the SLO
tracker.meets_slo_count.get()     # 1
tracker.fails_slo_count.get()     # 1
```

The default healthy time is 250 ms. Bad requests count neither way;
interrupts count as failures only when they took longer than the healthy
time. Every other error fails the SLO.

## Rolling run and fallback statistics

```python
from circuitstats.rolling_stats import RunStats, DEFAULT_RUN_STATS_CONFIG

stats = RunStats(DEFAULT_RUN_STATS_CONFIG)   # 10 s window, 60 s of latencies
stats.err_timeout(now, 1_000_000_000)
stats.error_percentage_at(now)               # 1.0
```

Errors are failures plus timeouts; legitimate attempts are successes plus
errors. `FallbackStats` counts fallback successes, failures and
concurrency-limit rejections.

## Reporting to statsd

Any object with `inc`, `gauge` and `timing_duration` methods can serve as a
`StatSender`.

```python
from circuitstats.statsd import CommandFactory

factory = CommandFactory(stat_sender=my_sender)
run_metrics = factory.run_collector("my-circuit")        # my_circuit.run.*
fallback_metrics = factory.fallback_collector("my-circuit")
circuit_metrics = factory.circuit_collector("my-circuit") # my_circuit.circuit.is_open
slo_metrics = factory.slo_collector("my-circuit")        # my_circuit.slo.passed / failed
```

Circuit names are sanitised by `sanitize_statsd`: cut to at most 64 bytes,
and anything other than ASCII letters and digits becomes `_`. A sample rate
of 0 means 1. Errors raised by the sender go to `on_error` if given and are
otherwise dropped.

## What this package does not do

It holds the measuring parts only. There is no circuit breaker that opens
and closes, no registry of circuits by name, no HTTP endpoint streaming
metrics, and no background job that polls circuits for concurrency. The
statsd collectors need a sender object supplied by the caller; the package
opens no network connections itself.

## Running the tests

```
pytest
```