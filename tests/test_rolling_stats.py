import time

import pytest

from circuitstats.rolling_stats import (
    DEFAULT_FALLBACK_STATS_CONFIG,
    DEFAULT_RUN_STATS_CONFIG,
    FallbackStats,
    FallbackStatsConfig,
    RunStats,
    RunStatsConfig,
)

SECOND = 1_000_000_000
T0 = 1_000 * SECOND


def fixed_run_stats():
    cfg = RunStatsConfig(now=lambda: T0)
    cfg.merge(DEFAULT_RUN_STATS_CONFIG)
    return RunStats(cfg)


def fixed_fallback_stats():
    cfg = FallbackStatsConfig(now=lambda: T0)
    cfg.merge(DEFAULT_FALLBACK_STATS_CONFIG)
    return FallbackStats(cfg)


def test_happy_run():
    r = fixed_run_stats()
    r.success(T0, 10)
    assert r.errors_at(T0) == 0
    assert r.successes.total_sum() == 1
    assert r.successes.rolling_sum_at(T0) == 1
    assert r.legitimate_attempts_at(T0) == 1


def test_bad_request_not_legitimate():
    r = fixed_run_stats()
    r.err_bad_request(T0, 10)
    assert r.errors_at(T0) == 0
    assert r.legitimate_attempts_at(T0) == 0
    assert r.err_bad_requests.rolling_sum_at(T0) == 1


def test_failure_with_fallback_success():
    r = fixed_run_stats()
    f = fixed_fallback_stats()
    r.err_failure(T0, 10)
    f.success(T0, 5)
    assert r.errors_at(T0) == 1
    assert r.err_failures.rolling_sum_at(T0) == 1
    assert f.err_failures.total_sum() == 0
    assert f.successes.total_sum() == 1
    assert f.successes.rolling_sum_at(T0) == 1


def test_interrupt_is_not_an_error():
    r = fixed_run_stats()
    r.err_interrupt(T0, 3_000_000)
    assert r.errors_at(T0) == 0
    assert r.err_interrupts.total_sum() == 1
    assert r.err_interrupts.rolling_sum_at(T0) == 1


def test_run_stats_var_unconfigured():
    out = RunStats().var()()
    assert "ErrFailures" in out
    assert out["ErrFailures"]["TotalSum"] == 0
    assert out["Latencies"] == {"snap": {
        "min": "-1ns", "p25": "-1ns", "p50": "-1ns", "p90": "-1ns",
        "p99": "-1ns", "max": "-1ns", "mean": "-1ns",
    }}


def test_run_stats_config():
    c = RunStatsConfig(rolling_stats_num_buckets=10)
    c.merge(DEFAULT_RUN_STATS_CONFIG)
    r = RunStats()
    r.set_config(c)
    assert r.config().rolling_stats_num_buckets == 10
    assert r.config().rolling_percentile_bucket_size == 100


def test_merge_keeps_set_values():
    c = RunStatsConfig(rolling_stats_duration=5 * SECOND)
    c.merge(DEFAULT_RUN_STATS_CONFIG)
    assert c.rolling_stats_duration == 5 * SECOND
    assert c.rolling_percentile_duration == 60 * SECOND
    f = FallbackStatsConfig(rolling_stats_num_buckets=3)
    f.merge(DEFAULT_FALLBACK_STATS_CONFIG)
    assert f.rolling_stats_num_buckets == 3
    assert f.rolling_stats_duration == 10 * SECOND


def test_err_concurrency_limit_reject():
    r = RunStats()
    r.set_config(DEFAULT_RUN_STATS_CONFIG)
    r.err_concurrency_limit_reject(time.time_ns())
    assert r.err_concurrency_limit_rejects.total_sum() == 1


def test_err_short_circuit():
    r = RunStats()
    r.set_config(DEFAULT_RUN_STATS_CONFIG)
    r.err_short_circuit(time.time_ns())
    assert r.err_short_circuits.total_sum() == 1


def test_err_timeout():
    r = RunStats()
    r.set_config(DEFAULT_RUN_STATS_CONFIG)
    r.err_timeout(time.time_ns(), SECOND)
    assert r.err_timeouts.total_sum() == 1
    assert r.latencies.snapshot().max() == SECOND


def test_error_percentage():
    r = RunStats()
    assert r.error_percentage() == 0.0
    r.set_config(DEFAULT_RUN_STATS_CONFIG)
    r.err_timeout(time.time_ns(), SECOND)
    assert r.error_percentage() == 1.0


def test_error_percentage_mixed():
    r = fixed_run_stats()
    r.success(T0, 1)
    r.err_failure(T0, 1)
    assert r.error_percentage_at(T0) == 0.5


def test_fallback_var_totals():
    f = fixed_fallback_stats()
    f.err_concurrency_limit_reject(T0)
    f.err_failure(T0, 1)
    f.err_failure(T0, 1)
    assert f.var()() == {
        "Successes": 0,
        "ErrConcurrencyLimitRejects": 1,
        "ErrFailures": 2,
    }


def test_zero_buckets_rejected():
    with pytest.raises(ValueError):
        RunStats(RunStatsConfig(now=lambda: T0, rolling_stats_duration=SECOND))
    with pytest.raises(ValueError):
        FallbackStats(FallbackStatsConfig(now=lambda: T0))


def test_missing_clock_rejected():
    with pytest.raises(ValueError):
        RunStats(RunStatsConfig(rolling_stats_num_buckets=1, rolling_percentile_num_buckets=1))