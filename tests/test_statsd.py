import threading
from collections import defaultdict

import pytest

from circuitstats.slo import Factory
from circuitstats.statsd import (
    CommandFactory,
    PrefixedStatSender,
    SLOCollector,
    StatSender,
    append_statsd_parts,
    sanitize_statsd,
)


class RememberStats:
    def __init__(self):
        self.incs = defaultdict(list)
        self.gauges = defaultdict(list)
        self.timings = defaultdict(list)
        self.rates = []
        self._lock = threading.Lock()

    def inc(self, stat, value, sample_rate):
        with self._lock:
            self.incs[stat].append(value)
            self.rates.append(sample_rate)

    def gauge(self, stat, value, sample_rate):
        with self._lock:
            self.gauges[stat].append(value)
            self.rates.append(sample_rate)

    def timing_duration(self, stat, value, sample_rate):
        with self._lock:
            self.timings[stat].append(value)
            self.rates.append(sample_rate)


class FailingStats:
    def inc(self, stat, value, sample_rate):
        raise OSError("send failed")

    def gauge(self, stat, value, sample_rate):
        raise OSError("send failed")

    def timing_duration(self, stat, value, sample_rate):
        raise OSError("send failed")


def test_prefixed_sender_is_a_stat_sender_and_forwards():
    stats = RememberStats()
    sender = PrefixedStatSender(stats, "outer")
    assert isinstance(sender, StatSender)
    nested = PrefixedStatSender(sender, "inner")
    nested.inc("hits", 2, 1.0)
    assert stats.incs["outer.inner.hits"] == [2]


def test_command_factory_config():
    factory = CommandFactory(
        stat_sender=RememberStats(),
        sample_rate=0.5,
        sanitize_statsd_function=lambda _: "_bob_",
    )
    assert factory.effective_sample_rate() == 0.5
    assert factory.effective_sanitizer()("") == "_bob_"


def test_command_factory_defaults():
    factory = CommandFactory(stat_sender=RememberStats())
    assert factory.effective_sample_rate() == 1.0
    assert factory.effective_sanitizer()("a.b") == "a_b"


def test_sanitize_statsd_basic():
    assert sanitize_statsd("aA0") == "aA0"
    assert sanitize_statsd("abc.123.*&#") == "abc_123____"


@pytest.mark.parametrize(
    "name, expected",
    [
        ("hello", "hello"),
        ("", ""),
        ("aAzZ09_,", "aAzZ09__"),
        ("a" * 65, "a" * 64),
    ],
)
def test_sanitize_statsd_cases(name, expected):
    assert sanitize_statsd(name) == expected


def test_append_statsd_parts():
    assert append_statsd_parts(sanitize_statsd, "hello", "", "world") == "hello.world"


def test_append_statsd_parts_strips_dots():
    assert append_statsd_parts(lambda s: s, ".a.", "..", "b") == "a.b"


def test_prefixed_stat_sender():
    stats = RememberStats()
    sender = PrefixedStatSender(stats, "pre")
    sender.inc("x", 3, 1.0)
    sender.gauge("y", 7, 1.0)
    sender.timing_duration("z", 100, 1.0)
    assert stats.incs["pre.x"] == [3]
    assert stats.gauges["pre.y"] == [7]
    assert stats.timings["pre.z"] == [100]


def test_run_collector_names_and_timings():
    stats = RememberStats()
    collector = CommandFactory(stat_sender=stats).run_collector("example")
    collector.success(0, 10)
    collector.err_failure(0, 20)
    collector.err_timeout(0, 30)
    collector.err_bad_request(0, 40)
    collector.err_interrupt(0, 50)
    collector.err_short_circuit(0)
    collector.err_concurrency_limit_reject(0)
    assert set(stats.incs) == {
        "example.run.success",
        "example.run.err_failure",
        "example.run.err_timeout",
        "example.run.err_bad_request",
        "example.run.err_interrupt",
        "example.run.err_short_circuit",
        "example.run.err_concurrency_limit_reject",
    }
    assert stats.timings["example.run.calls"] == [10, 20, 30, 40, 50]
    assert set(stats.rates) == {1.0}


def test_fallback_collector():
    stats = RememberStats()
    collector = CommandFactory(stat_sender=stats, sample_rate=0.25).fallback_collector("fb")
    collector.success(0, 5)
    collector.err_failure(0, 5)
    collector.err_concurrency_limit_reject(0)
    assert dict(stats.incs) == {
        "fb.fallback.success": [1],
        "fb.fallback.err_failure": [1],
        "fb.fallback.err_concurrency_limit_reject": [1],
    }
    assert stats.timings == {}
    assert set(stats.rates) == {0.25}


def test_circuit_collector_gauge():
    stats = RememberStats()
    collector = CommandFactory(stat_sender=stats).circuit_collector("c")
    collector.opened(0)
    collector.closed(0)
    assert stats.gauges["c.circuit.is_open"] == [1, 0]


def test_slo_collector_via_tracker():
    stats = RememberStats()
    factory = CommandFactory(stat_sender=stats)
    tracker = Factory(collector_constructors=[factory.slo_collector]).create_tracker("example")
    tracker.success(0, 1)
    tracker.err_failure(0, 1)
    assert stats.incs["example.slo.passed"] == [1]
    assert stats.incs["example.slo.failed"] == [1]


def test_circuit_name_is_sanitized():
    stats = RememberStats()
    CommandFactory(stat_sender=stats).run_collector("my.circuit").success(0, 1)
    assert list(stats.incs) == ["my_circuit.run.success"]


def test_errors_go_to_handler():
    seen = []
    collector = CommandFactory(stat_sender=FailingStats(), on_error=seen.append).run_collector("x")
    collector.success(0, 1)
    assert len(seen) == 2
    assert all(isinstance(e, OSError) for e in seen)


def test_errors_dropped_without_handler():
    collector = SLOCollector(PrefixedStatSender(FailingStats(), "p"))
    collector.passed()
    collector.failed()
    assert collector.on_error is None
    assert collector.sample_rate == 1.0