import time

from circuitstats.slo import Factory, SloConfig, Tracker

SECOND = 1_000_000_000
MILLISECOND = 1_000_000


def check_slo(tracker, expect_fail, expect_pass):
    assert tracker.fails_slo_count.get() == expect_fail
    assert tracker.meets_slo_count.get() == expect_pass


def test_tracker_sequence():
    r = Tracker()
    r.maximum_healthy_time.set(SECOND)
    now = time.time_ns()
    r.err_interrupt(now, SECOND)
    check_slo(r, 0, 0)
    r.err_interrupt(now, SECOND * 2)
    check_slo(r, 1, 0)
    r.err_bad_request(now, SECOND * 2)
    check_slo(r, 1, 0)
    r.err_concurrency_limit_reject(now)
    check_slo(r, 2, 0)
    r.err_failure(now, 1)
    check_slo(r, 3, 0)
    r.err_short_circuit(now)
    check_slo(r, 4, 0)
    r.err_timeout(now, SECOND)
    check_slo(r, 5, 0)
    r.success(now, SECOND)
    check_slo(r, 5, 1)
    r.success(now, SECOND * 2)
    check_slo(r, 6, 1)
    snapshot = r.var()()
    assert snapshot["pass"] == 1
    assert snapshot["fail"] == 6


class CountingCollector:
    def __init__(self):
        self.passes = 0
        self.fails = 0

    def passed(self):
        self.passes += 1

    def failed(self):
        self.fails += 1


def test_tracker_notifies_collectors():
    collector = CountingCollector()
    r = Tracker([collector])
    r.set_config(SloConfig(maximum_healthy_time=SECOND))
    r.success(0, SECOND)
    r.err_timeout(0, SECOND)
    r.err_failure(0, SECOND)
    assert (collector.passes, collector.fails) == (1, 2)


def test_set_config_updates_threshold():
    r = Tracker()
    r.set_config(SloConfig(maximum_healthy_time=20 * MILLISECOND))
    assert r.config() == SloConfig(maximum_healthy_time=20 * MILLISECOND)
    assert r.maximum_healthy_time.get() == 20 * MILLISECOND
    assert r.var()()["config"] == {"maximum_healthy_time": 20 * MILLISECOND}


def test_config_merge_keeps_set_values():
    config = SloConfig(maximum_healthy_time=5)
    config.merge(SloConfig(maximum_healthy_time=9))
    assert config.maximum_healthy_time == 5
    empty = SloConfig()
    empty.merge(SloConfig(maximum_healthy_time=9))
    assert empty.maximum_healthy_time == 9


def test_factory_default_config():
    assert Factory().config_for("x").maximum_healthy_time == 250 * MILLISECOND


def test_factory_config_used():
    factory = Factory(config=SloConfig(maximum_healthy_time=20 * MILLISECOND))
    tracker = factory.create_tracker("circuit-with-slo")
    assert tracker.config().maximum_healthy_time == 20 * MILLISECOND


def test_factory_later_constructor_wins():
    factory = Factory(
        config=SloConfig(maximum_healthy_time=20 * MILLISECOND),
        config_constructors=[
            lambda name: SloConfig(maximum_healthy_time=1),
            lambda name: SloConfig(maximum_healthy_time=2),
        ],
    )
    assert factory.config_for("c").maximum_healthy_time == 2


def test_factory_builds_collectors_by_name():
    names = []

    def make(name):
        names.append(name)
        return CountingCollector()

    factory = Factory(collector_constructors=[make, make])
    tracker = factory.create_tracker("example")
    assert names == ["example", "example"]
    tracker.err_short_circuit(0)
    assert [c.fails for c in tracker.collectors] == [1, 1]