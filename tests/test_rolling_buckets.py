import time

from circuitstats.rolling_buckets import RollingBuckets

SECOND = 1_000_000_000


def test_string_contains_num_buckets():
    x = RollingBuckets(num_buckets=101)
    assert "101" in str(x)


def test_advance():
    now = time.time_ns()
    x = RollingBuckets(num_buckets=5, start_time=now, bucket_width=SECOND)
    cleared = []

    assert x.advance(now - SECOND, None) == -1
    assert x.advance(now + SECOND, cleared.append) == 1
    assert x.advance(now + 10 * SECOND, cleared.append) == 0
    assert len(cleared) == 6


def test_advance_empty_ring():
    x = RollingBuckets()
    assert x.advance(123, None) == -1


def test_advance_backwards_stays_in_ring():
    x = RollingBuckets(num_buckets=5, start_time=0, bucket_width=SECOND)
    x.advance(3 * SECOND, lambda _: None)
    assert x.advance(SECOND, None) == 1
    assert x.last_abs_index.get() == 3