from datetime import timedelta

import pytest

from circuitstats.atomic import AtomicBoolean, AtomicInt

SECOND = 1_000_000_000


def test_atomic_int():
    x = AtomicInt()
    x.add(1)
    assert x.get() == 1
    assert x.swap(100) == 1
    x.set(SECOND)
    assert x.duration() == timedelta(seconds=1)
    y = AtomicInt.from_json(x.to_json())
    assert y.get() == x.get()
    y.set(1)
    assert str(y) == "1"


def test_atomic_int_compare_and_swap():
    x = AtomicInt(5)
    assert x.compare_and_swap(4, 10) is False
    assert x.get() == 5
    assert x.compare_and_swap(5, 10) is True
    assert x.get() == 10


def test_atomic_int_add_returns_new_value():
    x = AtomicInt(3)
    assert x.add(-5) == -2


def test_atomic_int_bad_json():
    with pytest.raises(ValueError):
        AtomicInt.from_json('"nope"')


def test_atomic_boolean():
    b = AtomicBoolean()
    b.set(True)
    assert b.get() is True
    assert str(b) == "true"
    c = AtomicBoolean.from_json(b.to_json())
    assert c.get() is True


def test_atomic_boolean_false_string_and_bad_json():
    b = AtomicBoolean()
    assert str(b) == "false"
    with pytest.raises(ValueError):
        AtomicBoolean.from_json("12")