"""Thread safe boolean and integer cells with JSON encoding."""

from __future__ import annotations

import json
import threading
from datetime import timedelta


class AtomicBoolean:
    """A boolean that can be read and written safely from many threads."""

    __slots__ = ("_value", "_lock")

    def __init__(self, value: bool = False) -> None:
        self._value = bool(value)
        self._lock = threading.Lock()

    def get(self) -> bool:
        with self._lock:
            return self._value

    def set(self, value: bool) -> None:
        with self._lock:
            self._value = bool(value)

    def __str__(self) -> str:
        return "true" if self.get() else "false"

    def __repr__(self) -> str:
        return f"AtomicBoolean({self.get()!r})"

    def to_json(self) -> str:
        """Encode the current value as a JSON bool."""
        return json.dumps(self.get())

    @classmethod
    def from_json(cls, data: str | bytes) -> AtomicBoolean:
        """Decode a JSON bool into a new cell."""
        value = json.loads(data)
        if value is None:
            return cls(False)
        if not isinstance(value, bool):
            raise ValueError(f"expected a JSON bool, got {value!r}")
        return cls(value)


class AtomicInt:
    """An integer supporting atomic add, swap and compare-and-swap."""

    __slots__ = ("_value", "_lock")

    def __init__(self, value: int = 0) -> None:
        self._value = int(value)
        self._lock = threading.Lock()

    def get(self) -> int:
        with self._lock:
            return self._value

    def set(self, value: int) -> None:
        with self._lock:
            self._value = int(value)

    def add(self, value: int) -> int:
        """Add to the stored value and return the new value."""
        with self._lock:
            self._value += int(value)
            return self._value

    def swap(self, new_value: int) -> int:
        """Store a new value and return the previous one."""
        with self._lock:
            old = self._value
            self._value = int(new_value)
            return old

    def compare_and_swap(self, expected: int, new_value: int) -> bool:
        """Store new_value only if the current value equals expected."""
        with self._lock:
            if self._value != expected:
                return False
            self._value = int(new_value)
            return True

    def duration(self) -> timedelta:
        """The stored value, read as nanoseconds, as a timedelta."""
        return timedelta(microseconds=self.get() / 1000)

    def __str__(self) -> str:
        return str(self.get())

    def __repr__(self) -> str:
        return f"AtomicInt({self.get()})"

    def to_json(self) -> str:
        """Encode the current value as a JSON number."""
        return json.dumps(self.get())

    @classmethod
    def from_json(cls, data: str | bytes) -> AtomicInt:
        """Decode a JSON integer into a new cell."""
        value = json.loads(data)
        if value is None:
            return cls(0)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"expected a JSON integer, got {value!r}")
        return cls(value)