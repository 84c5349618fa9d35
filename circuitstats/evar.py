"""Extract plain values from objects that expose themselves through ``var()``.

By convention an object's ``var()`` returns a zero argument callable that
produces a snapshot of its state.
"""

from __future__ import annotations

from typing import Any


def for_expvar(value: Any) -> Any:
    """The snapshot from value.var() if value has one, else value itself."""
    var = getattr(value, "var", None)
    if callable(var):
        snapshot = var()
        if callable(snapshot):
            return snapshot()
        return None
    return value