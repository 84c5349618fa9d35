"""Interfaces for circuit metric sinks and collections that fan out to many.

Times and durations are integer nanoseconds.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Protocol, runtime_checkable

from circuitstats.evar import for_expvar


@runtime_checkable
class Metrics(Protocol):
    """Receives circuit state transitions."""

    def closed(self, now: int) -> None:
        """Called when the circuit moves from open to closed."""

    def opened(self, now: int) -> None:
        """Called when the circuit moves from closed to open."""


@runtime_checkable
class RunMetrics(Protocol):
    """Receives exactly one event each time a circuit attempts a run function.

    Events with a duration mean the run function actually executed.
    """

    def success(self, now: int, duration: int) -> None:
        """The run function returned without error."""

    def err_failure(self, now: int, duration: int) -> None:
        """The run function ran but failed."""

    def err_timeout(self, now: int, duration: int) -> None:
        """The run function timed out."""

    def err_bad_request(self, now: int, duration: int) -> None:
        """The run function failed because of bad input."""

    def err_interrupt(self, now: int, duration: int) -> None:
        """The run ended because the caller's context ended."""

    def err_concurrency_limit_reject(self, now: int) -> None:
        """The run was rejected by the concurrency limit."""

    def err_short_circuit(self, now: int) -> None:
        """The run was not attempted because the circuit was open."""


@runtime_checkable
class FallbackMetrics(Protocol):
    """Receives exactly one event each time a fallback is attempted."""

    def success(self, now: int, duration: int) -> None:
        """The fallback ran and succeeded."""

    def err_failure(self, now: int, duration: int) -> None:
        """The fallback ran and failed."""

    def err_concurrency_limit_reject(self, now: int) -> None:
        """The fallback was rejected by the concurrency limit."""


def _vars_of(items: Iterable[Any]) -> Callable[[], list[Any]]:
    members = list(items)

    def snapshot() -> list[Any]:
        values = []
        for member in members:
            if callable(getattr(member, "var", None)):
                value = for_expvar(member)
                if value is not None:
                    values.append(value)
        return values

    return snapshot


class RunMetricsCollection(list):
    """Sends every run event to each member in order."""

    def success(self, now: int, duration: int) -> None:
        for member in self:
            member.success(now, duration)

    def err_failure(self, now: int, duration: int) -> None:
        for member in self:
            member.err_failure(now, duration)

    def err_timeout(self, now: int, duration: int) -> None:
        for member in self:
            member.err_timeout(now, duration)

    def err_bad_request(self, now: int, duration: int) -> None:
        for member in self:
            member.err_bad_request(now, duration)

    def err_interrupt(self, now: int, duration: int) -> None:
        for member in self:
            member.err_interrupt(now, duration)

    def err_concurrency_limit_reject(self, now: int) -> None:
        for member in self:
            member.err_concurrency_limit_reject(now)

    def err_short_circuit(self, now: int) -> None:
        for member in self:
            member.err_short_circuit(now)

    def var(self) -> Callable[[], list[Any]]:
        """A callable giving the snapshots of members that expose one."""
        return _vars_of(self)


class FallbackMetricsCollection(list):
    """Sends every fallback event to each member in order."""

    def success(self, now: int, duration: int) -> None:
        for member in self:
            member.success(now, duration)

    def err_failure(self, now: int, duration: int) -> None:
        for member in self:
            member.err_failure(now, duration)

    def err_concurrency_limit_reject(self, now: int) -> None:
        for member in self:
            member.err_concurrency_limit_reject(now)

    def var(self) -> Callable[[], list[Any]]:
        """A callable giving the snapshots of members that expose one."""
        return _vars_of(self)


class MetricsCollection(list):
    """Sends every circuit transition to each member in order."""

    def opened(self, now: int) -> None:
        for member in self:
            member.opened(now)

    def closed(self, now: int) -> None:
        for member in self:
            member.closed(now)