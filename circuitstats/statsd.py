"""Report circuit metrics to a statsd-style sender.

Stat names are built from a sanitized circuit name, a section such as
``run`` or ``fallback`` and the event name, joined with dots. Durations are
integer nanoseconds.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Protocol, runtime_checkable

from circuitstats.slo import Collector

_MAX_NAME_BYTES = 64

Sanitizer = Callable[[str], str]
ErrorHandler = Callable[[Exception], None]


@runtime_checkable
class StatSender(Protocol):
    """The statsd operations the collectors need; failures raise."""

    def inc(self, stat: str, value: int, sample_rate: float) -> None:
        """Increment a counter."""

    def gauge(self, stat: str, value: int, sample_rate: float) -> None:
        """Set a gauge."""

    def timing_duration(self, stat: str, value: int, sample_rate: float) -> None:
        """Record a timing of value nanoseconds."""


def _sanitize_char(ch: str) -> str:
    if "a" <= ch <= "z" or "A" <= ch <= "Z" or "0" <= ch <= "9":
        return ch
    return "_"


def sanitize_statsd(name: str) -> str:
    """Keep at most 64 bytes of name and replace non-alphanumerics with '_'."""
    raw = name.encode("utf-8")
    if len(raw) > _MAX_NAME_BYTES:
        name = raw[:_MAX_NAME_BYTES].decode("utf-8", errors="replace")
    return "".join(_sanitize_char(ch) for ch in name)


def append_statsd_parts(sanitize: Sanitizer, *args: str) -> str:
    """Sanitize each part, drop empty ones and join the rest with dots."""
    parts = (sanitize(part).strip(".") for part in args)
    return ".".join(part for part in parts if part)


class PrefixedStatSender:
    """Sends every stat to another sender under a fixed prefix."""

    def __init__(self, send_to: StatSender, prefix: str) -> None:
        self.send_to = send_to
        self.prefix = prefix

    def _name(self, stat: str) -> str:
        return f"{self.prefix}.{stat}"

    def inc(self, stat: str, value: int, sample_rate: float) -> None:
        self.send_to.inc(self._name(stat), value, sample_rate)

    def gauge(self, stat: str, value: int, sample_rate: float) -> None:
        self.send_to.gauge(self._name(stat), value, sample_rate)

    def timing_duration(self, stat: str, value: int, sample_rate: float) -> None:
        self.send_to.timing_duration(self._name(stat), value, sample_rate)


class _StatsdCollector:
    """Shared plumbing: a prefixed sender, a sample rate and error handling.

    Errors raised by the sender go to ``on_error`` when it is set and are
    otherwise dropped, so reporting never breaks the circuit.
    """

    def __init__(
        self,
        sender: PrefixedStatSender,
        sample_rate: float = 1.0,
        on_error: Optional[ErrorHandler] = None,
    ) -> None:
        self.sender = sender
        self.sample_rate = sample_rate
        self.on_error = on_error

    def _report(self, send: Callable[[str, int, float], None], stat: str, value: int) -> None:
        try:
            send(stat, value, self.sample_rate)
        except Exception as exc:
            if self.on_error is not None:
                self.on_error(exc)

    def _inc(self, stat: str) -> None:
        self._report(self.sender.inc, stat, 1)

    def _gauge(self, stat: str, value: int) -> None:
        self._report(self.sender.gauge, stat, value)

    def _timing(self, stat: str, value: int) -> None:
        self._report(self.sender.timing_duration, stat, value)


class CircuitMetricsCollector(_StatsdCollector):
    """Reports circuit open/closed state as the ``is_open`` gauge."""

    def opened(self, now: int) -> None:
        self._gauge("is_open", 1)

    def closed(self, now: int) -> None:
        self._gauge("is_open", 0)


class SLOCollector(_StatsdCollector):
    """Counts SLO passes and failures."""

    def passed(self) -> None:
        self._inc("passed")

    def failed(self) -> None:
        self._inc("failed")


class RunMetricsCollector(_StatsdCollector):
    """Counts run outcomes and records the duration of executed runs."""

    def _ran(self, stat: str, duration: int) -> None:
        self._inc(stat)
        self._timing("calls", duration)

    def success(self, now: int, duration: int) -> None:
        self._ran("success", duration)

    def err_failure(self, now: int, duration: int) -> None:
        self._ran("err_failure", duration)

    def err_timeout(self, now: int, duration: int) -> None:
        self._ran("err_timeout", duration)

    def err_bad_request(self, now: int, duration: int) -> None:
        self._ran("err_bad_request", duration)

    def err_interrupt(self, now: int, duration: int) -> None:
        self._ran("err_interrupt", duration)

    def err_short_circuit(self, now: int) -> None:
        self._inc("err_short_circuit")

    def err_concurrency_limit_reject(self, now: int) -> None:
        self._inc("err_concurrency_limit_reject")


class FallbackMetricsCollector(_StatsdCollector):
    """Counts fallback outcomes."""

    def success(self, now: int, duration: int) -> None:
        self._inc("success")

    def err_failure(self, now: int, duration: int) -> None:
        self._inc("err_failure")

    def err_concurrency_limit_reject(self, now: int) -> None:
        self._inc("err_concurrency_limit_reject")


@dataclass
class CommandFactory:
    """Builds statsd collectors for circuits by name.

    A sample rate of zero means 1; without a sanitizer, ``sanitize_statsd``
    is used.
    """

    stat_sender: StatSender
    sample_rate: float = 0.0
    sanitize_statsd_function: Optional[Sanitizer] = None
    on_error: Optional[ErrorHandler] = None

    def effective_sample_rate(self) -> float:
        return 1.0 if self.sample_rate == 0 else self.sample_rate

    def effective_sanitizer(self) -> Sanitizer:
        if self.sanitize_statsd_function is None:
            return sanitize_statsd
        return self.sanitize_statsd_function

    def _sender(self, circuit_name: str, section: str) -> PrefixedStatSender:
        prefix = append_statsd_parts(self.effective_sanitizer(), circuit_name, section)
        return PrefixedStatSender(self.stat_sender, prefix)

    def _build(self, cls: type, circuit_name: str, section: str):
        return cls(
            self._sender(circuit_name, section),
            sample_rate=self.effective_sample_rate(),
            on_error=self.on_error,
        )

    def slo_collector(self, circuit_name: str) -> Collector:
        """SLO pass/fail counters under ``<name>.slo``."""
        return self._build(SLOCollector, circuit_name, "slo")

    def run_collector(self, circuit_name: str) -> RunMetricsCollector:
        """Run metrics under ``<name>.run``."""
        return self._build(RunMetricsCollector, circuit_name, "run")

    def fallback_collector(self, circuit_name: str) -> FallbackMetricsCollector:
        """Fallback metrics under ``<name>.fallback``."""
        return self._build(FallbackMetricsCollector, circuit_name, "fallback")

    def circuit_collector(self, circuit_name: str) -> CircuitMetricsCollector:
        """Open/closed gauge under ``<name>.circuit``."""
        return self._build(CircuitMetricsCollector, circuit_name, "circuit")