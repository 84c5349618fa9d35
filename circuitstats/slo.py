"""Response time SLO tracking: count requests that are fast and correct.

A request meets the SLO only if it succeeds within a maximum healthy time.
Bad requests count neither way; interrupts count against the SLO only when
they already took longer than the healthy time. Durations are nanoseconds.
"""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Iterable, Optional, Protocol, runtime_checkable

from circuitstats.atomic import AtomicInt


@dataclass
class SloConfig:
    """How an SLO is judged."""

    maximum_healthy_time: int = 0

    def merge(self, other: SloConfig) -> None:
        """Fill unset (zero) values from other."""
        if self.maximum_healthy_time == 0:
            self.maximum_healthy_time = other.maximum_healthy_time


_DEFAULT_CONFIG = SloConfig(maximum_healthy_time=250_000_000)


@runtime_checkable
class Collector(Protocol):
    """Receives SLO outcomes."""

    def failed(self) -> None:
        """A request failed the SLO."""

    def passed(self) -> None:
        """A request met the SLO."""


class Tracker:
    """Counts run events as meeting or failing the SLO."""

    def __init__(self, collectors: Optional[Iterable[Collector]] = None) -> None:
        self.maximum_healthy_time = AtomicInt()
        self.meets_slo_count = AtomicInt()
        self.fails_slo_count = AtomicInt()
        self.ignored_count = AtomicInt()
        self.collectors: list[Collector] = list(collectors or [])
        self._lock = threading.Lock()
        self._config = SloConfig()

    def _failure(self) -> None:
        self.fails_slo_count.add(1)
        for collector in self.collectors:
            collector.failed()

    def _healthy(self) -> None:
        self.meets_slo_count.add(1)
        for collector in self.collectors:
            collector.passed()

    def success(self, now: int, duration: int) -> None:
        """Healthy if duration is within the maximum healthy time."""
        if duration <= self.maximum_healthy_time.get():
            self._healthy()
        else:
            self._failure()

    def err_failure(self, now: int, duration: int) -> None:
        self._failure()

    def err_timeout(self, now: int, duration: int) -> None:
        self._failure()

    def err_bad_request(self, now: int, duration: int) -> None:
        """Bad requests neither meet nor fail the SLO; they are only tallied."""
        self.ignored_count.add(1)

    def err_interrupt(self, now: int, duration: int) -> None:
        """A failure only if the healthy time had already passed."""
        if duration > self.maximum_healthy_time.get():
            self._failure()

    def err_concurrency_limit_reject(self, now: int) -> None:
        self._failure()

    def err_short_circuit(self, now: int) -> None:
        self._failure()

    def set_config(self, config: SloConfig) -> None:
        with self._lock:
            self._config = SloConfig(config.maximum_healthy_time)
            self.maximum_healthy_time.set(config.maximum_healthy_time)

    def config(self) -> SloConfig:
        with self._lock:
            return SloConfig(self._config.maximum_healthy_time)

    def var(self) -> Callable[[], dict[str, Any]]:
        """A callable giving the config and pass/fail counts."""
        return lambda: {
            "config": asdict(self.config()),
            "pass": self.meets_slo_count.get(),
            "fail": self.fails_slo_count.get(),
        }


@dataclass
class Factory:
    """Creates SLO trackers for circuits by name."""

    config: SloConfig = field(default_factory=SloConfig)
    config_constructors: list[Callable[[str], SloConfig]] = field(default_factory=list)
    collector_constructors: list[Callable[[str], Collector]] = field(default_factory=list)

    def config_for(self, circuit_name: str) -> SloConfig:
        """Merged config; later constructors win, then the factory config, then defaults."""
        final = SloConfig()
        for constructor in reversed(self.config_constructors):
            final.merge(constructor(circuit_name))
        final.merge(self.config)
        final.merge(_DEFAULT_CONFIG)
        return final

    def create_tracker(self, circuit_name: str) -> Tracker:
        tracker = Tracker(constructor(circuit_name) for constructor in self.collector_constructors)
        tracker.set_config(self.config_for(circuit_name))
        return tracker