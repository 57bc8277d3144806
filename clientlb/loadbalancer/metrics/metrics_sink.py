"""
Metrics sinks for load balancers.

A sink is injected into each balancer. The balancer registers itself on
construction, counts every ``choose_server`` call, and unregisters on
shutdown.
"""

import threading
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any


CHOOSE_SERVER_COUNTER = "LoadBalancer_ChooseServer"


@dataclass(slots=True)
class MetricsSnapshot:
    """Point-in-time copy of an in-memory sink."""

    timestamp: float
    """When this snapshot was taken (monotonic)."""

    counters: dict[str, int] = field(default_factory=dict)
    """Counter totals by name."""

    registered: tuple[str, ...] = ()
    """Names of currently registered sources."""


class MetricsSink(ABC):
    @abstractmethod
    def register(self, name: str, source: Any) -> None:
        ...

    @abstractmethod
    def unregister(self, name: str) -> None:
        ...

    @abstractmethod
    def increment(self, counter: str, amount: int = 1) -> None:
        ...


class NullMetricsSink(MetricsSink):
    """Discards everything."""

    def register(self, name: str, source: Any) -> None:
        pass

    def unregister(self, name: str) -> None:
        pass

    def increment(self, counter: str, amount: int = 1) -> None:
        pass


class InMemoryMetricsSink(MetricsSink):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sources: dict[str, Any] = {}
        self._counters: defaultdict[str, int] = defaultdict(int)

    def register(self, name: str, source: Any) -> None:
        with self._lock:
            self._sources[name] = source

    def unregister(self, name: str) -> None:
        with self._lock:
            self._sources.pop(name, None)

    def increment(self, counter: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[counter] += amount

    def is_registered(self, name: str) -> bool:
        return name in self._sources

    def get_source(self, name: str) -> Any:
        return self._sources.get(name)

    def get_counter(self, counter: str) -> int:
        return self._counters.get(counter, 0)

    def get_snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(
                timestamp=time.monotonic(),
                counters=dict(self._counters),
                registered=tuple(self._sources),
            )


def choose_server_counter(name: str) -> str:
    return f"{name}.{CHOOSE_SERVER_COUNTER}"
