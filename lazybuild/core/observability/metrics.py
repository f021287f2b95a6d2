"""
Metrics — in-process counters, gauges and duration histograms.

Shared between request threads and per-unit build threads, so every
update goes through the registry lock. Exported as JSON on the dev
server's status endpoint.

Names in use:
    gate.inspections         counter   artifact inspections run
    gate.modules_suspended   counter   build steps deferred
    gate.modules_resumed     counter   deferred build steps completed
    gate.modules_marked      counter   identities newly marked needed
    gate.recompiles          counter   scoped recompiles (label: unit)
    gate.pending             gauge     suspensions waiting for their tick
    build.duration_ms        histogram pass duration (label: unit)
"""

from __future__ import annotations

import builtins
import threading
import time
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Counter:
    """Monotonically increasing counter."""

    name: str
    value: int = 0
    labels: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": "counter", "value": self.value, "labels": self.labels}


@dataclass
class Gauge:
    """Value that can go up and down."""

    name: str
    value: float = 0.0
    labels: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": "gauge", "value": self.value, "labels": self.labels}


@dataclass
class Histogram:
    """Observed values, summarized as count/mean/min/max."""

    name: str
    values: list[float] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.values)

    @property
    def mean(self) -> float:
        if not self.values:
            return 0.0
        return sum(self.values) / len(self.values)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": "histogram",
            "count": self.count,
            "mean": round(self.mean, 2),
            "min": builtins.min(self.values) if self.values else 0.0,
            "max": builtins.max(self.values) if self.values else 0.0,
            "labels": self.labels,
        }


def _key(name: str, labels: dict[str, str]) -> str:
    if not labels:
        return name
    return name + "{" + ",".join(f"{k}={v}" for k, v in sorted(labels.items())) + "}"


class MetricsRegistry:
    """Thread-safe registry; metrics are created on first use."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[str, Counter] = {}
        self._gauges: dict[str, Gauge] = {}
        self._histograms: dict[str, Histogram] = {}

    def inc(self, name: str, n: int = 1, **labels: str) -> None:
        """Increment a counter."""
        with self._lock:
            key = _key(name, labels)
            counter = self._counters.get(key)
            if counter is None:
                counter = self._counters[key] = Counter(name=name, labels=labels)
            counter.value += n

    def add(self, name: str, delta: float, **labels: str) -> None:
        """Move a gauge up or down."""
        with self._lock:
            key = _key(name, labels)
            gauge = self._gauges.get(key)
            if gauge is None:
                gauge = self._gauges[key] = Gauge(name=name, labels=labels)
            gauge.value += delta

    def observe(self, name: str, value: float, **labels: str) -> None:
        """Record a value in a histogram."""
        with self._lock:
            key = _key(name, labels)
            hist = self._histograms.get(key)
            if hist is None:
                hist = self._histograms[key] = Histogram(name=name, labels=labels)
            hist.values.append(value)

    def value(self, name: str, **labels: str) -> float:
        """Current value of a counter or gauge (0 if never touched)."""
        key = _key(name, labels)
        with self._lock:
            if key in self._counters:
                return self._counters[key].value
            if key in self._gauges:
                return self._gauges[key].value
        return 0

    def timer(self, name: str, **labels: str) -> TimerContext:
        """Time a block in milliseconds into a histogram."""
        return TimerContext(self, name, labels)

    def to_dict(self) -> dict[str, list[dict]]:
        with self._lock:
            return {
                "counters": [c.to_dict() for c in self._counters.values()],
                "gauges": [g.to_dict() for g in self._gauges.values()],
                "histograms": [h.to_dict() for h in self._histograms.values()],
            }


class TimerContext:
    """Context manager for timing operations."""

    def __init__(self, registry: MetricsRegistry, name: str, labels: dict[str, str]):
        self._registry = registry
        self._name = name
        self._labels = labels
        self._start: float = 0.0

    def __enter__(self) -> TimerContext:
        self._start = time.monotonic()
        return self

    def __exit__(self, *args: Any) -> None:
        elapsed_ms = (time.monotonic() - self._start) * 1000
        self._registry.observe(self._name, elapsed_ms, **self._labels)
