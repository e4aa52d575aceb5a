"""
Metrics — probe and cache counters, probe duration histogram.

Names in use:

    probe.spawns        compiler processes started
    probe.timeouts      processes killed for exceeding the timeout
    probe.duration_ms   wall time of each process that exited in time
    cache.hits / cache.misses / cache.waits / cache.failures
    checks.*            same, for capability checks

In-process only; ``to_dict()`` feeds ``identify --stats``. Probes run on
worker threads, so every update takes the metric's own lock.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Counter:
    """Monotonically increasing count."""

    name: str
    value: int = 0
    labels: dict[str, str] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def inc(self, n: int = 1) -> None:
        with self._lock:
            self.value += n

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": "counter", "value": self.value, "labels": self.labels}


@dataclass
class Histogram:
    """Running count, total, min and max of observed values."""

    name: str
    labels: dict[str, str] = field(default_factory=dict)
    count: int = 0
    total: float = 0.0
    min: float = 0.0
    max: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def observe(self, value: float) -> None:
        with self._lock:
            if self.count == 0:
                self.min = self.max = value
            else:
                self.min = value if value < self.min else self.min
                self.max = value if value > self.max else self.max
            self.count += 1
            self.total += value

    @property
    def mean(self) -> float:
        return self.total / self.count if self.count else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": "histogram",
            "count": self.count,
            "total": round(self.total, 2),
            "mean": round(self.mean, 2),
            "min": self.min,
            "max": self.max,
            "labels": self.labels,
        }


def _series_key(name: str, labels: dict[str, str]) -> tuple[str, tuple[tuple[str, str], ...]]:
    return name, tuple(sorted(labels.items()))


class MetricsRegistry:
    """Get-or-create store of named, optionally labelled metrics."""

    def __init__(self) -> None:
        self._counters: dict[tuple, Counter] = {}
        self._histograms: dict[tuple, Histogram] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, **labels: str) -> Counter:
        key = _series_key(name, labels)
        with self._lock:
            found = self._counters.get(key)
            if found is None:
                found = self._counters[key] = Counter(name=name, labels=labels)
            return found

    def histogram(self, name: str, **labels: str) -> Histogram:
        key = _series_key(name, labels)
        with self._lock:
            found = self._histograms.get(key)
            if found is None:
                found = self._histograms[key] = Histogram(name=name, labels=labels)
            return found

    def value(self, name: str) -> int:
        """Counter total across every label set (0 if never touched)."""
        with self._lock:
            series = [c for (n, _), c in self._counters.items() if n == name]
        return sum(c.value for c in series)

    def timer(self, name: str, **labels: str) -> TimerContext:
        """Context manager recording elapsed milliseconds into ``name``."""
        return TimerContext(self.histogram(name, **labels))

    def to_dict(self) -> dict[str, list[dict]]:
        with self._lock:
            counters = list(self._counters.values())
            histograms = list(self._histograms.values())
        return {
            "counters": [c.to_dict() for c in counters],
            "histograms": [h.to_dict() for h in histograms],
        }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()


class TimerContext:
    """Times a block. Blocks that raise are not recorded."""

    def __init__(self, histogram: Histogram):
        self._histogram = histogram
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> TimerContext:
        self._start = time.monotonic()
        return self

    def __exit__(self, exc_type: Any, *exc: Any) -> None:
        self.elapsed_ms = (time.monotonic() - self._start) * 1000
        if exc_type is None:
            self._histogram.observe(self.elapsed_ms)


# Shared by the default cache and the invoker
METRICS = MetricsRegistry()
