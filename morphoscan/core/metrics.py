"""morphoscan.core.metrics

Run counters for sweeps and workers.

Counters are written from the polling path and read from the CLI summary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock

RUNS_STARTED = "worker.runs_started"
RUNS_FAILED = "worker.runs_failed"
STEPS_INGESTED = "worker.steps_ingested"
INGEST_ERRORS = "worker.ingest_errors"
JOBS_SKIPPED = "scan.jobs_skipped"
JOBS_DONE = "scan.jobs_done"
SCAN_PROGRESS = "scan.progress"


@dataclass
class Counter:
    name: str
    _value: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False)

    def inc(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


@dataclass
class Gauge:
    name: str
    _value: float = 0.0
    _lock: Lock = field(default_factory=Lock, repr=False)

    def set(self, value: float) -> None:
        with self._lock:
            self._value = float(value)

    @property
    def value(self) -> float:
        with self._lock:
            return self._value


class MetricsRegistry:
    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: dict[str, Counter] = {}
        self._gauges: dict[str, Gauge] = {}

    def counter(self, name: str) -> Counter:
        with self._lock:
            return self._counters.setdefault(name, Counter(name=name))

    def gauge(self, name: str) -> Gauge:
        with self._lock:
            return self._gauges.setdefault(name, Gauge(name=name))

    def snapshot(self) -> dict[str, float]:
        with self._lock:
            counters = list(self._counters.values())
            gauges = list(self._gauges.values())
        data: dict[str, float] = {c.name: float(c.value) for c in counters}
        data.update({g.name: g.value for g in gauges})
        return data
