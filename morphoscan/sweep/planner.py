"""morphoscan.sweep.planner

Sweep planning: ranges + base parameters + mode -> ordered job queue.

Enumeration is deterministic. The job ID is the odometer digit vector, so
identical inputs always give identical IDs; re-runs and exported data
folders rely on that.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TextIO

from morphoscan.core.exceptions import ConfigError
from morphoscan.core.types import BASE_DIGIT, Job, ParameterSet, RangeSpec, SweepMode, is_reserved, render_digits
from morphoscan.sweep.odometer import Odometer

logger = logging.getLogger(__name__)

LARGE_SWEEP_WARNING = 100000


def _odometer(ranges: Sequence[RangeSpec], mode: SweepMode) -> Odometer:
    return Odometer(radices=tuple(r.levels for r in ranges), mode=SweepMode(mode))


def job_count(ranges: Sequence[RangeSpec], mode: SweepMode) -> int:
    """Number of jobs without materializing them. 0 when no range is selected."""

    return _odometer(ranges, mode).count()


def _check_ranges(ranges: Sequence[RangeSpec], base: ParameterSet) -> None:
    seen: set[str] = set()
    for r in ranges:
        if is_reserved(r.name):
            raise ConfigError(f"'{r.name}' is a reserved key and cannot be scanned")
        if r.name not in base:
            raise ConfigError(f"Scan range for unknown parameter '{r.name}'")
        if r.name in seen:
            raise ConfigError(f"Duplicate scan range for '{r.name}'")
        seen.add(r.name)


def enumerate_jobs(
    ranges: Sequence[RangeSpec],
    base: ParameterSet,
    mode: SweepMode,
    *,
    trace: TextIO | None = None,
) -> list[Job]:
    """Materialize the job queue.

    Args:
        ranges: Scanned parameters, in odometer digit order.
        base: Parameters every job starts from.
        mode: Linear (one parameter at a time) or combinatorial.
        trace: Optional text sink for the human-readable job log.
    """

    _check_ranges(ranges, base)
    odo = _odometer(ranges, mode)

    jobs: list[Job] = []
    for index, digits in enumerate(odo):
        job_id = render_digits(digits)
        overrides: dict[str, float] = {}
        for r, d in zip(ranges, digits):
            if d == BASE_DIGIT:
                continue
            overrides[r.name] = r.value_at(d)

        job = Job(index=index, digits=digits, params=base.with_values(overrides).with_job_id(job_id))
        jobs.append(job)

        if trace is not None:
            trace.write(f"i:{index} --- {job_id}\n")
            for name, value in overrides.items():
                trace.write(f"par: {name}, val: {value:f}\n")
            trace.write("\n")

    if trace is not None:
        trace.write(f"Number of jobs generated: {len(jobs)}\n")
    return jobs


class SweepPlanner:
    """Holds the scan ranges and hands out jobs one at a time."""

    def __init__(self, ranges: Sequence[RangeSpec] = (), *, large_sweep_warning: int = LARGE_SWEEP_WARNING) -> None:
        self._ranges: list[RangeSpec] = []
        self._queue: list[Job] = []
        self._cursor = 0
        self.large_sweep_warning = large_sweep_warning
        for r in ranges:
            self.add_range(r)

    @property
    def ranges(self) -> tuple[RangeSpec, ...]:
        return tuple(self._ranges)

    def add_range(self, spec: RangeSpec) -> None:
        """Add a range, replacing any existing range for the same parameter."""

        self.remove_range(spec.name)
        self._ranges.append(spec)

    def remove_range(self, name: str) -> None:
        self._ranges = [r for r in self._ranges if r.name != name]

    def job_count(self, mode: SweepMode) -> int:
        return job_count(self._ranges, mode)

    def plan(self, base: ParameterSet, mode: SweepMode, *, trace: TextIO | None = None) -> list[Job]:
        """Populate the queue. Any previous queue is discarded."""

        self.reset()
        n = self.job_count(mode)
        logger.info("sweep_planned", extra={"jobs": n, "mode": str(mode), "ranges": len(self._ranges)})
        if n > self.large_sweep_warning:
            logger.warning("sweep_very_large", extra={"jobs": n})
        self._queue = enumerate_jobs(self._ranges, base, mode, trace=trace)
        return list(self._queue)

    def next_job(self) -> Job | None:
        if self._cursor >= len(self._queue):
            return None
        job = self._queue[self._cursor]
        self._cursor += 1
        return job

    def job_at(self, i: int) -> Job | None:
        if 0 <= i < len(self._queue):
            return self._queue[i]
        return None

    @property
    def remaining(self) -> int:
        return len(self._queue) - self._cursor

    @property
    def current(self) -> int:
        """Index of the next job ``next_job()`` would return."""

        return self._cursor

    def __len__(self) -> int:
        return len(self._queue)

    def reset(self) -> None:
        """Drop the queue and rewind. Ranges are kept."""

        self._queue = []
        self._cursor = 0

    def clear(self) -> None:
        self.reset()
        self._ranges = []
