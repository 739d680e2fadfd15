"""morphoscan.worker.results

Append-only step store shared between the polling path (one writer) and any
number of readers (CLI summary, exporters, a GUI shell).
"""

from __future__ import annotations

from collections.abc import Iterator
from threading import Lock

from morphoscan.core.types import ResultStep


class ResultSequence:
    def __init__(self) -> None:
        self._lock = Lock()
        self._steps: list[ResultStep] = []
        self._by_index: dict[int, ResultStep] = {}

    def append(self, step: ResultStep) -> None:
        with self._lock:
            if self._steps and step.index <= self._steps[-1].index:
                raise ValueError(f"Step {step.index} is not after step {self._steps[-1].index}")
            self._steps.append(step)
            self._by_index[step.index] = step

    def get(self, step_index: int) -> ResultStep | None:
        with self._lock:
            return self._by_index.get(step_index)

    def indices(self) -> tuple[int, ...]:
        with self._lock:
            return tuple(s.index for s in self._steps)

    @property
    def last_index(self) -> int | None:
        with self._lock:
            return self._steps[-1].index if self._steps else None

    def snapshot(self) -> tuple[ResultStep, ...]:
        with self._lock:
            return tuple(self._steps)

    def __len__(self) -> int:
        with self._lock:
            return len(self._steps)

    def __getitem__(self, i: int) -> ResultStep:
        with self._lock:
            return self._steps[i]

    def __iter__(self) -> Iterator[ResultStep]:
        return iter(self.snapshot())
