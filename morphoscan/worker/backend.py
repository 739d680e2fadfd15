"""morphoscan.worker.backend

What the scan coordinator needs from a worker runner.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from morphoscan.core.types import Job
from morphoscan.worker.state import RunHandle, RunOutcome


@runtime_checkable
class WorkerBackend(Protocol):
    def start(
        self,
        job: Job,
        *,
        step_size: int,
        iterations: int,
        time_limit_s: float = -1.0,
    ) -> RunHandle: ...

    def poll(self) -> RunHandle: ...

    def stop(self) -> None: ...

    def is_running(self) -> bool: ...

    def outcome(self) -> RunOutcome | None: ...

    def run_until_finished(self) -> RunOutcome: ...
