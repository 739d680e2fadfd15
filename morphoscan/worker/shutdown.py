"""morphoscan.worker.shutdown

Two-phase process shutdown: ask, wait a bounded grace period, then kill.

The supervisor drives :class:`TwoPhaseShutdown` one tick at a time so that
``poll()`` never blocks for the whole grace period. :func:`shutdown_process`
is the blocking form for callers that just want the process gone.

Works with anything shaped like ``subprocess.Popen``; tests pass a fake.
"""

from __future__ import annotations

import subprocess
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol, runtime_checkable


@runtime_checkable
class ProcessLike(Protocol):
    def poll(self) -> int | None: ...

    def terminate(self) -> None: ...

    def kill(self) -> None: ...

    def wait(self, timeout: float | None = None) -> int: ...


class ShutdownOutcome(StrEnum):
    ALREADY_EXITED = "already_exited"
    GRACEFUL = "graceful"
    KILLED = "killed"


@dataclass(slots=True)
class TwoPhaseShutdown:
    process: ProcessLike
    grace_s: float
    kill_wait_s: float
    clock: Callable[[], float] = time.monotonic

    deadline: float | None = None
    outcome: ShutdownOutcome | None = None

    def begin(self, *, now: float | None = None) -> ShutdownOutcome | None:
        """Send the terminate request. Returns an outcome if already done."""

        if self.outcome is not None:
            return self.outcome
        if self.process.poll() is not None:
            self.outcome = ShutdownOutcome.ALREADY_EXITED
            return self.outcome
        n = self.clock() if now is None else float(now)
        self.deadline = n + self.grace_s
        try:
            self.process.terminate()
        except ProcessLookupError:
            # Exited between poll() and terminate().
            self.outcome = ShutdownOutcome.ALREADY_EXITED
        return self.outcome

    def step(self, *, now: float | None = None) -> ShutdownOutcome | None:
        """Advance once. None means still inside the grace period."""

        if self.outcome is not None:
            return self.outcome
        if self.deadline is None:
            return self.begin(now=now)

        if self.process.poll() is not None:
            self.outcome = ShutdownOutcome.GRACEFUL
            return self.outcome

        n = self.clock() if now is None else float(now)
        if n < self.deadline:
            return None

        self.force_kill()
        self.outcome = ShutdownOutcome.KILLED
        return self.outcome

    def force_kill(self) -> None:
        try:
            self.process.kill()
        except ProcessLookupError:
            return
        try:
            self.process.wait(timeout=self.kill_wait_s)
        except subprocess.TimeoutExpired:
            # Reaped later by the next poll(); kill is not ignorable.
            pass


def shutdown_process(process: ProcessLike, *, grace_s: float, kill_wait_s: float) -> ShutdownOutcome:
    """Blocking two-phase shutdown."""

    sd = TwoPhaseShutdown(process=process, grace_s=grace_s, kill_wait_s=kill_wait_s)
    out = sd.begin()
    if out is not None:
        return out
    try:
        process.wait(timeout=grace_s)
    except subprocess.TimeoutExpired:
        sd.force_kill()
        sd.outcome = ShutdownOutcome.KILLED
        return sd.outcome
    sd.outcome = ShutdownOutcome.GRACEFUL
    return sd.outcome
