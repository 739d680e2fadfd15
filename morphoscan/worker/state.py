"""morphoscan.worker.state

Run lifecycle state machine.

IDLE → PREPARING → LAUNCHED → POLLING ⇄ INGESTING → DRAINING → FINISHED

Side exits: FAILED_TO_START and CRASHED, and the stop path
POLLING → TERMINATING → (KILLED) → DRAINING.

This is a deterministic lifecycle model. It does *not* touch processes; it
restricts which transitions the supervisor may make.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Final

from morphoscan.core.exceptions import WorkerError, WorkerStateError
from morphoscan.core.types import RunStatus


class RunState(StrEnum):
    IDLE = "idle"
    PREPARING = "preparing"
    LAUNCHED = "launched"
    POLLING = "polling"
    INGESTING = "ingesting"
    DRAINING = "draining"
    TERMINATING = "terminating"
    KILLED = "killed"
    CRASHED = "crashed"
    FAILED_TO_START = "failed_to_start"
    FINISHED = "finished"


ALLOWED_TRANSITIONS: Final[dict[RunState, set[RunState]]] = {
    RunState.IDLE: {RunState.PREPARING},
    RunState.PREPARING: {RunState.LAUNCHED, RunState.FINISHED},
    RunState.LAUNCHED: {RunState.POLLING, RunState.FAILED_TO_START},
    RunState.POLLING: {RunState.INGESTING, RunState.DRAINING, RunState.CRASHED, RunState.TERMINATING},
    RunState.INGESTING: {RunState.POLLING},
    RunState.CRASHED: {RunState.DRAINING},
    RunState.TERMINATING: {RunState.DRAINING, RunState.KILLED},
    RunState.KILLED: {RunState.DRAINING, RunState.FINISHED},
    RunState.FAILED_TO_START: {RunState.FINISHED},
    RunState.DRAINING: {RunState.FINISHED},
    # A finished supervisor may be reused for the next job.
    RunState.FINISHED: {RunState.PREPARING},
}

# States in which a worker process may still be alive.
ACTIVE_STATES: Final[frozenset[RunState]] = frozenset(
    {
        RunState.PREPARING,
        RunState.LAUNCHED,
        RunState.POLLING,
        RunState.INGESTING,
        RunState.TERMINATING,
        RunState.KILLED,
        RunState.CRASHED,
        RunState.DRAINING,
    }
)


@dataclass(frozen=True, slots=True)
class RunTransition:
    previous: RunState
    new: RunState
    reason: str


class RunStateMachine:
    def transition(self, *, state: RunState, new_state: RunState, reason: str) -> RunTransition:
        allowed = ALLOWED_TRANSITIONS.get(state, set())
        if new_state not in allowed:
            raise WorkerStateError(f"Invalid transition {state} -> {new_state} ({reason})")
        return RunTransition(previous=state, new=new_state, reason=reason)


@dataclass(frozen=True, slots=True)
class RunHandle:
    """Read-only snapshot of one worker invocation.

    The supervisor replaces its handle on every transition; callers holding an
    older snapshot keep seeing the state they were given.
    """

    run_id: int
    job_id: str
    run_dir: Path
    step_size: int
    iterations: int
    time_limit_s: float = -1.0
    state: RunState = RunState.IDLE
    started_at: datetime | None = None
    finished_at: datetime | None = None
    status: RunStatus | None = None
    return_code: int | None = None


@dataclass(frozen=True, slots=True)
class RunOutcome:
    run_id: int
    job_id: str
    status: RunStatus
    return_code: int  # 0 success (or user stop), 1 failure
    exit_code: int | None  # raw process exit code, None if never started
    steps_ingested: int
    elapsed_s: float
    error: WorkerError | None = None

    @property
    def ok(self) -> bool:
        return self.status in (RunStatus.SUCCESS, RunStatus.USER_STOPPED)
