"""morphoscan.worker.supervisor

Runs one job as an external worker process and ingests its output step by
step while it runs.

Nothing here blocks for long: ``start()`` spawns and returns, ``poll()``
advances exactly one tick. The only bounded waits are the kill wait during
shutdown and output parser invocations. ``run_until_finished()`` is the
convenience loop for callers without their own event loop.

Step N is read only once step N+1 exists, since the worker may still be
writing N. After the process exits the remaining steps are drained.
"""

from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

from morphoscan.core import metrics as m
from morphoscan.core.config import ModelSpec, WorkerConfig
from morphoscan.core.exceptions import (
    ConfigError,
    IngestError,
    LaunchError,
    RuntimeCrashError,
    SetupError,
    WorkerError,
    WorkerStateError,
    WorkerTimeoutError,
)
from morphoscan.core.metrics import MetricsRegistry
from morphoscan.core.time import RunIdAllocator, utc_now
from morphoscan.core.types import Job, ResultStep, RunStatus
from morphoscan.io.parameters import write_parameter_file
from morphoscan.worker.artifacts import ArtifactLocator, ArtifactReader, OutputParserChain, OutputStyle, RawArtifactReader
from morphoscan.worker.command import build_command
from morphoscan.worker.environment import WorkEnvironment, parameter_file_name
from morphoscan.worker.results import ResultSequence
from morphoscan.worker.shutdown import ShutdownOutcome, TwoPhaseShutdown
from morphoscan.worker.state import ACTIVE_STATES, RunHandle, RunOutcome, RunState, RunStateMachine

logger = logging.getLogger(__name__)

ProcessFactory = Callable[..., Any]


class WorkerSupervisor:
    def __init__(
        self,
        config: WorkerConfig,
        model: ModelSpec,
        environment: WorkEnvironment,
        *,
        resources_dir: Path | None = None,
        reader: ArtifactReader | None = None,
        process_factory: ProcessFactory = subprocess.Popen,
        metrics: MetricsRegistry | None = None,
        run_ids: RunIdAllocator | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.model = model
        self.environment = environment
        self.resources_dir = Path(resources_dir) if resources_dir is not None else Path(model.resources_dir)
        self.reader: ArtifactReader = reader or RawArtifactReader()
        self.metrics = metrics or MetricsRegistry()
        self._process_factory = process_factory
        self._run_ids = run_ids or RunIdAllocator(monotonic=config.monotonic_run_ids)
        self._clock = clock
        self._sm = RunStateMachine()
        self._parsers = OutputParserChain(
            parsers=tuple(model.output_parsers),
            timeout_s=config.parser_timeout_ms / 1000.0,
        )

        self._state = RunState.IDLE
        self._handle: RunHandle | None = None
        self._results = ResultSequence()
        self._outcome: RunOutcome | None = None
        self._reset_run()

    def _reset_run(self) -> None:
        self._process: Any = None
        self._locator: ArtifactLocator | None = None
        self._bin_dir: Path | None = None
        self._shutdown: TwoPhaseShutdown | None = None
        self._step = 0
        self._stop_requested = False
        self._timed_out = False
        self._error: WorkerError | None = None
        self._exit_code: int | None = None
        self._started_mono: float | None = None

    # ------------------------------------------------------------------
    # Read side

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def handle(self) -> RunHandle | None:
        return self._handle

    @property
    def results(self) -> ResultSequence:
        return self._results

    def is_running(self) -> bool:
        return self._state in ACTIVE_STATES

    def outcome(self) -> RunOutcome | None:
        return self._outcome

    def progress(self) -> float:
        """Percent of iterations covered by ingested steps."""

        if self._handle is None:
            return 0.0
        if self._handle.iterations == 0:
            return 100.0
        last = self._results.last_index
        if last is None:
            return 0.0
        pct = 100.0 * last * self._handle.step_size / self._handle.iterations
        return min(100.0, max(0.0, pct))

    # ------------------------------------------------------------------
    # Lifecycle

    def _transition(self, new_state: RunState, reason: str) -> None:
        tr = self._sm.transition(state=self._state, new_state=new_state, reason=reason)
        self._state = tr.new
        if self._handle is not None:
            self._handle = replace(self._handle, state=tr.new)
        logger.debug(
            "run_transition",
            extra={"previous": str(tr.previous), "new": str(tr.new), "reason": reason},
        )

    def start(
        self,
        job: Job,
        *,
        step_size: int,
        iterations: int,
        time_limit_s: float = -1.0,
        run_dir: Path | None = None,
    ) -> RunHandle:
        """Prepare the run directory and spawn the worker.

        Raises:
            ConfigError: invalid step size or iteration count.
            WorkerStateError: a run is already active.
            SetupError: staging binaries or writing the parameter file failed.
            LaunchError: the process could not be spawned.
        """

        if step_size <= 0:
            raise ConfigError(f"step_size must be >= 1, got {step_size}")
        if iterations < 0:
            raise ConfigError(f"iterations must be >= 0, got {iterations}")
        if self.is_running():
            raise WorkerStateError(f"Run {self._handle.run_id if self._handle else '?'} is still active")

        self._reset_run()
        self._results = ResultSequence()
        self._outcome = None

        run_id = self._run_ids.next_id()
        run_dir = Path(run_dir) if run_dir is not None else self.environment.run_dir(run_id)
        self._handle = RunHandle(
            run_id=run_id,
            job_id=job.id,
            run_dir=run_dir,
            step_size=step_size,
            iterations=iterations,
            time_limit_s=time_limit_s,
            state=self._state,
            started_at=utc_now(),
        )
        self._started_mono = self._clock()
        self._transition(RunState.PREPARING, "start")

        param_file = parameter_file_name(run_id)
        try:
            self.environment.stage_resources(self.resources_dir)
            run_dir.mkdir(parents=True, exist_ok=True)
            write_parameter_file(job.params, run_dir / param_file)
        except OSError as e:
            err = SetupError(f"Cannot prepare run {run_id} in {run_dir}: {e}")
            logger.error("worker_setup_failed", extra={"run_id": run_id, "job_id": job.id, "error": str(e)})
            self._finish(RunStatus.FAILURE, error=err)
            raise err from e

        self._bin_dir = self.environment.bin_dir_from(run_dir)
        argv = build_command(
            binary=self.model.binary,
            style=self.model.input_style,
            param_file=param_file,
            run_id=run_id,
            step_size=step_size,
            iterations=iterations,
            bin_dir=self._bin_dir,
        )
        self._transition(RunState.LAUNCHED, "spawn")
        try:
            self._process = self._process_factory(argv, cwd=str(run_dir))
        except OSError as e:
            err = LaunchError(f"Cannot start {argv[0]}: {e}")
            logger.error("worker_launch_failed", extra={"run_id": run_id, "argv": argv, "error": str(e)})
            self._transition(RunState.FAILED_TO_START, "spawn failed")
            self._finish(RunStatus.FAILURE, error=err)
            raise err from e

        self._locator = ArtifactLocator(
            run_dir=run_dir,
            run_id=run_id,
            step_size=step_size,
            style=OutputStyle(self.model.output_style),
        )
        self.metrics.counter(m.RUNS_STARTED).inc()
        logger.info("worker_launched", extra={"run_id": run_id, "job_id": job.id, "argv": argv})
        self._transition(RunState.POLLING, "spawned")
        return self._handle

    def stop(self) -> None:
        """Request a stop. Idempotent; a no-op once shutdown has begun."""

        if self._state in (RunState.IDLE, RunState.FINISHED, RunState.DRAINING, RunState.TERMINATING):
            return
        if not self._stop_requested:
            self._stop_requested = True
            logger.info("worker_stop_requested", extra={"run_id": self._handle.run_id if self._handle else None})

    def poll(self) -> RunHandle:
        """Advance the run by one tick and return the current snapshot."""

        if self._handle is None:
            raise WorkerStateError("poll() before start()")

        now = self._clock()
        if self._state == RunState.POLLING:
            self._poll_running(now)
        elif self._state == RunState.TERMINATING:
            self._step_shutdown(now)
        elif self._state == RunState.DRAINING:
            self._drain_once()
        return self._handle

    def run_until_finished(self, sleep: Callable[[float], None] = time.sleep) -> RunOutcome:
        if self._handle is None:
            raise WorkerStateError("run_until_finished() before start()")

        tick_s = self.config.tick_interval_ms / 1000.0
        while self._state != RunState.FINISHED:
            self.poll()
            if self._state != RunState.FINISHED:
                sleep(tick_s)
        assert self._outcome is not None
        return self._outcome

    # ------------------------------------------------------------------
    # Tick handlers

    def _poll_running(self, now: float) -> None:
        assert self._handle is not None and self._locator is not None
        limit = self._handle.time_limit_s
        if not self._stop_requested and not self._timed_out and limit > 0 and self._started_mono is not None:
            if now - self._started_mono > limit:
                self._timed_out = True
                logger.warning("worker_time_limit", extra={"run_id": self._handle.run_id, "limit_s": limit})

        if self._stop_requested or self._timed_out:
            self._transition(RunState.TERMINATING, "user stop" if self._stop_requested else "time limit")
            self._shutdown = TwoPhaseShutdown(
                process=self._process,
                grace_s=self.config.grace_period_ms / 1000.0,
                kill_wait_s=self.config.kill_wait_ms / 1000.0,
                clock=self._clock,
            )
            out = self._shutdown.begin(now=now)
            if out is not None:
                self._after_shutdown(out)
            return

        code = self._process.poll()
        if code is not None:
            self._exit_code = code
            if code != 0:
                self._error = RuntimeCrashError(f"Worker exited with code {code}")
                logger.warning("worker_crashed", extra={"run_id": self._handle.run_id, "exit_code": code})
                self._transition(RunState.CRASHED, f"exit {code}")
            self._transition(RunState.DRAINING, "process exited")
            return

        if self._locator.exists(self._step + 1):
            self._transition(RunState.INGESTING, f"step {self._step}")
            self._ingest(self._step)
            self._step += 1
            self._transition(RunState.POLLING, "ingested")

    def _step_shutdown(self, now: float) -> None:
        assert self._shutdown is not None
        out = self._shutdown.step(now=now)
        if out is not None:
            self._after_shutdown(out)

    def _after_shutdown(self, out: ShutdownOutcome) -> None:
        if out == ShutdownOutcome.KILLED:
            self._transition(RunState.KILLED, "grace period expired")
        self._exit_code = self._process.poll()
        self._transition(RunState.DRAINING, str(out))

    def _drain_once(self) -> None:
        assert self._locator is not None
        if self._locator.exists(self._step):
            self._ingest(self._step)
        if self._locator.exists(self._step + 1):
            self._step += 1
            return

        if self._stop_requested:
            self._finish(RunStatus.USER_STOPPED)
        elif self._timed_out:
            limit = self._handle.time_limit_s if self._handle else -1.0
            self._finish(RunStatus.TIMED_OUT, error=WorkerTimeoutError(f"Time limit of {limit}s exceeded"))
        elif self._error is not None:
            self._finish(RunStatus.FAILURE, error=self._error)
        else:
            self._finish(RunStatus.SUCCESS)

    def _ingest(self, step: int) -> None:
        assert self._handle is not None and self._locator is not None
        run_id = self._handle.run_id
        try:
            path = self._locator.find(step)
            if path is None:
                raise IngestError(f"Output for step {step} disappeared")
            path = self._parsers.apply(path, run_id, bin_dir=self._bin_dir)
            payload = self.reader.read(path, step=step)
        except Exception as e:  # noqa: BLE001 - one bad step must not end the run
            self.metrics.counter(m.INGEST_ERRORS).inc()
            logger.warning("step_ingest_failed", extra={"run_id": run_id, "step": step, "error": f"{type(e).__name__}: {e}"})
            return

        self._results.append(
            ResultStep(
                index=step,
                iteration=self._locator.iteration(step),
                path=path,
                payload=payload,
                ingested_at=utc_now(),
            )
        )
        self.metrics.counter(m.STEPS_INGESTED).inc()
        logger.debug("step_ingested", extra={"run_id": run_id, "step": step})

    def _finish(self, status: RunStatus, *, error: WorkerError | None = None) -> None:
        assert self._handle is not None
        self._transition(RunState.FINISHED, str(status))
        return_code = 0 if status in (RunStatus.SUCCESS, RunStatus.USER_STOPPED) else 1
        elapsed = self._clock() - self._started_mono if self._started_mono is not None else 0.0
        self._handle = replace(self._handle, finished_at=utc_now(), status=status, return_code=return_code)
        self._outcome = RunOutcome(
            run_id=self._handle.run_id,
            job_id=self._handle.job_id,
            status=status,
            return_code=return_code,
            exit_code=self._exit_code,
            steps_ingested=len(self._results),
            elapsed_s=max(0.0, elapsed),
            error=error,
        )
        self._process = None
        if return_code != 0:
            self.metrics.counter(m.RUNS_FAILED).inc()
        logger.info(
            "worker_finished",
            extra={
                "run_id": self._handle.run_id,
                "status": str(status),
                "exit_code": self._exit_code,
                "steps": len(self._results),
            },
        )
