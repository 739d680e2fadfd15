"""morphoscan.scan.coordinator

Runs a whole sweep: plan, then one worker run per job, then export.

Per job:
1) start the worker backend (setup/launch/config errors skip the job)
2) run it to completion
3) copy the run directory into ``<output_dir>/data/<job slug>/``
4) run the model's result parsers in that folder

The coordinator depends on :class:`~morphoscan.worker.backend.WorkerBackend`
only; tests pass a fake.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from morphoscan.core import metrics as m
from morphoscan.core.config import Config, ModelSpec
from morphoscan.core.exceptions import ConfigError, LaunchError, SetupError
from morphoscan.core.metrics import MetricsRegistry
from morphoscan.core.time import format_elapsed
from morphoscan.core.types import Job, ParameterSet, RangeSpec, SweepMode
from morphoscan.sweep.planner import SweepPlanner
from morphoscan.worker.backend import WorkerBackend
from morphoscan.worker.command import binary_argv
from morphoscan.worker.environment import WorkEnvironment
from morphoscan.worker.state import RunOutcome

logger = logging.getLogger(__name__)

DATA_DIR_NAME = "data"

BackendFactory = Callable[[WorkEnvironment], WorkerBackend]


@dataclass(frozen=True, slots=True)
class JobReport:
    job_id: str
    slug: str
    outcome: RunOutcome | None = None
    error: Exception | None = None
    export_dir: Path | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.outcome is not None and self.outcome.ok

    def as_dict(self) -> dict[str, Any]:
        out = self.outcome
        err = self.error or (out.error if out else None)
        return {
            "job_id": self.job_id,
            "status": str(out.status) if out else "skipped",
            "return_code": out.return_code if out else 1,
            "steps": out.steps_ingested if out else 0,
            "elapsed_s": round(out.elapsed_s, 3) if out else 0.0,
            "error": str(err) if err else None,
            "export_dir": str(self.export_dir) if self.export_dir else None,
        }


@dataclass(frozen=True, slots=True)
class ScanReport:
    planned: int
    jobs: tuple[JobReport, ...] = ()
    stopped: bool = False
    job_log: Path | None = None

    @property
    def succeeded(self) -> int:
        return sum(1 for j in self.jobs if j.ok)

    @property
    def failed(self) -> int:
        return len(self.jobs) - self.succeeded

    @property
    def abandoned(self) -> int:
        return self.planned - len(self.jobs)

    @property
    def ok(self) -> bool:
        return not self.stopped and self.failed == 0 and self.abandoned == 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "planned": self.planned,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "abandoned": self.abandoned,
            "stopped": self.stopped,
            "job_log": str(self.job_log) if self.job_log else None,
            "jobs": [j.as_dict() for j in self.jobs],
        }


@dataclass
class _ScanState:
    reports: list[JobReport] = field(default_factory=list)
    stopped: bool = False


class ScanCoordinator:
    def __init__(
        self,
        config: Config,
        model: ModelSpec,
        *,
        planner: SweepPlanner | None = None,
        backend_factory: BackendFactory | None = None,
        environment: WorkEnvironment | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        self.config = config
        self.model = model
        self.planner = planner or SweepPlanner(large_sweep_warning=config.sweep.large_sweep_warning)
        self.metrics = metrics or MetricsRegistry()
        self._backend_factory = backend_factory or self._default_backend
        self._environment = environment
        self._backend: WorkerBackend | None = None
        self._state = _ScanState()

    def _default_backend(self, environment: WorkEnvironment) -> WorkerBackend:
        from morphoscan.worker.supervisor import WorkerSupervisor

        return WorkerSupervisor(
            self.config.worker,
            self.model,
            environment,
            resources_dir=self.config.resources_path(self.model),
            metrics=self.metrics,
        )

    @property
    def environment(self) -> WorkEnvironment:
        if self._environment is None:
            self._environment = WorkEnvironment.create(
                self.config.worker.work_root,
                preserve=self.config.worker.preserve_temp,
            )
        return self._environment

    @property
    def output_dir(self) -> Path:
        return Path(self.config.run.output_dir)

    def stop(self) -> None:
        """Stop the current job and abandon the rest of the queue."""

        self._state.stopped = True
        if self._backend is not None:
            self._backend.stop()
        logger.info("scan_stop_requested")

    def run(
        self,
        base: ParameterSet,
        ranges: Sequence[RangeSpec],
        mode: SweepMode,
        *,
        iterations: int | None = None,
        time_limit_s: float | None = None,
    ) -> ScanReport:
        niter = self.config.run.iterations if iterations is None else iterations
        limit = self.config.worker.time_limit_s if time_limit_s is None else time_limit_s

        self.planner.clear()
        for r in ranges:
            self.planner.add_range(r)

        self.output_dir.mkdir(parents=True, exist_ok=True)
        job_log = self.output_dir / self.config.sweep.job_log
        with job_log.open("w", encoding="utf-8") as trace:
            jobs = self.planner.plan(base, mode, trace=trace)

        self._state = _ScanState()
        env = self.environment
        self._backend = self._backend_factory(env)
        try:
            while not self._state.stopped:
                job = self.planner.next_job()
                if job is None:
                    break
                logger.info(
                    "Scanning item %d/%d (%s), %d iterations",
                    job.index + 1,
                    len(jobs),
                    job.id,
                    niter,
                )
                self._state.reports.append(self._run_job(job, niter=niter, time_limit_s=limit))
                self.metrics.gauge(m.SCAN_PROGRESS).set(100.0 * len(self._state.reports) / len(jobs))
        finally:
            self._backend = None
            env.cleanup()

        report = ScanReport(
            planned=len(jobs),
            jobs=tuple(self._state.reports),
            stopped=self._state.stopped,
            job_log=job_log,
        )
        logger.info(
            "scan_finished",
            extra={"planned": report.planned, "succeeded": report.succeeded, "failed": report.failed, "abandoned": report.abandoned},
        )
        return report

    def _run_job(self, job: Job, *, niter: int, time_limit_s: float) -> JobReport:
        assert self._backend is not None
        try:
            handle = self._backend.start(job, step_size=self.model.step_size, iterations=niter, time_limit_s=time_limit_s)
        except (SetupError, LaunchError, ConfigError) as e:
            self.metrics.counter(m.JOBS_SKIPPED).inc()
            logger.warning("job_skipped", extra={"job_id": job.id, "error": f"{type(e).__name__}: {e}"})
            return JobReport(job_id=job.id, slug=job.slug, error=e)
        # start() resets the backend, dropping a stop() that landed in between.
        if self._state.stopped:
            self._backend.stop()

        t0 = time.monotonic()
        outcome = self._backend.run_until_finished()
        logger.info("Finished after %s.", format_elapsed(time.monotonic() - t0))

        try:
            export_dir = self.export_data(handle.run_dir, job.slug)
        except OSError as e:
            logger.error("export_failed", extra={"job_id": job.id, "error": str(e)})
            return JobReport(job_id=job.id, slug=job.slug, outcome=outcome, error=e)

        self.run_result_parsers(export_dir)
        self.metrics.counter(m.JOBS_DONE).inc()
        return JobReport(job_id=job.id, slug=job.slug, outcome=outcome, export_dir=export_dir)

    def export_data(self, run_dir: Path, slug: str) -> Path:
        """Copy every file of ``run_dir`` into ``<output_dir>/data/<slug>/``."""

        dest = self.output_dir / DATA_DIR_NAME / slug
        dest.mkdir(parents=True, exist_ok=True)
        for src in sorted(Path(run_dir).iterdir()):
            if not src.is_file():
                continue
            target = dest / src.name
            if target.exists():
                target.unlink()
            shutil.copy2(src, target)
        return dest

    def run_result_parsers(self, folder: Path) -> None:
        timeout_s = self.config.worker.parser_timeout_ms / 1000.0
        for parser in self.model.result_parsers:
            argv = binary_argv(parser, bin_dir=self.environment.bin_dir)
            try:
                subprocess.run(argv, cwd=folder, timeout=timeout_s, check=False)
            except subprocess.TimeoutExpired:
                logger.warning("result_parser_timeout", extra={"parser": parser, "timeout_s": timeout_s})
                continue
            except OSError as e:
                logger.warning("result_parser_failed", extra={"parser": parser, "error": str(e)})
                continue
            logger.info("result_parser_ran", extra={"parser": parser, "folder": str(folder)})
