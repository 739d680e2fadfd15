"""Drive real child processes through the supervisor and the coordinator."""

from __future__ import annotations

import sys
import time
from pathlib import Path

import pytest

from morphoscan.core.config import Config, ModelSpec, WorkerConfig
from morphoscan.core.time import RunIdAllocator
from morphoscan.core.types import Job, ParameterSet, RangeSpec, RunStatus, SweepMode
from morphoscan.scan.coordinator import ScanCoordinator
from morphoscan.worker.environment import WorkEnvironment
from morphoscan.worker.supervisor import WorkerSupervisor

WORKER = """\
import argparse, signal, sys, time

ap = argparse.ArgumentParser()
ap.add_argument("--param")
ap.add_argument("--id")
ap.add_argument("--step", type=int)
ap.add_argument("--niter", type=int)
args = ap.parse_args()

params = dict(line.strip().split("==", 1) for line in open(args.param) if "==" in line)
if params.get("ignore_term") == "1":
    signal.signal(signal.SIGTERM, signal.SIG_IGN)
delay = float(params.get("delay", "0.01"))
crash_after = int(float(params.get("crash_after", "-1")))

for n, it in enumerate(range(0, args.niter + 1, args.step)):
    if n == crash_after:
        sys.exit(3)
    with open(f"{it}_{args.id}.ply", "w") as f:
        f.write(f"ply a={params.get('a')} iter={it}\\n")
    time.sleep(delay)
"""


def _model(res: Path) -> ModelSpec:
    res.mkdir(parents=True, exist_ok=True)
    (res / "worker.py").write_text(WORKER, encoding="utf-8")
    return ModelSpec(
        name="PyWorker",
        binary="worker.py",
        resources_dir=res,
        input_style="morphomaker",
        output_style="ply",
        step_size=10,
    )


def _supervisor(tmp_path: Path, **worker_kwargs) -> WorkerSupervisor:
    return WorkerSupervisor(
        WorkerConfig(**worker_kwargs),
        _model(tmp_path / "res"),
        WorkEnvironment(tmp_path / "work"),
        run_ids=RunIdAllocator(monotonic=True),
    )


def _job(**values: float) -> Job:
    return Job(index=0, digits=(0,), params=ParameterSet(values={"a": 1.5, **values}, job_id="0"))


def _poll_until(sup: WorkerSupervisor, cond, *, timeout_s: float = 20.0) -> None:
    deadline = time.monotonic() + timeout_s
    while not cond():
        assert time.monotonic() < deadline, "worker did not make progress in time"
        sup.poll()
        time.sleep(0.01)


def test_worker_runs_to_completion(tmp_path: Path) -> None:
    sup = _supervisor(tmp_path)
    sup.start(_job(), step_size=10, iterations=50)

    out = sup.run_until_finished()

    assert out.status == RunStatus.SUCCESS
    assert out.exit_code == 0
    assert sup.results.indices() == (0, 1, 2, 3, 4, 5)
    assert sup.results.get(5).payload == b"ply a=1.5 iter=50\n"
    assert sup.progress() == 100.0


def test_worker_runs_in_run_dir_outside_work_root(tmp_path: Path) -> None:
    sup = _supervisor(tmp_path)
    run_dir = tmp_path / "elsewhere" / "run1"
    sup.start(_job(), step_size=10, iterations=30, run_dir=run_dir)

    out = sup.run_until_finished()

    assert out.status == RunStatus.SUCCESS
    assert out.steps_ingested == 4
    assert (run_dir / f"30_{sup.handle.run_id}.ply").exists()


def test_stop_mid_run_keeps_ingested_steps(tmp_path: Path) -> None:
    sup = _supervisor(tmp_path)
    sup.start(_job(delay=0.2), step_size=10, iterations=100000)
    _poll_until(sup, lambda: len(sup.results) >= 2)
    before = sup.results.snapshot()

    sup.stop()
    out = sup.run_until_finished()

    assert out.status == RunStatus.USER_STOPPED
    assert out.return_code == 0
    assert sup.results.snapshot()[: len(before)] == before


@pytest.mark.skipif(sys.platform == "win32", reason="SIGTERM cannot be ignored on Windows")
def test_stubborn_worker_is_killed(tmp_path: Path) -> None:
    sup = _supervisor(tmp_path, grace_period_ms=200, kill_wait_ms=2000)
    sup.start(_job(delay=0.05, ignore_term=1), step_size=10, iterations=100000)
    _poll_until(sup, lambda: len(sup.results) >= 1)

    sup.stop()
    t0 = time.monotonic()
    out = sup.run_until_finished()

    assert out.status == RunStatus.USER_STOPPED
    assert out.exit_code == -9
    assert time.monotonic() - t0 < 10.0


def test_crashing_worker_is_a_failure(tmp_path: Path) -> None:
    sup = _supervisor(tmp_path)
    sup.start(_job(crash_after=3), step_size=10, iterations=100)

    out = sup.run_until_finished()

    assert out.status == RunStatus.FAILURE
    assert out.exit_code == 3
    assert sup.results.indices() == (0, 1, 2)


def test_scan_end_to_end(tmp_path: Path) -> None:
    model = _model(tmp_path / "res")
    config = Config(
        config_dir=tmp_path / "config",
        run={"iterations": 20, "output_dir": tmp_path / "out"},
        worker={"work_root": tmp_path / "work", "monotonic_run_ids": True},
        models=[model],
    )
    coord = ScanCoordinator(config, model)
    base = ParameterSet(values={"a": 0.0, "b": 2.0})

    report = coord.run(base, [RangeSpec("a", 1.0, 1.0, 2.0)], SweepMode.LINEAR)

    assert report.ok
    assert [j.job_id for j in report.jobs] == ["0", "1"]
    for job, a in zip(report.jobs, (1.0, 2.0)):
        files = sorted(p.name for p in job.export_dir.iterdir())
        assert len([f for f in files if f.endswith(".ply")]) == 3
        assert any(f.startswith("mpar_") for f in files)
        assert job.outcome.steps_ingested == 3
        ply = next(p for p in job.export_dir.iterdir() if p.name.startswith("20_"))
        assert ply.read_text(encoding="utf-8") == f"ply a={a:.12g} iter=20\n"
    assert not (tmp_path / "work").exists() or not any((tmp_path / "work").iterdir())
