"""morphoscan.cli

Command line interface entry point for morphoscan.

Design constraints:
- argparse-based.
- Lazy imports: do not import the worker stack at parse time.

Exit codes: 0 ok, 1 run failure, 2 usage or configuration error.
"""

from __future__ import annotations

import argparse
import json
import signal
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from morphoscan.core.config import Config, ModelSpec
    from morphoscan.core.types import ParameterSet, SweepMode
    from morphoscan.io.scanfile import ScanList


@dataclass(frozen=True)
class CliContext:
    repo_root: Path


def _repo_root_from_cwd() -> Path:
    return Path.cwd()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="morphoscan",
        description="Run a simulation model over a sweep of its parameters.",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit.",
    )

    sub = parser.add_subparsers(dest="command")

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--scan", required=True, type=Path, help="Scan range file (name==min:step:max).")
        p.add_argument("--mode", choices=["linear", "combinatorial"], default=None)
        p.add_argument("--config", type=Path, default=None, help="Config YAML (default: config/default.yaml).")

    p_scan = sub.add_parser("scan", help="Run the sweep")
    p_scan.add_argument("--param", required=True, type=Path, help="Base parameter file (name==value).")
    add_common(p_scan)
    p_scan.add_argument("--model", default=None, help="Model name (default: from the parameter file).")
    p_scan.add_argument("--niter", type=int, default=None, help="Iterations per run.")
    p_scan.add_argument("--time-limit", type=float, default=None, help="Per-run wall-clock limit in seconds.")
    p_scan.add_argument("--output-dir", type=Path, default=None)
    p_scan.add_argument("--json", action="store_true", help="Print the scan report as JSON.")

    p_plan = sub.add_parser("plan", help="List the jobs a scan would run and write the job log")
    p_plan.add_argument("--param", required=True, type=Path)
    add_common(p_plan)
    p_plan.add_argument("--output-dir", type=Path, default=None)
    p_plan.add_argument("--json", action="store_true")

    p_count = sub.add_parser("count", help="Print the number of jobs in a scan")
    add_common(p_count)

    return parser


def _print_version() -> None:
    from morphoscan import __version__

    print(f"morphoscan v{__version__}")


def _load_config(ctx: CliContext, args: argparse.Namespace) -> Config:
    from morphoscan.core.config import Config

    if args.config is not None:
        config = Config.from_yaml(args.config)
    else:
        cfg_path = ctx.repo_root / "config" / "default.yaml"
        config = Config.from_yaml(cfg_path) if cfg_path.exists() else Config()

    output_dir = getattr(args, "output_dir", None)
    if output_dir is not None:
        config.run = config.run.model_copy(update={"output_dir": output_dir})
    return config


def _mode(config: Config, args: argparse.Namespace) -> SweepMode:
    from morphoscan.core.types import SweepMode

    return SweepMode(args.mode or config.sweep.mode)


def _load_inputs(args: argparse.Namespace) -> tuple[ParameterSet, ScanList]:
    from morphoscan.io.parameters import read_parameter_file
    from morphoscan.io.scanfile import read_scan_file

    return read_parameter_file(args.param), read_scan_file(args.scan)


def _select_model(config: Config, args: argparse.Namespace, base: ParameterSet, scan: ScanList) -> ModelSpec:
    from morphoscan.core.exceptions import ConfigError

    name = args.model or scan.options.get("model") or base.model_name
    if not name:
        raise ConfigError("No model selected: pass --model or set model== in the parameter file")
    return config.model(name)


def _cmd_scan(ctx: CliContext, args: argparse.Namespace) -> int:
    from morphoscan.core.logging_config import setup_logging
    from morphoscan.scan.coordinator import ScanCoordinator

    config = _load_config(ctx, args)
    setup_logging(config.logging)
    base, scan = _load_inputs(args)
    model = _select_model(config, args, base, scan)

    coordinator = ScanCoordinator(config, model)
    previous = signal.signal(signal.SIGINT, lambda signum, frame: coordinator.stop())
    try:
        report = coordinator.run(
            base,
            scan.ranges,
            _mode(config, args),
            iterations=args.niter,
            time_limit_s=args.time_limit,
        )
    finally:
        signal.signal(signal.SIGINT, previous)

    if args.json:
        print(json.dumps(report.as_dict(), indent=2, sort_keys=True))
    else:
        print("morphoscan scan")
        print(f"- jobs planned: {report.planned}")
        print(f"- succeeded: {report.succeeded}")
        print(f"- failed: {report.failed}")
        if report.abandoned:
            print(f"- abandoned: {report.abandoned}")
        print(f"- job log: {report.job_log}")
    return 0 if report.failed == 0 else 1


def _cmd_plan(ctx: CliContext, args: argparse.Namespace) -> int:
    from morphoscan.sweep.planner import SweepPlanner

    config = _load_config(ctx, args)
    base, scan = _load_inputs(args)

    planner = SweepPlanner(scan.ranges, large_sweep_warning=config.sweep.large_sweep_warning)
    out_dir = Path(config.run.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    job_log = out_dir / config.sweep.job_log
    with job_log.open("w", encoding="utf-8") as trace:
        jobs = planner.plan(base, _mode(config, args), trace=trace)

    if args.json:
        payload = {
            "jobs": [j.id for j in jobs],
            "job_log": str(job_log),
            "view_mode": scan.view_mode,
            "orientations": list(scan.orientations),
        }
        print(json.dumps(payload, indent=2))
    else:
        for job in jobs:
            print(f"{job.index}: {job.id}")
        print(f"Number of jobs generated: {len(jobs)}")
    return 0


def _cmd_count(ctx: CliContext, args: argparse.Namespace) -> int:
    from morphoscan.io.scanfile import read_scan_file
    from morphoscan.sweep.planner import job_count

    config = _load_config(ctx, args)
    scan = read_scan_file(args.scan)
    print(job_count(scan.ranges, _mode(config, args)))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        _print_version()
        return 0

    if not args.command:
        parser.print_help()
        return 2

    ctx = CliContext(repo_root=_repo_root_from_cwd())

    dispatch: dict[str, Callable[[CliContext, argparse.Namespace], int]] = {
        "scan": _cmd_scan,
        "plan": _cmd_plan,
        "count": _cmd_count,
    }

    fn = dispatch.get(str(args.command))
    if fn is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 2

    from morphoscan.core.exceptions import ConfigError, MorphoscanError

    try:
        return int(fn(ctx, args))
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except MorphoscanError as e:
        print(f"{args.command} failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
