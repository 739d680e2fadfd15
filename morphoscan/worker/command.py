"""morphoscan.worker.command

Worker command lines.

Two argument conventions exist in the wild:

- ``morphomaker``: ``--param <file> --id <id> --step <n> --niter <n>``
- ``humppa``: ``<file> <id> <step> <niter // step>`` (positional)

The binary is addressed relative to the run directory (``../bin/<binary>``)
and the parameter file by bare name; some models choke on long arguments.
"""

from __future__ import annotations

import sys
from enum import StrEnum
from pathlib import PurePath

from morphoscan.core.exceptions import ConfigError

BIN_DIR_NAME = "bin"


class InputStyle(StrEnum):
    MORPHOMAKER = "morphomaker"
    HUMPPA = "humppa"


def binary_argv(binary: str, *, bin_dir: str | PurePath | None = None, python: str | None = None) -> list[str]:
    """argv prefix for a staged binary. Python scripts get an interpreter.

    ``bin_dir`` defaults to the run-dir-relative ``../bin``.
    """

    base = PurePath(bin_dir) if bin_dir is not None else PurePath("..", BIN_DIR_NAME)
    path = str(base / binary)
    if PurePath(binary).suffix == ".py":
        return [python or sys.executable, path]
    return [path]


def build_command(
    *,
    binary: str,
    style: InputStyle | str,
    param_file: str,
    run_id: int,
    step_size: int,
    iterations: int,
    bin_dir: str | PurePath | None = None,
    python: str | None = None,
) -> list[str]:
    try:
        style = InputStyle(str(style).lower())
    except ValueError as e:
        raise ConfigError(f"Invalid input style: {style!r}") from e
    if step_size <= 0:
        raise ConfigError(f"step_size must be >= 1, got {step_size}")

    argv = binary_argv(binary, bin_dir=bin_dir, python=python)
    if style == InputStyle.MORPHOMAKER:
        argv += ["--param", param_file, "--id", str(run_id), "--step", str(step_size), "--niter", str(iterations)]
    else:
        argv += [param_file, str(run_id), str(step_size), str(iterations // step_size)]
    return argv
