from __future__ import annotations

import sys

import pytest

from morphoscan.core.exceptions import ConfigError
from morphoscan.worker.command import binary_argv, build_command


def test_morphomaker_style_uses_named_flags() -> None:
    argv = build_command(
        binary="morpho",
        style="morphomaker",
        param_file="mpar_42.txt",
        run_id=42,
        step_size=100,
        iterations=10000,
    )
    assert argv == ["../bin/morpho", "--param", "mpar_42.txt", "--id", "42", "--step", "100", "--niter", "10000"]


def test_humppa_style_passes_step_count() -> None:
    argv = build_command(
        binary="humppa_translate",
        style="HUMPPA",
        param_file="mpar_7.txt",
        run_id=7,
        step_size=1000,
        iterations=10000,
    )
    assert argv == ["../bin/humppa_translate", "mpar_7.txt", "7", "1000", "10"]


def test_python_scripts_get_an_interpreter() -> None:
    assert binary_argv("model.py") == [sys.executable, "../bin/model.py"]
    assert binary_argv("model.py", python="python3") == ["python3", "../bin/model.py"]
    assert binary_argv("parse", bin_dir="/opt/bin") == ["/opt/bin/parse"]


def test_invalid_arguments() -> None:
    with pytest.raises(ConfigError):
        build_command(binary="m", style="fortran", param_file="p", run_id=1, step_size=1, iterations=1)
    with pytest.raises(ConfigError):
        build_command(binary="m", style="humppa", param_file="p", run_id=1, step_size=0, iterations=1)
