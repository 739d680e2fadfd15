from __future__ import annotations

import os
from pathlib import Path

from morphoscan.worker.environment import WorkEnvironment, parameter_file_name


def test_create_uses_program_and_pid(tmp_path: Path) -> None:
    env = WorkEnvironment.create(tmp_path)
    assert env.root == tmp_path / f"morphoscan_{os.getpid()}"
    assert env.root.is_dir()
    assert env.bin_dir == env.root / "bin"
    assert parameter_file_name(123) == "mpar_123.txt"


def test_stage_resources_overwrites_previous_copies(tmp_path: Path) -> None:
    res = tmp_path / "res"
    res.mkdir()
    (res / "model.py").write_text("v1", encoding="utf-8")
    (res / "subdir").mkdir()

    env = WorkEnvironment(tmp_path / "work")
    assert env.stage_resources(res) == [env.bin_dir / "model.py"]

    (res / "model.py").write_text("v2", encoding="utf-8")
    env.stage_resources(res)
    assert (env.bin_dir / "model.py").read_text(encoding="utf-8") == "v2"


def test_prepare_and_cleanup(tmp_path: Path) -> None:
    env = WorkEnvironment(tmp_path / "work")
    run_dir = env.prepare_run_dir(99)
    assert run_dir == env.root / "99"
    assert run_dir.is_dir()

    env.cleanup()
    assert not env.root.exists()


def test_preserved_root_survives_cleanup(tmp_path: Path) -> None:
    env = WorkEnvironment(tmp_path / "work", preserve=True)
    env.prepare_run_dir(1)
    env.cleanup()
    assert (env.root / "1").is_dir()


def test_bin_dir_from_run_dirs(tmp_path: Path) -> None:
    env = WorkEnvironment(tmp_path / "work")
    assert env.bin_dir_from(env.run_dir(5)) == Path("..", "bin")

    other = tmp_path / "elsewhere" / "run1"
    rel = env.bin_dir_from(other)
    assert (other / rel).resolve() == env.bin_dir.resolve()
