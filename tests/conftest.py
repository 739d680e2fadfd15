from __future__ import annotations

import shutil
import sys
from pathlib import Path

import pytest

# pytest may run without installing the project; ensure repo root is importable.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from morphoscan.core.config import Config  # noqa: E402
from morphoscan.core.types import ParameterSet  # noqa: E402


@pytest.fixture()
def temp_dir(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture()
def test_config(temp_dir: Path) -> Config:
    """Repo default config with output and work dirs pointed into a temp directory."""

    cfg_dst_dir = temp_dir / "config"
    cfg_dst_dir.mkdir(parents=True, exist_ok=True)

    # copy default + presets
    shutil.copy2(REPO_ROOT / "config" / "default.yaml", cfg_dst_dir / "default.yaml")
    shutil.copytree(REPO_ROOT / "config" / "presets", cfg_dst_dir / "presets")

    c = Config.from_yaml(cfg_dst_dir / "default.yaml")
    return c.model_copy(
        update={
            "config_dir": cfg_dst_dir,
            "run": c.run.model_copy(update={"output_dir": temp_dir / "out"}),
            "worker": c.worker.model_copy(update={"work_root": temp_dir / "work"}),
        }
    )


@pytest.fixture()
def base_params() -> ParameterSet:
    return ParameterSet(values={"Egr": 0.01, "Mgr": 100.0, "Rad": 2.0}, keys={"model": "MorphoMaker"})
