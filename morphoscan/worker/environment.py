"""morphoscan.worker.environment

The process-wide temporary root that worker runs live under.

Layout::

    <tempdir>/morphoscan_<pid>/
        bin/            private copy of the model binaries/scripts
        <run_id>/       one directory per run (worker cwd)
            mpar_<run_id>.txt

Binaries are copied in before every run so that concurrent runs, and reruns
after the originals change, stay self-consistent.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from morphoscan import PROGRAM_NAME
from morphoscan.worker.command import BIN_DIR_NAME

logger = logging.getLogger(__name__)


def parameter_file_name(run_id: int) -> str:
    return f"mpar_{run_id}.txt"


class WorkEnvironment:
    def __init__(self, root: Path, *, preserve: bool = False) -> None:
        self.root = Path(root)
        self.preserve = preserve

    @classmethod
    def create(cls, base: Path | None = None, *, preserve: bool = False) -> WorkEnvironment:
        """Create ``<base>/<program>_<pid>``; ``base`` defaults to the system temp dir."""

        parent = Path(base) if base is not None else Path(tempfile.gettempdir())
        root = parent / f"{PROGRAM_NAME}_{os.getpid()}"
        root.mkdir(parents=True, exist_ok=True)
        logger.info("work_root_ready", extra={"root": str(root)})
        return cls(root, preserve=preserve)

    @property
    def bin_dir(self) -> Path:
        return self.root / BIN_DIR_NAME

    def run_dir(self, run_id: int) -> Path:
        return self.root / str(run_id)

    def bin_dir_from(self, run_dir: Path) -> Path:
        """``bin/`` as seen from ``run_dir``: relative when possible, else absolute."""

        try:
            return Path(os.path.relpath(self.bin_dir.resolve(), Path(run_dir).resolve()))
        except ValueError:
            # different drives on Windows
            return self.bin_dir.resolve()

    def stage_resources(self, resources_dir: Path) -> list[Path]:
        """Copy every file in ``resources_dir`` into ``bin/``, replacing old copies."""

        self.bin_dir.mkdir(parents=True, exist_ok=True)
        staged: list[Path] = []
        for src in sorted(Path(resources_dir).iterdir()):
            if not src.is_file():
                continue
            dest = self.bin_dir / src.name
            if dest.exists():
                dest.unlink()
            shutil.copy2(src, dest)
            staged.append(dest)
        logger.debug("resources_staged", extra={"count": len(staged), "src": str(resources_dir)})
        return staged

    def prepare_run_dir(self, run_id: int) -> Path:
        d = self.run_dir(run_id)
        d.mkdir(parents=True, exist_ok=True)
        return d

    def cleanup(self) -> None:
        if self.preserve:
            logger.info("work_root_preserved", extra={"root": str(self.root)})
            return
        shutil.rmtree(self.root, ignore_errors=True)
