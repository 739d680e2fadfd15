"""morphoscan.worker.artifacts

Locating, post-processing and reading the per-step files a worker writes.

A worker writes one file per completed step into its run directory, named
``<iteration>...<run_id>...<ext>``. A file for step N is only trusted once
the file for step N+1 exists (or the process has exited); the supervisor
enforces that, this module just finds and reads files.

Format decoding (PLY/OFF/matrix) is not done here. Callers pass a reader.
"""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path, PurePath
from typing import Any, Protocol, runtime_checkable

from morphoscan.core.exceptions import IngestError
from morphoscan.worker.command import binary_argv

logger = logging.getLogger(__name__)


class OutputStyle(StrEnum):
    PLY = "ply"
    MATRIX = "matrix"
    HUMPPA = "humppa"

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]


_EXTENSIONS: dict[OutputStyle, str] = {
    OutputStyle.PLY: ".ply",
    OutputStyle.MATRIX: ".txt",
    OutputStyle.HUMPPA: ".off",
}


@dataclass(frozen=True, slots=True)
class ArtifactLocator:
    run_dir: Path
    run_id: int
    step_size: int
    style: OutputStyle = OutputStyle.PLY

    def iteration(self, step: int) -> int:
        return step * self.step_size

    def pattern(self, step: int) -> str:
        return f"{self.iteration(step)}*{self.run_id}*{OutputStyle(self.style).extension}"

    def find(self, step: int) -> Path | None:
        """Return the artifact for ``step``, or None.

        ``10*`` would also match ``100_...``; candidates must start with the
        exact iteration number followed by a non-digit.
        """

        exact = re.compile(rf"^{self.iteration(step)}(?!\d)")
        for path in sorted(self.run_dir.glob(self.pattern(step))):
            if path.is_file() and exact.match(path.name):
                return path
        return None

    def exists(self, step: int) -> bool:
        return self.find(step) is not None


@runtime_checkable
class ArtifactReader(Protocol):
    def read(self, path: Path, *, step: int) -> Any: ...


class RawArtifactReader:
    """Returns the file bytes untouched."""

    def read(self, path: Path, *, step: int) -> bytes:
        try:
            data = path.read_bytes()
        except OSError as e:
            raise IngestError(f"Cannot read step {step} output {path}: {e}") from e
        if not data:
            raise IngestError(f"Step {step} output is empty: {path}")
        return data


@dataclass(slots=True)
class OutputParserChain:
    """Per-step converters run on each artifact before it is read.

    Each parser is invoked as ``<parser> <artifact> parser_tmp_<id>.txt`` in
    the artifact's directory; if the temp file appears it replaces the
    artifact. A parser that times out or cannot be launched is skipped.
    """

    parsers: Sequence[str] = field(default_factory=tuple)
    timeout_s: float = 30.0

    def apply(self, path: Path, run_id: int, *, bin_dir: str | PurePath | None = None) -> Path:
        for parser in self.parsers:
            tmp = path.parent / f"parser_tmp_{run_id}.txt"
            argv = binary_argv(parser, bin_dir=bin_dir) + [path.name, tmp.name]
            try:
                subprocess.run(argv, cwd=path.parent, timeout=self.timeout_s, check=False)
            except subprocess.TimeoutExpired:
                logger.warning("output_parser_timeout", extra={"parser": parser, "path": str(path)})
                continue
            except OSError as e:
                logger.warning("output_parser_failed", extra={"parser": parser, "path": str(path), "error": str(e)})
                continue
            if tmp.exists():
                tmp.replace(path)
        return path
