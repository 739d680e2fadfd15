"""morphoscan.io.parameters

Parameter files.

Format:
- one ``name==value`` per line
- lines starting with ``#`` and blank lines are ignored
- reserved keys (model, viewthresh, viewmode, iter) are matched
  case-insensitively and kept as strings
- everything else is a floating point model parameter
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

from morphoscan.core.exceptions import ParameterFileError
from morphoscan.core.types import RESERVED_KEYS, ParameterSet, is_reserved

# Decimal precision for written values.
PARAM_PREC = 12
SEPARATOR = "=="


def iter_assignments(text: str) -> Iterator[tuple[int, str, str]]:
    """Yield ``(line_no, name, value)`` for every meaningful line."""

    for line_no, raw in enumerate(text.splitlines(), start=1):
        line = raw.rstrip("\r\n")
        if not line.strip() or line.startswith("#"):
            continue
        parts = [p.strip() for p in line.split(SEPARATOR)]
        if len(parts) < 2 or not parts[0] or not parts[1]:
            continue
        yield line_no, parts[0], parts[1]


def parse_parameters(text: str, *, base: ParameterSet | None = None, source: str = "<string>") -> ParameterSet:
    """Parse parameter file content.

    With ``base`` given only the parameters it already holds are updated;
    unknown names are dropped. Without ``base`` every name is kept, in file order.
    """

    values: dict[str, float] = {}
    keys: dict[str, str] = {}
    for line_no, name, value in iter_assignments(text):
        if is_reserved(name):
            keys[name.strip().lower()] = value.strip()
            continue
        try:
            values[name] = float(value)
        except ValueError as e:
            raise ParameterFileError(f"{source}:{line_no}: value for '{name}' is not a number: {value!r}") from e

    if base is None:
        return ParameterSet(values=values, keys=keys)
    return base.with_values(values).with_keys(**keys)


def read_parameter_file(path: str | Path, *, base: ParameterSet | None = None) -> ParameterSet:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ParameterFileError(f"Can't open parameter file '{p}': {e}") from e
    return parse_parameters(text, base=base, source=str(p))


def format_parameters(params: ParameterSet) -> str:
    lines = [f"# Parameters{f' for job {params.job_id}' if params.job_id else ''}"]
    for key in RESERVED_KEYS:
        value = params.key(key)
        if value:
            lines.append(f"{key}{SEPARATOR}{value}")
    for name, value in params.values.items():
        lines.append(f"{name}{SEPARATOR}{value:.{PARAM_PREC}g}")
    return "\n".join(lines) + "\n"


def write_parameter_file(params: ParameterSet, path: str | Path) -> Path:
    """Write ``params`` to ``path``. OSError propagates to the caller."""

    p = Path(path)
    p.write_text(format_parameters(params), encoding="utf-8")
    return p
