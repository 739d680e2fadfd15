"""morphoscan.io.scanfile

Scan range files.

Format:
- ``name==min:step:max`` declares a scanned parameter
- ``viewmode==...`` and ``orientation==a, b`` select sweep-wide export options
- ``model==...`` is passed through untouched
- ``#`` comments and blank lines are ignored

The planner never sees this file; it only gets the parsed ranges.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from morphoscan.core.exceptions import ScanFileError
from morphoscan.core.types import RangeSpec
from morphoscan.io.parameters import iter_assignments

_VIEW_MODES: dict[str, int] = {
    "bw": 1,
    "1": 1,
    "differentiation": 1,
    "2": 2,
    "activator": 2,
    "3": 3,
    "inhibitor": 3,
    "4": 4,
    "fgf": 4,
}


@dataclass(frozen=True, slots=True)
class ScanList:
    ranges: tuple[RangeSpec, ...]
    view_mode: int = 0
    orientations: tuple[str, ...] = ()
    options: dict[str, str] = field(default_factory=dict)


def parse_view_mode(value: str) -> int:
    return _VIEW_MODES.get(value.strip().lower(), 0)


def parse_range(name: str, spec: str, *, where: str = "") -> RangeSpec:
    parts = spec.split(":")
    if len(parts) < 3:
        raise ScanFileError(f"{where}range for '{name}' must be min:step:max, got {spec!r}")
    try:
        lo, step, hi = (float(p) for p in parts[:3])
    except ValueError as e:
        raise ScanFileError(f"{where}range for '{name}' is not numeric: {spec!r}") from e
    try:
        return RangeSpec(name=name, min_value=lo, step=step, max_value=hi)
    except ValueError as e:
        raise ScanFileError(f"{where}{e}") from e


def parse_scan_list(text: str, *, source: str = "<string>") -> ScanList:
    ranges: dict[str, RangeSpec] = {}
    view_mode = 0
    orientations: list[str] = []
    options: dict[str, str] = {}

    for line_no, name, value in iter_assignments(text):
        key = name.lower()
        if key == "model":
            options["model"] = value
        elif key == "viewmode":
            view_mode = parse_view_mode(value)
        elif key == "orientation":
            for orient in value.split(","):
                o = orient.strip()
                if o and o not in orientations:
                    orientations.append(o)
        else:
            item = parse_range(name, value, where=f"{source}:{line_no}: ")
            # A repeated parameter replaces the earlier range and moves to the end.
            ranges.pop(name, None)
            ranges[name] = item

    return ScanList(
        ranges=tuple(ranges.values()),
        view_mode=view_mode,
        orientations=tuple(orientations),
        options=options,
    )


def read_scan_file(path: str | Path) -> ScanList:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ScanFileError(f"Can't open scan file '{p}': {e}") from e
    return parse_scan_list(text, source=str(p))
