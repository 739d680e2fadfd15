from __future__ import annotations

from pathlib import Path

import pytest

from morphoscan.core.exceptions import ConfigError, ScanFileError
from morphoscan.io.scanfile import parse_scan_list, parse_view_mode, read_scan_file


def test_parse_ranges_and_options() -> None:
    scan = parse_scan_list(
        "# sweep\n"
        "Egr==0.01:0.01:0.05\n"
        "Model==ToothMaker\n"
        "ViewMode==Activator\n"
        "orientation==Top, side ,top,Top\n"
        "Mgr==100:50:200\n"
    )
    assert [r.name for r in scan.ranges] == ["Egr", "Mgr"]
    assert scan.ranges[1].levels == 3
    assert scan.options == {"model": "ToothMaker"}
    assert scan.view_mode == 2
    assert scan.orientations == ("Top", "side", "top")


@pytest.mark.parametrize(
    ("value", "mode"),
    [("BW", 1), ("1", 1), ("Differentiation", 1), ("inhibitor", 3), ("4", 4), ("fgf", 4), ("colour", 0)],
)
def test_view_mode_names(value: str, mode: int) -> None:
    assert parse_view_mode(value) == mode


def test_repeated_parameter_replaces_earlier_range() -> None:
    scan = parse_scan_list("a==0:1:1\nb==0:1:1\na==0:1:4\n")
    assert [r.name for r in scan.ranges] == ["b", "a"]
    assert scan.ranges[1].levels == 5


@pytest.mark.parametrize("line", ["a==0:1", "a==x:1:2", "a==0:1:inf"])
def test_malformed_range_reports_line(line: str) -> None:
    with pytest.raises(ScanFileError, match=r"scan.txt:2"):
        parse_scan_list(f"b==0:1:1\n{line}\n", source="scan.txt")


def test_read_scan_file(tmp_path: Path) -> None:
    path = tmp_path / "scan.txt"
    path.write_text("Egr==0:1:2\n", encoding="utf-8")
    assert read_scan_file(path).ranges[0].name == "Egr"

    with pytest.raises(ConfigError):
        read_scan_file(tmp_path / "missing.txt")
