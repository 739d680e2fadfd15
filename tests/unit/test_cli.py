from __future__ import annotations

import json
import shutil
from pathlib import Path

import pytest

from morphoscan.cli import build_parser, main


def _scaffold_repo(tmp_path: Path) -> Path:
    """Create a minimal repo root layout expected by the CLI."""

    repo_root = tmp_path
    src_root = Path(__file__).resolve().parents[2]

    (repo_root / "config").mkdir(parents=True, exist_ok=True)
    shutil.copy2(src_root / "config" / "default.yaml", repo_root / "config" / "default.yaml")
    shutil.copytree(src_root / "config" / "presets", repo_root / "config" / "presets")

    (repo_root / "params.txt").write_text("model==MorphoMaker\nEgr==0.01\nMgr==100\n", encoding="utf-8")
    (repo_root / "scan.txt").write_text("Egr==0:0.5:1\nMgr==100:100:200\n", encoding="utf-8")
    return repo_root


def test_cli_help_includes_subcommands(capsys: pytest.CaptureFixture[str]) -> None:
    rc = main([])
    assert rc == 2
    out = capsys.readouterr().out
    assert "scan" in out
    assert "plan" in out
    assert "count" in out


def test_cli_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    rc = main(["--version"])
    assert rc == 0
    assert capsys.readouterr().out.strip().startswith("morphoscan v")


def test_cli_unknown_command_errors() -> None:
    parser = build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["nope"])  # argparse rejects unknown subcommand


def test_count(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    repo = _scaffold_repo(tmp_path)
    monkeypatch.chdir(repo)

    assert main(["count", "--scan", "scan.txt"]) == 0
    assert capsys.readouterr().out.strip() == "6"
    assert main(["count", "--scan", "scan.txt", "--mode", "linear"]) == 0
    assert capsys.readouterr().out.strip() == "5"


def test_plan_writes_job_log(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    repo = _scaffold_repo(tmp_path)
    monkeypatch.chdir(repo)

    rc = main(["plan", "--param", "params.txt", "--scan", "scan.txt", "--mode", "linear", "--output-dir", "out", "--json"])
    assert rc == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["jobs"] == ["0 X", "1 X", "2 X", "X 0", "X 1"]
    log = (repo / "out" / "job_parameters.txt").read_text(encoding="utf-8")
    assert "i:4 --- X 1\npar: Mgr, val: 200.000000\n" in log


def test_config_errors_exit_2(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    repo = _scaffold_repo(tmp_path)
    monkeypatch.chdir(repo)

    assert main(["count", "--scan", "missing.txt"]) == 2
    assert "error:" in capsys.readouterr().err

    (repo / "scan.txt").write_text("Unknown==0:1:1\n", encoding="utf-8")
    assert main(["plan", "--param", "params.txt", "--scan", "scan.txt"]) == 2

    assert main(["count", "--scan", "scan.txt", "--config", "nope.yaml"]) == 2


def test_scan_with_unknown_model_exits_2(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    repo = _scaffold_repo(tmp_path)
    monkeypatch.chdir(repo)

    rc = main(["scan", "--param", "params.txt", "--scan", "scan.txt", "--model", "Nope", "--output-dir", "out"])
    assert rc == 2


def test_plan_json_reports_view_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    repo = _scaffold_repo(tmp_path)
    (repo / "scan.txt").write_text("Egr==0:0.5:1\nViewMode==Inhibitor\norientation==top,side\n", encoding="utf-8")
    monkeypatch.chdir(repo)

    assert main(["plan", "--param", "params.txt", "--scan", "scan.txt", "--output-dir", "out", "--json"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["jobs"] == ["0", "1", "2"]
    assert payload["view_mode"] == 3
    assert payload["orientations"] == ["top", "side"]
