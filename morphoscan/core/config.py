"""morphoscan.core.config

Three config surfaces only:
1) `config/default.yaml` + `config/presets/*.yaml`
2) Environment variables (`MORPHOSCAN_*`, nested with `__`)
3) CLI flags, applied by the caller on top of the loaded config

Everything else is derived.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from morphoscan.core.exceptions import ConfigError


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = dict(base)
    for k, v in overlay.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


class WorkerConfig(BaseModel):
    """Worker supervision timings. All intervals in milliseconds."""

    tick_interval_ms: int = 20
    grace_period_ms: int = 100
    kill_wait_ms: int = 100
    parser_timeout_ms: int = 30000
    time_limit_s: float = -1.0  # -1 means unlimited
    monotonic_run_ids: bool = False
    preserve_temp: bool = False
    work_root: Path | None = None

    @field_validator("tick_interval_ms", "grace_period_ms", "kill_wait_ms", "parser_timeout_ms")
    @classmethod
    def intervals_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("worker intervals must be > 0 ms")
        return v

    @field_validator("time_limit_s")
    @classmethod
    def time_limit_unlimited_or_positive(cls, v: float) -> float:
        if v != -1 and v <= 0:
            raise ValueError("time_limit_s must be > 0, or -1 for unlimited")
        return v


class SweepConfig(BaseModel):
    mode: Literal["linear", "combinatorial"] = "combinatorial"
    job_log: str = "job_parameters.txt"
    large_sweep_warning: int = 100000


class RunConfig(BaseModel):
    iterations: int = 10000
    output_dir: Path = Path(".")

    @field_validator("iterations")
    @classmethod
    def iterations_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("iterations must be >= 0")
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    json_output: bool = False
    log_file: Path | None = None


class ModelSpec(BaseModel):
    """How to invoke one external model and where its output lands."""

    name: str
    binary: str
    resources_dir: Path = Path("resources/bin")
    input_style: Literal["morphomaker", "humppa"] = "morphomaker"
    output_style: Literal["ply", "matrix", "humppa"] = "ply"
    step_size: int = 100
    output_parsers: list[str] = Field(default_factory=list)
    result_parsers: list[str] = Field(default_factory=list)

    @field_validator("step_size")
    @classmethod
    def step_size_must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("step_size must be >= 1")
        return v


class Config(BaseSettings):
    """Root configuration. Single source of truth."""

    config_dir: Path = Path("config")

    preset: Literal["standard", "patient", "debug", "custom"] = "standard"

    worker: WorkerConfig = Field(default_factory=WorkerConfig)
    sweep: SweepConfig = Field(default_factory=SweepConfig)
    run: RunConfig = Field(default_factory=RunConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    models: list[ModelSpec] = Field(default_factory=list)

    model_config = {"env_prefix": "MORPHOSCAN_", "env_nested_delimiter": "__"}

    def model(self, name: str) -> ModelSpec:
        for spec in self.models:
            if spec.name == name:
                return spec
        known = ", ".join(m.name for m in self.models) or "none"
        raise ConfigError(f"Unknown model '{name}' (known: {known})")

    def resources_path(self, spec: ModelSpec) -> Path:
        """Model resources dir; relative paths resolve against the repo root."""

        if spec.resources_dir.is_absolute():
            return spec.resources_dir
        return self.config_dir.parent / spec.resources_dir

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        raw = yaml.safe_load(path.read_text()) or {}
        if not isinstance(raw, dict):
            raise ConfigError(f"Top-level YAML must be a mapping: {path}")

        preset_name = raw.get("preset", "standard")
        preset_path = path.parent / "presets" / f"{preset_name}.yaml"
        if preset_path.exists():
            preset_data = yaml.safe_load(preset_path.read_text()) or {}
            raw = _deep_merge(preset_data, raw)

        raw.setdefault("config_dir", path.parent)
        try:
            return cls(**raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid config {path}: {e}") from e

    @classmethod
    def from_repo_defaults(cls, repo_root: Path | None = None) -> Config:
        root = repo_root or Path.cwd()
        return cls.from_yaml(root / "config" / "default.yaml")
