"""morphoscan.core.types

Lightweight dataclasses shared by the planner and the supervisor.

Everything here is immutable once built. Pydantic models own the config
boundary; dataclasses keep the hot path lean.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Final

# Reserved keywords common to all models. No model parameter may use these
# names; they are stored as strings, not floats.
KEY_MODEL: Final = "model"
KEY_VIEWTHRESH: Final = "viewthresh"
KEY_VIEWMODE: Final = "viewmode"
KEY_ITER: Final = "iter"
RESERVED_KEYS: Final[tuple[str, ...]] = (KEY_MODEL, KEY_VIEWTHRESH, KEY_VIEWMODE, KEY_ITER)

# Digit value for "not varied, keep the base value" in linear sweeps.
BASE_DIGIT: Final = -1
BASE_TOKEN: Final = "X"


def is_reserved(name: str) -> bool:
    return name.strip().lower() in RESERVED_KEYS


def lround(x: float) -> int:
    """Round half away from zero (C ``lround``), unlike Python's ``round``."""

    return int(math.copysign(math.floor(abs(x) + 0.5), x))


@dataclass(frozen=True, slots=True)
class ParameterSet:
    """Model parameters (ordered, float-valued) plus the reserved string keys.

    ``job_id`` stays empty until the set is scheduled as a job.
    """

    values: Mapping[str, float] = field(default_factory=dict)
    keys: Mapping[str, str] = field(default_factory=dict)
    job_id: str = ""

    def __post_init__(self) -> None:
        values: dict[str, float] = {}
        for name, value in self.values.items():
            if is_reserved(name):
                raise ValueError(f"'{name}' is a reserved key, not a parameter name")
            values[str(name)] = float(value)

        keys: dict[str, str] = {}
        for key, value in self.keys.items():
            k = key.strip().lower()
            if k not in RESERVED_KEYS:
                raise ValueError(f"'{key}' is not a reserved key")
            keys[k] = str(value)

        object.__setattr__(self, "values", MappingProxyType(values))
        object.__setattr__(self, "keys", MappingProxyType(keys))

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self.values)

    @property
    def model_name(self) -> str:
        return self.key(KEY_MODEL)

    def __contains__(self, name: object) -> bool:
        return name in self.values

    def get(self, name: str, default: float | None = None) -> float | None:
        return self.values.get(name, default)

    def key(self, name: str) -> str:
        return self.keys.get(name.strip().lower(), "")

    def with_values(self, overrides: Mapping[str, float], *, add_missing: bool = False) -> ParameterSet:
        """Return a copy with ``overrides`` applied.

        Names the set does not already hold are ignored unless ``add_missing``;
        parameter order is part of a model's contract and only grows on request.
        """

        values = dict(self.values)
        for name, value in overrides.items():
            if name in values or add_missing:
                values[name] = float(value)
        return ParameterSet(values=values, keys=self.keys, job_id=self.job_id)

    def with_keys(self, **keys: str) -> ParameterSet:
        merged = dict(self.keys)
        merged.update({k.lower(): str(v) for k, v in keys.items()})
        return ParameterSet(values=self.values, keys=merged, job_id=self.job_id)

    def with_job_id(self, job_id: str) -> ParameterSet:
        return ParameterSet(values=self.values, keys=self.keys, job_id=job_id)


class SweepMode(StrEnum):
    LINEAR = "linear"
    COMBINATORIAL = "combinatorial"


@dataclass(frozen=True, slots=True)
class RangeSpec:
    """One scanned parameter: values in [min_value, max_value] by ``step``."""

    name: str
    min_value: float
    step: float
    max_value: float

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("range name must not be empty")
        for attr in ("min_value", "step", "max_value"):
            v = float(getattr(self, attr))
            if not math.isfinite(v):
                raise ValueError(f"{self.name}: {attr} must be finite, got {v}")
            object.__setattr__(self, attr, v)

    @property
    def effective_step(self) -> float:
        # Zero step would divide by zero; treated as a unit step.
        return self.step if self.step != 0.0 else 1.0

    @property
    def levels(self) -> int:
        n = lround((self.max_value - self.min_value) / self.effective_step + 1.0)
        return max(1, n)

    def value_at(self, level: int) -> float:
        return self.min_value + level * self.effective_step


def render_digits(digits: Iterable[int]) -> str:
    return " ".join(BASE_TOKEN if d == BASE_DIGIT else str(d) for d in digits)


def decode_job_id(job_id: str) -> tuple[int, ...]:
    """Inverse of :func:`render_digits`."""

    out: list[int] = []
    for tok in job_id.split():
        if tok == BASE_TOKEN:
            out.append(BASE_DIGIT)
            continue
        if not tok.isdigit():
            raise ValueError(f"Invalid job id token {tok!r} in {job_id!r}")
        out.append(int(tok))
    return tuple(out)


@dataclass(frozen=True, slots=True)
class Job:
    """One fully resolved parameter combination to execute."""

    index: int
    digits: tuple[int, ...]
    params: ParameterSet

    @property
    def id(self) -> str:
        return render_digits(self.digits)

    @property
    def slug(self) -> str:
        """Filesystem-friendly job ID (``0_X_2``)."""

        return self.id.replace(" ", "_") or "base"


@dataclass(frozen=True, slots=True)
class ResultStep:
    """One ingested unit of worker output. ``payload`` is opaque here."""

    index: int
    iteration: int
    path: Path
    payload: Any
    ingested_at: datetime


class RunStatus(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"
    TIMED_OUT = "timed_out"
    USER_STOPPED = "user_stopped"
