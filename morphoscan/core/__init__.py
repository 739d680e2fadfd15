"""morphoscan.core

Core primitives.

If a module needs to exist, it should probably depend only on this package.
"""

from .config import Config, ModelSpec
from .exceptions import MorphoscanError
from .metrics import MetricsRegistry
from .time import format_elapsed, utc_now
from .types import Job, ParameterSet, RangeSpec, ResultStep, RunStatus, SweepMode

__all__ = [
    "Config",
    "Job",
    "MetricsRegistry",
    "ModelSpec",
    "MorphoscanError",
    "ParameterSet",
    "RangeSpec",
    "ResultStep",
    "RunStatus",
    "SweepMode",
    "format_elapsed",
    "utc_now",
]
