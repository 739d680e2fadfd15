"""morphoscan.core.exceptions

Errors are part of the interface.

Scheduling-level errors abort one job, never the sweep. Ingest errors never
abort anything.
"""

from __future__ import annotations


class MorphoscanError(Exception):
    """Base exception for morphoscan."""


class ConfigError(MorphoscanError):
    """Configuration is missing, invalid, or inconsistent."""


class ScanFileError(ConfigError):
    """Scan range file could not be read or contains a malformed range."""


class ParameterFileError(ConfigError):
    """Parameter file could not be read or contains a malformed value."""


class WorkerError(MorphoscanError):
    """Worker lifecycle failures."""


class SetupError(WorkerError):
    """Run directory or parameter file could not be prepared."""


class LaunchError(WorkerError):
    """Worker process failed to start. Not retried."""


class RuntimeCrashError(WorkerError):
    """Worker exited non-zero or by signal without being asked to."""


class IngestError(WorkerError):
    """One step's output was malformed or partial. The step is skipped."""


class WorkerTimeoutError(WorkerError):
    """Wall-clock limit exceeded."""


class WorkerStateError(WorkerError):
    """Operation not allowed in the current run state."""
