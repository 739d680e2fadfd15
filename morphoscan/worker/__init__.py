"""External worker process supervision."""

from morphoscan.worker.artifacts import ArtifactLocator, OutputStyle, RawArtifactReader
from morphoscan.worker.backend import WorkerBackend
from morphoscan.worker.environment import WorkEnvironment
from morphoscan.worker.results import ResultSequence
from morphoscan.worker.state import RunHandle, RunOutcome, RunState
from morphoscan.worker.supervisor import WorkerSupervisor

__all__ = [
    "ArtifactLocator",
    "OutputStyle",
    "RawArtifactReader",
    "ResultSequence",
    "RunHandle",
    "RunOutcome",
    "RunState",
    "WorkEnvironment",
    "WorkerBackend",
    "WorkerSupervisor",
]
