"""Writing notes to disk."""

from .manifest import SyncManifest
from .orchestrator import (
    ExportOrchestrator,
    ExportPhase,
    ExportState,
    default_worker_count,
)
from .progress import ExportStatistics, ProgressState

__all__ = [
    "ExportOrchestrator",
    "ExportPhase",
    "ExportState",
    "ExportStatistics",
    "ProgressState",
    "SyncManifest",
    "default_worker_count",
]
