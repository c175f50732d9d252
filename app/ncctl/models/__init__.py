"""Data models for ncctl.

This module exports the run and backup models used throughout the
application.
"""

from ncctl.models.backup import BackupArchive, BackupKind, BackupManifest
from ncctl.models.run import (
    ComponentResult,
    ComponentState,
    RunMode,
    RunReport,
    StepName,
)

__all__ = [
    "BackupArchive",
    "BackupKind",
    "BackupManifest",
    "ComponentResult",
    "ComponentState",
    "RunMode",
    "RunReport",
    "StepName",
]
