"""
Data Models Layer.

This package contains Pydantic models that define the core data structures
used throughout the application: the release catalog, the persisted install
state, and the manager configuration.
"""

from .catalog import ArchiveFormat, ArtifactDescriptor, ReleaseEntry
from .config import ManagerConfig
from .state import (
    InstallationRecord,
    InstallResult,
    InstallStage,
    InstallState,
)

__all__ = [
    "ArchiveFormat",
    "ArtifactDescriptor",
    "InstallationRecord",
    "InstallResult",
    "InstallStage",
    "InstallState",
    "ManagerConfig",
    "ReleaseEntry",
]
