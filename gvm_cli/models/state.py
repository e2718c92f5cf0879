"""
Pydantic models for the persisted install state and the install pipeline.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator

from .catalog import ArtifactDescriptor

log = logging.getLogger(__name__)

# Recorded as the current version when the runtime on PATH is not managed by gvm.
SYSTEM_VERSION = "system"


class InstallStage(Enum):
    """States of a single install run."""

    RESOLVING = "resolving"
    DOWNLOADING = "downloading"
    VERIFYING = "verifying"
    EXTRACTING = "extracting"
    VALIDATING = "validating"
    INSTALLED = "installed"
    FAILED = "failed"


class InstallationRecord(BaseModel):
    """A locally installed version."""

    version_id: str
    install_path: str
    installed_at: datetime = Field(default_factory=datetime.now)
    is_active: bool = False


class InstallState(BaseModel):
    """
    The process-wide persisted document.

    At most one record is active, and ``current_version`` is empty, the
    ``system`` sentinel, or a key of ``versions``.
    """

    current_version: str = ""
    install_dir: str
    versions: dict[str, InstallationRecord] = Field(default_factory=dict)

    @model_validator(mode="after")
    def repair_invariants(self) -> "InstallState":
        """Recomputes the active flags from ``current_version``."""
        if (
            self.current_version
            and self.current_version != SYSTEM_VERSION
            and self.current_version not in self.versions
        ):
            log.warning(
                f"[yellow]Current version '{self.current_version}' has no install "
                "record; clearing it.[/yellow]"
            )
            self.current_version = ""

        for version_id, record in self.versions.items():
            should_be_active = version_id == self.current_version
            if record.is_active != should_be_active:
                log.debug(f"Repairing active flag for {version_id}.")
                record.is_active = should_be_active
        return self

    def add_record(self, record: InstallationRecord) -> None:
        record.is_active = record.version_id == self.current_version
        self.versions[record.version_id] = record

    def remove_record(self, version_id: str) -> None:
        self.versions.pop(version_id, None)
        if self.current_version == version_id:
            self.current_version = ""

    def set_current(self, version_id: str) -> None:
        """Marks a version as the active one, clearing every other flag."""
        self.current_version = version_id
        for key, record in self.versions.items():
            record.is_active = key == version_id

    def active_record(self) -> InstallationRecord | None:
        return self.versions.get(self.current_version)


@dataclass
class InstallResult:
    """Outcome of a successful install."""

    record: InstallationRecord
    artifact: ArtifactDescriptor
    verified: bool = True
