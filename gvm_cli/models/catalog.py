"""
Pydantic models for the remote release catalog.

Field aliases follow the catalog's JSON wire format, e.g.::

    {"version": "go1.21.5", "stable": true,
     "files": [{"filename": "go1.21.5.linux-amd64.tar.gz", "os": "linux",
                "arch": "amd64", "sha256": "...", "size": 66618750,
                "kind": "archive"}]}
"""

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from gvm_cli.exceptions import ArchiveFormatError

_VERSION_RE = re.compile(
    r"(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:(alpha|beta|rc)(\d+))?", re.IGNORECASE
)
_PRERELEASE_RANK = {"alpha": 0, "beta": 1, "rc": 2}


class ArchiveFormat(Enum):
    """Container formats the extractor understands."""

    TAR_GZ = "tar.gz"
    ZIP = "zip"

    @classmethod
    def from_filename(cls, filename: str) -> "ArchiveFormat":
        """Picks the format from the artifact's file extension."""
        lowered = filename.lower()
        if lowered.endswith((".tar.gz", ".tgz")):
            return cls.TAR_GZ
        if lowered.endswith(".zip"):
            return cls.ZIP
        raise ArchiveFormatError(f"Unsupported package format: {filename}")


class ArtifactDescriptor(BaseModel):
    """One downloadable file of a release, for a single OS/architecture pair."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    filename: str = Field(..., min_length=1)
    os: str = ""
    arch: str = ""
    digest: str = Field("", alias="sha256")
    size_bytes: int = Field(0, alias="size", ge=0)
    kind: str = ""

    @property
    def archive_format(self) -> ArchiveFormat:
        return ArchiveFormat.from_filename(self.filename)


class ReleaseEntry(BaseModel):
    """A published release and its per-platform artifacts."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version_id: str = Field(..., alias="version", min_length=1)
    is_stable: bool = Field(False, alias="stable")
    artifacts: list[ArtifactDescriptor] = Field(default_factory=list, alias="files")


def version_sort_key(version_id: str) -> tuple:
    """
    Natural ordering key for version ids such as 'go1.21.5', 'go1.22rc1' or
    'v2.1.0'. Pre-releases sort below the final release of the same number.
    """
    match = _VERSION_RE.search(version_id)
    if not match:
        return (0, 0, 0, 0, 0, version_id)
    major, minor, patch, pre_tag, pre_num = match.groups()
    pre_rank = _PRERELEASE_RANK.get((pre_tag or "").lower(), 3)
    return (
        int(major),
        int(minor or 0),
        int(patch or 0),
        pre_rank,
        int(pre_num or 0),
        version_id,
    )


def is_prerelease(version_id: str) -> bool:
    """True for alpha, beta and release-candidate version ids."""
    return version_sort_key(version_id)[3] < 3
