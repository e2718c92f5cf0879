"""
Archive extraction for downloaded distributions.

Supports gzip-compressed tarballs and zip archives. Every entry is expected to
live under a single top-level directory (``go/`` for the Go toolchain); that
prefix is stripped so the distribution lands directly in the destination.
Extraction is not atomic: on failure the caller removes the destination.
"""

import gzip
import logging
import os
import shutil
import stat
import tarfile
import zipfile
import zlib
from pathlib import Path, PurePosixPath

from gvm_cli.exceptions import ArchiveFormatError, FileSystemError
from gvm_cli.models.catalog import ArchiveFormat

log = logging.getLogger(__name__)

DEFAULT_FILE_MODE = 0o644
DEFAULT_DIR_MODE = 0o755

_CORRUPT_ARCHIVE_ERRORS = (
    tarfile.TarError,
    zipfile.BadZipFile,
    gzip.BadGzipFile,
    zlib.error,
    EOFError,
)


class BaseExtractor:
    """
    Base class for archive extractors.

    Subclasses implement `_extract_members` for one container format.
    """

    def __init__(self, strip_prefix: str = ""):
        prefix = strip_prefix.strip("/")
        self.strip_prefix = f"{prefix}/" if prefix else ""

    def extract(self, archive_path: Path, target_dir: Path) -> int:
        """
        Extracts the archive into `target_dir`.

        Returns:
            The number of regular files written.

        Raises:
            ArchiveFormatError: If the archive is corrupt or holds unsafe paths.
            FileSystemError: If writing to `target_dir` fails.
        """
        log.debug(f"Extracting '{archive_path.name}' into '{target_dir}'")
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            files_written = self._extract_members(archive_path, target_dir)
        except _CORRUPT_ARCHIVE_ERRORS as e:
            raise ArchiveFormatError(
                f"Corrupt archive '{archive_path.name}': {e}"
            ) from e
        except OSError as e:
            raise FileSystemError(
                f"Failed to extract '{archive_path.name}' into '{target_dir}': {e}"
            ) from e

        log.debug(f"Extracted {files_written} files from '{archive_path.name}'")
        return files_written

    def _extract_members(self, archive_path: Path, target_dir: Path) -> int:
        raise NotImplementedError("Subclasses must implement _extract_members()")

    def _target_path(self, member_name: str, target_dir: Path) -> Path:
        """
        Maps an archive member name to its location under `target_dir`.

        Names without the expected prefix are joined unchanged.
        """
        name = member_name.replace("\\", "/")
        if self.strip_prefix:
            if name.startswith(self.strip_prefix):
                name = name[len(self.strip_prefix) :]
            elif name.rstrip("/") == self.strip_prefix.rstrip("/"):
                name = ""

        relative = PurePosixPath(name)
        if relative.is_absolute() or ".." in relative.parts or ":" in name:
            raise ArchiveFormatError(f"Unsafe path in archive: {member_name!r}")
        return target_dir.joinpath(*relative.parts)

    @staticmethod
    def _write_file(source, target: Path, mode: int) -> None:
        """Writes a stream to `target`, truncating any existing file."""
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as out:
            shutil.copyfileobj(source, out)
        os.chmod(target, mode)


class TarGzExtractor(BaseExtractor):
    """Handles .tar.gz / .tgz files."""

    def _extract_members(self, archive_path: Path, target_dir: Path) -> int:
        files_written = 0
        with tarfile.open(archive_path, "r:gz") as tar:
            for member in tar:
                target = self._target_path(member.name, target_dir)
                if member.isdir():
                    target.mkdir(
                        mode=member.mode or DEFAULT_DIR_MODE,
                        parents=True,
                        exist_ok=True,
                    )
                elif member.isreg():
                    source = tar.extractfile(member)
                    if source is None:
                        continue
                    with source:
                        self._write_file(
                            source, target, (member.mode & 0o7777) or DEFAULT_FILE_MODE
                        )
                    files_written += 1
                else:
                    log.debug(f"Skipping non-regular tar member '{member.name}'")
        return files_written


class ZipExtractor(BaseExtractor):
    """Handles .zip files."""

    def _extract_members(self, archive_path: Path, target_dir: Path) -> int:
        files_written = 0
        with zipfile.ZipFile(archive_path) as zf:
            for info in zf.infolist():
                target = self._target_path(info.filename, target_dir)
                unix_mode = info.external_attr >> 16
                if info.is_dir():
                    target.mkdir(
                        mode=(unix_mode & 0o7777) or DEFAULT_DIR_MODE,
                        parents=True,
                        exist_ok=True,
                    )
                elif stat.S_ISLNK(unix_mode):
                    log.debug(f"Skipping symlink zip member '{info.filename}'")
                else:
                    with zf.open(info) as source:
                        self._write_file(
                            source, target, (unix_mode & 0o7777) or DEFAULT_FILE_MODE
                        )
                    files_written += 1
        return files_written


class ArchiveExtractor:
    """Dispatches extraction to the extractor for an `ArchiveFormat`."""

    _EXTRACTORS: dict[ArchiveFormat, type[BaseExtractor]] = {
        ArchiveFormat.TAR_GZ: TarGzExtractor,
        ArchiveFormat.ZIP: ZipExtractor,
    }

    def __init__(self, strip_prefix: str = ""):
        self.strip_prefix = strip_prefix

    def extract(
        self, archive_path: Path, target_dir: Path, archive_format: ArchiveFormat
    ) -> int:
        extractor_cls = self._EXTRACTORS.get(archive_format)
        if extractor_cls is None:
            raise ArchiveFormatError(f"No extractor for format {archive_format}")
        return extractor_cls(self.strip_prefix).extract(archive_path, target_dir)
