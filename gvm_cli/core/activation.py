"""
Maintains the shim directory: fixed-location symlinks (or dispatch scripts on
Windows) that resolve to the active installation's executables.
"""

import logging
import os
import re
from pathlib import Path

from gvm_cli.exceptions import FileSystemError, NotInstalledError
from gvm_cli.models.state import InstallationRecord
from gvm_cli.utils.platform import executable_name, is_windows

from .shell import ShellIntegrator

log = logging.getLogger(__name__)

_CMD_TARGET_REGEX = re.compile(r'^@"(?P<target>[^"]+)" %\*', re.MULTILINE)


class ActivationManager:
    """Repoints shims at an installation and keeps the shim dir on PATH."""

    def __init__(
        self,
        shims_dir: Path,
        install_dir: Path,
        entrypoint: str,
        shell: ShellIntegrator | None = None,
        target_os: str | None = None,
    ):
        self.shims_dir = shims_dir
        self.install_dir = install_dir
        self.entrypoint = entrypoint
        self.shell = shell
        self.target_os = target_os

    @property
    def windows(self) -> bool:
        return is_windows(self.target_os)

    def entrypoint_path(self, install_path: Path) -> Path:
        return install_path / "bin" / executable_name(self.entrypoint, self.target_os)

    def activate(self, record: InstallationRecord) -> Path:
        """
        Points every shim at `record`'s binaries. Repeating the call for the
        same version changes nothing.

        Returns:
            The shim of the entry point.

        Raises:
            NotInstalledError: If the installation has no entry-point binary.
            FileSystemError: If the shims cannot be written.
            ShellIntegrationError: If the shell startup file cannot be updated.
        """
        install_path = Path(record.install_path)
        entry = self.entrypoint_path(install_path)
        if not entry.is_file():
            raise NotInstalledError(
                f"Version {record.version_id} is missing its entry point at '{entry}'."
            )

        targets = self._collect_targets(entry.parent, entry)
        try:
            self.shims_dir.mkdir(parents=True, exist_ok=True)
            changed = [
                name
                for name, target in targets.items()
                if self._point_shim(name, target)
            ]
            self._remove_stale_shims(set(targets))
        except OSError as e:
            raise FileSystemError(
                f"Failed to update shims in '{self.shims_dir}': {e}"
            ) from e

        if changed:
            log.debug(f"Repointed shims: {', '.join(sorted(changed))}")
        else:
            log.debug(f"Shims already point at {record.version_id}.")

        if self.shell is not None:
            self.shell.ensure_on_path(self.shims_dir)

        return self._shim_path(self._shim_name(entry))

    def shim_target(self) -> Path | None:
        """Returns where the entry-point shim currently points, if anywhere."""
        entry_name = executable_name(self.entrypoint, self.target_os)
        shim = self._shim_path(self._shim_name(Path(entry_name)))
        if self.windows:
            if not shim.is_file():
                return None
            match = _CMD_TARGET_REGEX.search(shim.read_text(encoding="utf-8"))
            return Path(match.group("target")) if match else None
        if not shim.is_symlink():
            return None
        return Path(os.readlink(shim))

    def _collect_targets(self, bin_dir: Path, entry: Path) -> dict[str, Path]:
        """Maps shim names to the executables they should resolve to."""
        targets = {self._shim_name(entry): entry}
        for candidate in sorted(bin_dir.iterdir()):
            if not candidate.is_file():
                continue
            if self.windows:
                if candidate.suffix.lower() != ".exe":
                    continue
            elif not os.access(candidate, os.X_OK):
                continue
            targets.setdefault(self._shim_name(candidate), candidate)
        return targets

    def _shim_name(self, executable: Path) -> str:
        return executable.stem if self.windows else executable.name

    def _shim_path(self, name: str) -> Path:
        return self.shims_dir / (f"{name}.cmd" if self.windows else name)

    def _point_shim(self, name: str, target: Path) -> bool:
        """Swaps a single shim in place. Returns False if it was already correct."""
        shim = self._shim_path(name)
        tmp = self.shims_dir / f".{shim.name}.{os.getpid()}.tmp"
        tmp.unlink(missing_ok=True)

        if self.windows:
            script = f'@echo off\r\n@"{target}" %*\r\n'
            if shim.is_file() and shim.read_bytes() == script.encode("utf-8"):
                return False
            tmp.write_text(script, encoding="utf-8", newline="")
        else:
            if shim.is_symlink() and Path(os.readlink(shim)) == target:
                return False
            os.symlink(target, tmp)

        os.replace(tmp, shim)
        return True

    def _remove_stale_shims(self, wanted: set[str]) -> None:
        """Deletes shims of executables the new version does not ship."""
        install_root = str(self.install_dir)
        for shim in self.shims_dir.iterdir():
            if shim.name.startswith("."):
                continue
            if self.windows:
                if shim.suffix.lower() != ".cmd" or shim.stem in wanted:
                    continue
                script = shim.read_text(encoding="utf-8", errors="replace")
                match = _CMD_TARGET_REGEX.search(script)
                if match is None or not match.group("target").startswith(install_root):
                    continue
            else:
                if shim.name in wanted or not shim.is_symlink():
                    continue
                if not os.readlink(shim).startswith(install_root):
                    continue
            log.debug(f"Removing stale shim '{shim.name}'")
            shim.unlink()
