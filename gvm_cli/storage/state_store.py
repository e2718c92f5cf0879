"""
Persists the install state (installed versions and the active one) as JSON.
"""

import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from gvm_cli.exceptions import StateStoreError
from gvm_cli.models.state import InstallState
from gvm_cli.utils.file_lock import exclusive_lock

log = logging.getLogger(__name__)


class StateStore:
    """Loads and atomically rewrites the JSON state document."""

    def __init__(self, state_file: Path, default_install_dir: str, lock_file: Path):
        self.state_file = state_file
        self.default_install_dir = default_install_dir
        self.lock_file = lock_file

    def locked(self):
        """Context manager serializing read-modify-write cycles across processes."""
        return exclusive_lock(self.lock_file)

    def load(self) -> InstallState:
        """
        Reads the state document, or returns an empty state if none exists yet.

        Raises:
            StateStoreError: If the file exists but cannot be read or parsed.
        """
        if not self.state_file.is_file():
            log.debug(f"No state file at '{self.state_file}', starting fresh.")
            return InstallState(install_dir=self.default_install_dir)

        try:
            raw = self.state_file.read_text(encoding="utf-8")
        except OSError as e:
            raise StateStoreError(
                f"Failed to read state file '{self.state_file}': {e}"
            ) from e

        if not raw.strip():
            return InstallState(install_dir=self.default_install_dir)

        try:
            return InstallState.model_validate_json(raw)
        except ValidationError as e:
            raise StateStoreError(
                f"Failed to parse state file '{self.state_file}':\n{e}"
            ) from e

    def save(self, state: InstallState) -> None:
        """
        Rewrites the state document: temp file in the same directory, then rename.

        Raises:
            StateStoreError: If the document cannot be written.
        """
        payload = state.model_dump_json(indent=2)
        tmp_name = None
        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.state_file.parent, prefix=".config.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.state_file)
            tmp_name = None
        except OSError as e:
            raise StateStoreError(
                f"Failed to write state file '{self.state_file}': {e}"
            ) from e
        finally:
            if tmp_name:
                Path(tmp_name).unlink(missing_ok=True)
        log.debug(f"Saved install state to '{self.state_file}'")
