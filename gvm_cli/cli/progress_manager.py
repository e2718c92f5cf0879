"""
Manages a Rich progress display for a single install: a transfer bar for the
download and a status line that follows the install stages.
"""

import logging

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from gvm_cli.models.state import InstallStage

log = logging.getLogger("gvm_cli")

_STAGE_LABELS = {
    InstallStage.RESOLVING: "Resolving",
    InstallStage.DOWNLOADING: "Downloading",
    InstallStage.VERIFYING: "Verifying checksum",
    InstallStage.EXTRACTING: "Extracting",
    InstallStage.VALIDATING: "Validating",
    InstallStage.INSTALLED: "Installed",
    InstallStage.FAILED: "Failed",
}


class ProgressManager:
    """
    Shows one download bar plus the current install stage.

    With `quiet=True` nothing is rendered; stage changes are still logged at
    debug level.
    """

    def __init__(self, console: Console, quiet: bool = False):
        self.console = console
        self.quiet = quiet
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            DownloadColumn(),
            "•",
            TransferSpeedColumn(),
            "•",
            TimeRemainingColumn(),
            console=console,
            transient=True,
        )
        self._task_id: TaskID | None = None
        self._version_id = ""

    def on_stage(self, version_id: str, stage: InstallStage) -> None:
        """Stage listener for `VersionManager.install`."""
        self._version_id = version_id
        label = _STAGE_LABELS.get(stage, stage.value)
        log.debug(f"{version_id}: {label}")
        if self.quiet:
            return

        description = f"{label} [cyan]{version_id}[/cyan]"
        if self._task_id is None:
            self._task_id = self.progress.add_task(description, total=None, start=True)
        else:
            self.progress.update(self._task_id, description=description)

    def on_bytes(self, written: int, total: int) -> None:
        """Progress sink for the downloader."""
        if self.quiet or self._task_id is None:
            return
        self.progress.update(self._task_id, completed=written, total=total or None)

    async def __aenter__(self):
        if not self.quiet:
            self.progress.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if not self.quiet:
            self.progress.stop()
