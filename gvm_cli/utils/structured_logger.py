"""
Event log for install and activation operations.

Every event goes to the ``gvm_cli.events`` logger; with ``--log-json`` it is
also appended as one JSON object per line to ``<gvm_home>/logs``.
"""

import json
import logging
import sys
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any


class StructuredLogger:
    """
    Emits named events with key/value fields.

    Usage:
        events = StructuredLogger("gvm_cli.events", log_dir=Path("~/.gvm/logs"))
        events.info("install_completed", version="go1.21.5", verified=True)
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        """
        Args:
            name: Name of the stdlib logger that receives console output.
            log_dir: Where JSON-lines files are written. None turns them off.
            enable_json: Write a JSON-lines file under log_dir.
            enable_console: Forward events to the stdlib logger.
        """
        self.name = name
        self.log_dir = log_dir
        self.enable_json = enable_json and log_dir is not None
        self.enable_console = enable_console
        self._logger = logging.getLogger(name)

        self._stream = None
        self.json_log_path: Path | None = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.json_log_path = log_dir / f"gvm_{stamp}.jsonl"
            self._stream = open(self.json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        self._context: dict[str, Any] = {
            "session_id": uuid.uuid4().hex[:12],
            "started_at": datetime.now().isoformat(),
        }

    def set_session_context(self, **fields) -> None:
        """Fields merged into every JSON entry written afterwards."""
        self._context.update(fields)

    @staticmethod
    def _render(event: str, fields: dict[str, Any]) -> str:
        pairs = " ".join(f"{key}={value}" for key, value in fields.items())
        return f"[{event}] {pairs}".rstrip()

    def _append(self, level: str, event: str, fields: dict[str, Any]) -> None:
        if self._stream is None or self._stream.closed:
            return
        record = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._context,
            **fields,
        }
        try:
            self._stream.write(json.dumps(record, default=str) + "\n")
            self._stream.flush()
        except (OSError, TypeError, ValueError) as e:
            print(f"Could not write event log: {e}", file=sys.stderr)

    def _emit(self, level: int, event: str, **fields) -> None:
        if self.enable_console:
            # RichHandler reads the per-record flag; field values are never markup.
            self._logger.log(level, self._render(event, fields), extra={"markup": False})
        if self.enable_json:
            self._append(logging.getLevelName(level), event, fields)

    def debug(self, event: str, **fields) -> None:
        self._emit(logging.DEBUG, event, **fields)

    def info(self, event: str, **fields) -> None:
        self._emit(logging.INFO, event, **fields)

    def warning(self, event: str, **fields) -> None:
        self._emit(logging.WARNING, event, **fields)

    def error(self, event: str, **fields) -> None:
        self._emit(logging.ERROR, event, **fields)

    def close(self) -> None:
        if self._stream is not None and not self._stream.closed:
            self._stream.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class InstallLogger:
    """Specialized logger for install pipeline events."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def install_started(self, version: str, target_os: str, target_arch: str):
        self.logger.debug(
            "install_started", version=version, os=target_os, arch=target_arch
        )

    def stage_changed(self, version: str, stage: str):
        self.logger.debug("install_stage", version=version, stage=stage)

    def artifact_downloaded(
        self, version: str, url: str, size_bytes: int, duration_s: float
    ):
        self.logger.debug(
            "artifact_downloaded",
            version=version,
            url=url,
            size_bytes=size_bytes,
            size_mb=round(size_bytes / (1024 * 1024), 2),
            duration_s=round(duration_s, 2),
        )

    def install_unverified(self, version: str, filename: str):
        self.logger.warning("install_unverified", version=version, filename=filename)

    def install_completed(self, version: str, install_path: str, verified: bool):
        self.logger.debug(
            "install_completed",
            version=version,
            install_path=install_path,
            verified=verified,
        )

    def install_failed(self, version: str, stage: str, error: str):
        self.logger.debug(
            "install_failed", version=version, stage=stage, error=error
        )

    def version_activated(self, version: str, shim: str):
        self.logger.debug("version_activated", version=version, shim=shim)

    def version_uninstalled(self, version: str, install_path: str):
        self.logger.debug(
            "version_uninstalled", version=version, install_path=install_path
        )


def create_structured_logger(
    log_dir: Path | None = None, enable_json: bool = False
) -> tuple[StructuredLogger, InstallLogger]:
    """
    Create the structured loggers.

    Returns:
        Tuple of (base_logger, install_logger)
    """
    base = StructuredLogger("gvm_cli.events", log_dir=log_dir, enable_json=enable_json)
    return base, InstallLogger(base)
