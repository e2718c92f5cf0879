"""
An exclusive advisory lock that serializes mutating commands across processes.
"""

import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator

from gvm_cli.exceptions import FileSystemError

log = logging.getLogger(__name__)


def _lock(fd: IO[str]) -> None:
    if sys.platform == "win32":
        import msvcrt

        fd.seek(0)
        msvcrt.locking(fd.fileno(), msvcrt.LK_LOCK, 1)
    else:
        import fcntl

        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            log.info("[yellow]Another gvm process is running; waiting...[/yellow]")
            fcntl.flock(fd, fcntl.LOCK_EX)


def _unlock(fd: IO[str]) -> None:
    if sys.platform == "win32":
        import msvcrt

        fd.seek(0)
        msvcrt.locking(fd.fileno(), msvcrt.LK_UNLCK, 1)
    else:
        import fcntl

        fcntl.flock(fd, fcntl.LOCK_UN)


@contextmanager
def exclusive_lock(lock_path: Path) -> Iterator[None]:
    """Holds an exclusive lock on ``lock_path`` for the duration of the block."""
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        fd = open(lock_path, "a+", encoding="utf-8")  # noqa: SIM115
    except OSError as e:
        raise FileSystemError(f"Cannot open lock file '{lock_path}': {e}") from e

    try:
        _lock(fd)
        try:
            yield
        finally:
            _unlock(fd)
    finally:
        fd.close()
