"""
Handles the low-level downloading of files over HTTP, streaming to a temporary
file next to the destination and renaming it into place.
"""

import asyncio
import logging
import os
import shutil
import tempfile
import time
from collections.abc import Callable
from pathlib import Path

import aiofiles
import aiohttp

from gvm_cli.exceptions import FileSystemError, NetworkError

log = logging.getLogger(__name__)

ProgressSink = Callable[[int, int], None]


class _ThrottledProgress:
    """Forwards (bytes_written, total_bytes) to a sink at most every `interval`s."""

    def __init__(self, sink: ProgressSink | None, interval: float):
        self._sink = sink
        self._interval = interval
        self._last_emit = 0.0

    def update(self, written: int, total: int) -> None:
        if self._sink is None:
            return
        now = time.monotonic()
        if now - self._last_emit >= self._interval:
            self._last_emit = now
            self._sink(written, total)

    def finish(self, written: int, total: int) -> None:
        if self._sink is not None:
            self._sink(written, total or written)


class Downloader:
    """Streams a single URL to disk with atomic-replace semantics."""

    CHUNK_SIZE = 262144  # 256 KB

    def __init__(
        self,
        session: aiohttp.ClientSession,
        request_timeout: float = 30.0,
        progress_interval: float = 0.2,
    ):
        self.session = session
        self.timeout = aiohttp.ClientTimeout(
            total=None, sock_connect=request_timeout, sock_read=request_timeout
        )
        self.progress_interval = progress_interval

    async def fetch(
        self,
        url: str,
        destination_path: Path,
        progress: ProgressSink | None = None,
        total_size_estimate: int = 0,
    ) -> int:
        """
        Downloads `url` into `destination_path`. One attempt, no retries.

        The body is written to a temporary file in the destination's directory,
        flushed and closed, then renamed over the destination. No partial file
        is ever left at `destination_path`.

        Args:
            url: The URL to fetch.
            destination_path: Final location of the file.
            progress: Optional sink receiving (bytes_written, total_bytes).
            total_size_estimate: Used for progress when the server sends no
                Content-Length.

        Returns:
            The number of bytes written.

        Raises:
            NetworkError: On connection errors, timeouts, or non-2xx statuses.
            FileSystemError: If the file cannot be written or moved into place.
        """
        try:
            destination_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=destination_path.parent,
                prefix=f".{destination_path.name}.",
                suffix=".part",
            )
            os.close(fd)
        except OSError as e:
            raise FileSystemError(
                f"Cannot create a temporary file in '{destination_path.parent}': {e}"
            ) from e

        tmp_path = Path(tmp_name)
        try:
            bytes_written = await self._stream_to_file(
                url, tmp_path, progress, total_size_estimate
            )
            self.place_file(tmp_path, destination_path)
        finally:
            tmp_path.unlink(missing_ok=True)

        log.debug(f"Downloaded {bytes_written} bytes from {url}")
        return bytes_written

    async def _stream_to_file(
        self,
        url: str,
        tmp_path: Path,
        progress: ProgressSink | None,
        total_size_estimate: int,
    ) -> int:
        reporter = _ThrottledProgress(progress, self.progress_interval)
        bytes_written = 0
        try:
            async with self.session.get(
                url, allow_redirects=True, timeout=self.timeout
            ) as response:
                response.raise_for_status()
                total = int(
                    response.headers.get("Content-Length", total_size_estimate) or 0
                )

                async with aiofiles.open(tmp_path, "wb") as f:
                    async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                        await f.write(chunk)
                        bytes_written += len(chunk)
                        reporter.update(bytes_written, total)
                    await f.flush()
                    await asyncio.to_thread(os.fsync, f.fileno())

                reporter.finish(bytes_written, total)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(f"Download of {url} failed: {e}") from e
        except OSError as e:
            raise FileSystemError(f"Cannot write '{tmp_path}': {e}") from e
        return bytes_written

    @staticmethod
    def place_file(source: Path, destination: Path) -> bool:
        """
        Moves a completed download into place.

        Tries an atomic same-filesystem rename first. If that fails (e.g. a
        cross-device move), falls back to copy-then-delete, which is
        best-effort and not atomic.

        Returns:
            True if the atomic rename succeeded, False if the fallback was used.

        Raises:
            FileSystemError: If neither path succeeds.
        """
        try:
            if destination.exists():
                destination.unlink()
        except OSError as e:
            raise FileSystemError(f"Cannot replace '{destination}': {e}") from e

        try:
            os.replace(source, destination)
            return True
        except OSError as e:
            log.warning(
                f"[yellow]Atomic rename to '{destination}' failed ({e}); "
                "falling back to copy.[/yellow]"
            )

        try:
            shutil.copyfile(source, destination)
            source.unlink()
        except OSError as e:
            destination.unlink(missing_ok=True)
            raise FileSystemError(
                f"Cannot move '{source}' to '{destination}': {e}"
            ) from e
        return False
