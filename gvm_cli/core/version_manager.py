"""
The main orchestrator: resolves, installs, activates, and removes versions.

Every operation runs strictly in sequence. The state file is only written once
the filesystem already reflects the change being recorded, so an interrupted
run leaves at worst an unrecorded directory, which the next install of the
same version cleans up.
"""

import asyncio
import logging
import os
import shutil
import time
from collections.abc import Callable, Mapping
from pathlib import Path

import aiohttp

from gvm_cli.api.catalog import CatalogClient
from gvm_cli.exceptions import (
    ActiveVersionInUseError,
    AlreadyInstalledError,
    FileSystemError,
    InstallValidationError,
    NetworkError,
    NotInstalledError,
    StateStoreError,
)
from gvm_cli.media.downloader import Downloader, ProgressSink
from gvm_cli.media.extractor import ArchiveExtractor
from gvm_cli.media.integrity import IntegrityVerifier
from gvm_cli.models.catalog import (
    ArtifactDescriptor,
    ReleaseEntry,
    is_prerelease,
    version_sort_key,
)
from gvm_cli.models.config import ManagerConfig
from gvm_cli.models.state import (
    SYSTEM_VERSION,
    InstallationRecord,
    InstallResult,
    InstallStage,
)
from gvm_cli.storage.state_store import StateStore
from gvm_cli.utils.platform import detect_arch, detect_os, executable_name
from gvm_cli.utils.structured_logger import InstallLogger, StructuredLogger

from .activation import ActivationManager
from .shell import ShellIntegrator

log = logging.getLogger(__name__)

StageListener = Callable[[str, InstallStage], None]

# Minor release from which stable versions are grouped as long-term.
LTS_MIN_MINOR = 20


class _StageTracker:
    """Remembers the current install stage and forwards every transition."""

    def __init__(
        self, version_id: str, events: InstallLogger, listener: StageListener | None
    ):
        self.version_id = version_id
        self.events = events
        self.listener = listener
        self.stage = InstallStage.RESOLVING

    def advance(self, stage: InstallStage) -> None:
        self.stage = stage
        self.events.stage_changed(self.version_id, stage.value)
        if self.listener is not None:
            self.listener(self.version_id, stage)


class VersionManager:
    """Coordinates the catalog, downloader, extractor, state store and shims."""

    def __init__(
        self,
        config: ManagerConfig,
        session: aiohttp.ClientSession | None = None,
        events: InstallLogger | None = None,
        environ: Mapping[str, str] | None = None,
        home: Path | None = None,
    ):
        self.config = config
        self.environ = os.environ if environ is None else environ
        self.target_os = config.target_os or detect_os()
        self.target_arch = config.target_arch or detect_arch()
        self.install_dir = Path(config.install_dir)
        self.shims_dir = Path(config.shims_dir)

        self.store = StateStore(config.state_file, config.install_dir, config.lock_file)
        self.extractor = ArchiveExtractor(config.archive_root)
        shell = (
            ShellIntegrator(
                Path(config.gvm_home), self.environ, home, self.target_os
            )
            if config.shell_integration
            else None
        )
        self.activation = ActivationManager(
            self.shims_dir, self.install_dir, config.entrypoint, shell, self.target_os
        )
        self.events = events or InstallLogger(
            StructuredLogger("gvm_cli.events", enable_json=False)
        )

        self._session = session
        self._owns_session = session is None

    async def _initialize_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": "gvm-cli"},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Closes the session if this manager created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "VersionManager":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def version_dir(self, version_id: str) -> Path:
        return self.install_dir / version_id

    # --- Catalog queries ---

    async def fetch_catalog(self) -> list[ReleaseEntry]:
        session = await self._initialize_session()
        return await CatalogClient.from_config(session, self.config).fetch_catalog()

    async def resolve(self, version_spec: str) -> str:
        """
        Turns user input into a version id: 'latest' asks the catalog for the
        newest stable release, anything else gets the version prefix added.
        """
        spec = version_spec.strip()
        if spec.lower() == "latest":
            session = await self._initialize_session()
            client = CatalogClient.from_config(session, self.config)
            version_id = await client.resolve_latest_stable()
            log.debug(f"Resolved 'latest' to {version_id}")
            return version_id
        return self.config.normalize_version(spec)

    async def list_available(
        self, stable_only: bool = False, limit: int = 0
    ) -> list[ReleaseEntry]:
        """Catalog releases, newest first, optionally filtered and truncated."""
        releases = await self.fetch_catalog()
        if stable_only:
            releases = [r for r in releases if r.is_stable]
        releases = sorted(
            releases, key=lambda r: version_sort_key(r.version_id), reverse=True
        )
        if limit > 0:
            releases = releases[:limit]
        return releases

    @staticmethod
    def categorize(releases: list[ReleaseEntry]) -> dict[str, list[ReleaseEntry]]:
        """
        Groups releases for display.

        - current: every release of the newest minor line, pre-releases included
        - lts: other stable releases from 1.20 on
        - old_stable: older stable releases
        - old_unstable: release candidates and betas of older lines
        """
        groups: dict[str, list[ReleaseEntry]] = {
            "current": [],
            "lts": [],
            "old_stable": [],
            "old_unstable": [],
        }
        ordered = sorted(
            releases, key=lambda r: version_sort_key(r.version_id), reverse=True
        )
        newest_minor = max(
            (version_sort_key(r.version_id)[1] for r in ordered), default=0
        )
        for release in ordered:
            minor = version_sort_key(release.version_id)[1]
            if minor == newest_minor:
                groups["current"].append(release)
            elif not release.is_stable or is_prerelease(release.version_id):
                groups["old_unstable"].append(release)
            elif minor >= LTS_MIN_MINOR:
                groups["lts"].append(release)
            else:
                groups["old_stable"].append(release)
        return groups

    # --- Install ---

    async def install(
        self,
        version_id: str,
        progress: ProgressSink | None = None,
        on_stage: StageListener | None = None,
    ) -> InstallResult:
        """
        Downloads, verifies, extracts and records a version.

        Args:
            version_id: The exact catalog version id, e.g. 'go1.21.5'.
            progress: Optional sink receiving (bytes_written, total_bytes).
            on_stage: Optional listener called on every stage transition.

        Returns:
            The new record and the artifact it came from.

        Raises:
            AlreadyInstalledError: If the version already has a record.
            UnknownVersionError, NoSuitableArtifactError, ArchiveFormatError:
                Before anything is downloaded.
            NetworkError: If every mirror and attempt failed.
            DigestMismatchError: If the archive's SHA-256 does not match.
            InstallValidationError: If the extracted tree is not the requested
                version.
        """
        tracker = _StageTracker(version_id, self.events, on_stage)
        self.events.install_started(version_id, self.target_os, self.target_arch)
        with self.store.locked():
            try:
                result = await self._install_locked(version_id, tracker, progress)
            except BaseException as e:
                failed_at = tracker.stage
                tracker.advance(InstallStage.FAILED)
                self.events.install_failed(version_id, failed_at.value, str(e))
                raise
        self.events.install_completed(
            version_id, result.record.install_path, result.verified
        )
        return result

    async def _install_locked(
        self,
        version_id: str,
        tracker: _StageTracker,
        progress: ProgressSink | None,
    ) -> InstallResult:
        tracker.advance(InstallStage.RESOLVING)
        state = self.store.load()
        if version_id in state.versions:
            raise AlreadyInstalledError(
                f"Version {version_id} is already installed at "
                f"'{state.versions[version_id].install_path}'."
            )

        releases = await self.fetch_catalog()
        release = CatalogClient.find_release(releases, version_id)
        artifact = CatalogClient.select_artifact(
            release, self.target_os, self.target_arch
        )
        archive_format = artifact.archive_format
        install_path = self.version_dir(version_id)
        archive_path = self.config.downloads_dir / artifact.filename
        log.debug(f"Selected {artifact.filename} for {version_id}")

        try:
            tracker.advance(InstallStage.DOWNLOADING)
            await self._download_artifact(version_id, artifact, archive_path, progress)

            tracker.advance(InstallStage.VERIFYING)
            verified = self._verify_artifact(version_id, artifact, archive_path)

            tracker.advance(InstallStage.EXTRACTING)
            if install_path.exists():
                log.warning(
                    f"[yellow]Removing leftover directory '{install_path}' from an "
                    "interrupted install.[/yellow]"
                )
                self._remove_tree(install_path)
            try:
                file_count = self.extractor.extract(
                    archive_path, install_path, archive_format
                )
                log.debug(f"Extracted {file_count} files into '{install_path}'")
                tracker.advance(InstallStage.VALIDATING)
                self._validate_install(version_id, install_path)
            except BaseException:
                self._remove_tree(install_path, strict=False)
                raise
        finally:
            self._discard_download(archive_path)

        record = InstallationRecord(version_id=version_id, install_path=str(install_path))
        state.add_record(record)
        try:
            self.store.save(state)
        except StateStoreError:
            self._remove_tree(install_path, strict=False)
            raise

        tracker.advance(InstallStage.INSTALLED)
        return InstallResult(record=record, artifact=artifact, verified=verified)

    async def _download_artifact(
        self,
        version_id: str,
        artifact: ArtifactDescriptor,
        archive_path: Path,
        progress: ProgressSink | None,
    ) -> str:
        """Tries every (mirror, attempt) pair in order; the first success wins."""
        session = await self._initialize_session()
        downloader = Downloader(session, request_timeout=self.config.request_timeout)
        plan = [
            (base, attempt)
            for base in self.config.base_urls()
            for attempt in range(1, self.config.max_attempts + 1)
        ]
        last_error: NetworkError | None = None

        for index, (base, attempt) in enumerate(plan):
            url = f"{base}/dl/{artifact.filename}"
            start = time.monotonic()
            try:
                size = await downloader.fetch(
                    url, archive_path, progress, artifact.size_bytes
                )
            except NetworkError as e:
                last_error = e
                log.debug(
                    f"Download attempt {attempt}/{self.config.max_attempts} "
                    f"from {base} failed: {e}"
                )
                if index < len(plan) - 1:
                    await asyncio.sleep(attempt * self.config.retry_delay)
                continue
            self.events.artifact_downloaded(
                version_id, url, size, time.monotonic() - start
            )
            return url

        raise NetworkError(
            f"Failed to download {artifact.filename} from "
            f"{', '.join(self.config.base_urls())}: {last_error}"
        ) from last_error

    def _verify_artifact(
        self, version_id: str, artifact: ArtifactDescriptor, archive_path: Path
    ) -> bool:
        if not artifact.digest:
            log.warning(
                f"[yellow]No SHA-256 published for {artifact.filename}; "
                "installing without verification.[/yellow]"
            )
            self.events.install_unverified(version_id, artifact.filename)
            return False
        IntegrityVerifier.verify(archive_path, artifact.digest)
        log.debug(f"Checksum verified for {artifact.filename}")
        return True

    def _validate_install(self, version_id: str, install_path: Path) -> None:
        """The marker file must name the version and the entry point must exist."""
        marker = install_path / self.config.marker_file
        try:
            content = marker.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise InstallValidationError(
                f"Installation validation failed: cannot read '{marker}': {e}"
            ) from e

        lines = content.strip().splitlines()
        found = lines[0].strip() if lines else ""
        if found != version_id:
            raise InstallValidationError(
                f"Installation validation failed: expected {version_id}, "
                f"found {found or 'an empty marker'} in '{marker}'."
            )

        entry = self.activation.entrypoint_path(install_path)
        if not entry.is_file():
            raise InstallValidationError(
                f"Installation validation failed: entry point '{entry}' not found."
            )

    @staticmethod
    def _discard_download(archive_path: Path) -> None:
        try:
            archive_path.unlink(missing_ok=True)
        except OSError as e:
            log.warning(f"[yellow]Could not remove '{archive_path}': {e}[/yellow]")

    @staticmethod
    def _remove_tree(path: Path, strict: bool = True) -> None:
        """
        Deletes an installation directory. With `strict=False` failures are only
        logged, for cleanup on a path that is already failing.
        """
        if not path.exists():
            return
        try:
            shutil.rmtree(path)
        except OSError as e:
            if strict:
                raise FileSystemError(f"Failed to remove '{path}': {e}") from e
            log.warning(f"[yellow]Could not clean up '{path}': {e}[/yellow]")

    # --- Activation and removal ---

    def use(self, version_id: str) -> InstallationRecord:
        """
        Makes an installed version the active one.

        The shims (and the shell PATH block) are updated first; the state file
        records the new current version only after that succeeded.

        Raises:
            NotInstalledError: If the version has no record or no entry point.
        """
        with self.store.locked():
            state = self.store.load()
            record = state.versions.get(version_id)
            if record is None:
                raise NotInstalledError(
                    f"Version {version_id} is not installed. "
                    f"Run 'gvm install {version_id}' first."
                )
            shim = self.activation.activate(record)
            state.set_current(version_id)
            self.store.save(state)

        self.events.version_activated(version_id, str(shim))
        return record

    def uninstall(self, version_id: str) -> Path:
        """
        Removes an installed version's directory, then its record.

        Returns:
            The directory that was removed.

        Raises:
            NotInstalledError: If neither a record nor a directory exists.
            ActiveVersionInUseError: If the version is the current one.
        """
        with self.store.locked():
            state = self.store.load()
            record = state.versions.get(version_id)
            install_path = (
                Path(record.install_path) if record else self.version_dir(version_id)
            )
            if record is None and not install_path.exists():
                raise NotInstalledError(f"Version {version_id} is not installed.")
            if state.current_version == version_id:
                raise ActiveVersionInUseError(
                    f"Cannot uninstall {version_id} because it is the active "
                    "version. Switch to another version first."
                )
            if install_path.name != version_id:
                raise StateStoreError(
                    f"Refusing to remove '{install_path}': it does not look like "
                    f"the directory of {version_id}."
                )

            self._remove_tree(install_path)
            if record is not None:
                state.remove_record(version_id)
                self.store.save(state)

        self.events.version_uninstalled(version_id, str(install_path))
        return install_path

    def list_installed(self) -> list[InstallationRecord]:
        """Installed versions: the active one first, the rest newest first."""
        state = self.store.load()
        records = sorted(
            state.versions.values(),
            key=lambda r: version_sort_key(r.version_id),
            reverse=True,
        )
        records.sort(key=lambda r: not r.is_active)
        return records

    def current(self) -> str:
        """
        The active version id, 'system' when only an unmanaged runtime is on
        PATH, or an empty string when there is neither.
        """
        state = self.store.load()
        if state.current_version:
            return state.current_version
        return SYSTEM_VERSION if self.find_system_runtime() else ""

    def find_system_runtime(self) -> Path | None:
        """Locates an entry point on PATH that gvm does not manage."""
        name = executable_name(self.config.entrypoint, self.target_os)
        found = shutil.which(name, path=self.environ.get("PATH"))
        if not found:
            return None
        resolved = Path(found).resolve()
        for managed in (self.shims_dir, self.install_dir):
            if resolved.is_relative_to(managed.resolve()) or Path(found).parent == managed:
                return None
        return resolved

    def system_version(self) -> str | None:
        """Reads the marker file next to an unmanaged runtime, if there is one."""
        runtime = self.find_system_runtime()
        if runtime is None:
            return None
        marker = runtime.parent.parent / self.config.marker_file
        try:
            lines = marker.read_text(encoding="utf-8").strip().splitlines()
        except (OSError, UnicodeDecodeError):
            log.debug(f"No readable marker file next to system runtime '{runtime}'")
            return None
        return lines[0].strip() if lines else None
