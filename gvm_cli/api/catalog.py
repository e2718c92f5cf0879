"""
Async client for the remote release catalog, with mirror fallback and retries.
"""

import asyncio
import logging

import aiohttp
from pydantic import TypeAdapter, ValidationError

from gvm_cli.exceptions import (
    CatalogParseError,
    NetworkError,
    NoSuitableArtifactError,
    UnknownVersionError,
    VersionNotFoundError,
)
from gvm_cli.models.catalog import ArtifactDescriptor, ReleaseEntry
from gvm_cli.models.config import DEFAULT_CATALOG_PATH, ManagerConfig

log = logging.getLogger(__name__)

_RELEASE_LIST = TypeAdapter(list[ReleaseEntry])


class CatalogClient:
    """
    Fetches the list of published releases.

    Features:
    - Primary base URL with a fixed fallback mirror
    - Up to `max_attempts` attempts per base with linear backoff
    - Per-attempt timeout
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_urls: list[str],
        catalog_path: str = DEFAULT_CATALOG_PATH,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
        request_timeout: float = 30.0,
    ):
        """
        Initializes the catalog client.

        Args:
            session: Shared aiohttp session.
            base_urls: Base locations tried in order, e.g. the primary host and
                then the mirror.
            catalog_path: Path of the JSON release list below each base.
            max_attempts: Attempts per base before falling through.
            retry_delay: Backoff unit; attempt N waits N * retry_delay.
            request_timeout: Upper bound in seconds for one attempt.
        """
        self.session = session
        self.base_urls = list(dict.fromkeys(base_urls))
        self.catalog_path = catalog_path
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.timeout = aiohttp.ClientTimeout(total=request_timeout)

    @classmethod
    def from_config(
        cls, session: aiohttp.ClientSession, config: ManagerConfig
    ) -> "CatalogClient":
        return cls(
            session,
            config.base_urls(),
            catalog_path=config.catalog_path,
            max_attempts=config.max_attempts,
            retry_delay=config.retry_delay,
            request_timeout=config.request_timeout,
        )

    async def fetch_catalog(self) -> list[ReleaseEntry]:
        """
        Fetches the release list, trying each base location in turn.

        Raises:
            NetworkError: If every attempt failed and the last failure was a
                connection error, timeout, or bad status.
            CatalogParseError: If the last failure was a malformed body.
        """
        plan = [
            (base, attempt)
            for base in self.base_urls
            for attempt in range(1, self.max_attempts + 1)
        ]
        last_error: NetworkError | CatalogParseError | None = None

        for index, (base, attempt) in enumerate(plan):
            url = f"{base}{self.catalog_path}"
            try:
                releases = await self._fetch_once(url)
                log.debug(f"Fetched {len(releases)} releases from {url}")
                return releases
            except (NetworkError, CatalogParseError) as e:
                last_error = e
                log.debug(
                    f"Catalog attempt {attempt}/{self.max_attempts} against "
                    f"{base} failed: {e}"
                )
                if index < len(plan) - 1:
                    await asyncio.sleep(attempt * self.retry_delay)

        if last_error is None:
            raise NetworkError("No catalog base URLs are configured.")
        raise type(last_error)(
            f"Failed to fetch the release catalog from "
            f"{', '.join(self.base_urls)}: {last_error}"
        ) from last_error

    async def _fetch_once(self, url: str) -> list[ReleaseEntry]:
        try:
            async with self.session.get(url, timeout=self.timeout) as response:
                response.raise_for_status()
                body = await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(f"GET {url} failed: {e}") from e
        return self.parse_catalog(body, source=url)

    @staticmethod
    def parse_catalog(body: bytes | str, source: str = "catalog") -> list[ReleaseEntry]:
        """
        Parses a JSON release list. Repeated version ids keep their first entry.

        Raises:
            CatalogParseError: If the body is not a valid release list.
        """
        try:
            releases = _RELEASE_LIST.validate_json(body)
        except ValidationError as e:
            raise CatalogParseError(
                f"Malformed release list from {source}: "
                f"{e.error_count()} validation error(s), first: "
                f"{e.errors()[0]['msg']}"
            ) from e

        unique: dict[str, ReleaseEntry] = {}
        for release in releases:
            if release.version_id in unique:
                log.debug(f"Ignoring duplicate catalog entry {release.version_id}")
                continue
            unique[release.version_id] = release
        return list(unique.values())

    async def resolve_latest_stable(self) -> str:
        """Fetches the catalog and returns the newest stable version id."""
        return self.latest_stable(await self.fetch_catalog())

    @staticmethod
    def latest_stable(releases: list[ReleaseEntry]) -> str:
        """
        Returns the first stable entry in catalog order. The source delivers
        newest first, so no re-sorting happens here.
        """
        for release in releases:
            if release.is_stable:
                return release.version_id
        raise VersionNotFoundError("No stable release found in the catalog.")

    @staticmethod
    def find_release(releases: list[ReleaseEntry], version_id: str) -> ReleaseEntry:
        for release in releases:
            if release.version_id == version_id:
                return release
        raise UnknownVersionError(
            f"Version {version_id} not found in available versions."
        )

    @staticmethod
    def select_artifact(
        release: ReleaseEntry, target_os: str, target_arch: str
    ) -> ArtifactDescriptor:
        """Exact OS/arch match; the first matching artifact wins."""
        for artifact in release.artifacts:
            if artifact.os == target_os and artifact.arch == target_arch:
                return artifact
        raise NoSuitableArtifactError(
            f"No suitable package of {release.version_id} found for "
            f"{target_os}-{target_arch}."
        )
