"""Synthetic toolchain archives and an in-memory download site for tests."""

import hashlib
import io
import tarfile
import zipfile
from typing import Any

from aiohttp import web

EXECUTABLE = 0o755
REGULAR = 0o644


def go_distribution(version_id: str, entrypoint: str = "go") -> dict[str, tuple[bytes, int]]:
    """Files of a minimal toolchain: marker, two binaries and one source file."""
    return {
        "VERSION": (f"{version_id}\ntime 2024-01-01T00:00:00Z\n".encode(), REGULAR),
        f"bin/{entrypoint}": (b"#!/bin/sh\necho fake toolchain\n", EXECUTABLE),
        "bin/gofmt": (b"#!/bin/sh\necho fake gofmt\n", EXECUTABLE),
        "src/README": (b"sources\n", REGULAR),
    }


def build_tar_gz(files: dict[str, tuple[bytes, int]], root: str = "go") -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        top = tarfile.TarInfo(f"{root}/")
        top.type = tarfile.DIRTYPE
        top.mode = 0o755
        tar.addfile(top)
        for name, (data, mode) in files.items():
            info = tarfile.TarInfo(f"{root}/{name}")
            info.size = len(data)
            info.mode = mode
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def build_zip(files: dict[str, tuple[bytes, int]], root: str = "go") -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, (data, mode) in files.items():
            info = zipfile.ZipInfo(f"{root}/{name}")
            info.external_attr = (0o100000 | mode) << 16
            zf.writestr(info, data)
    return buf.getvalue()


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class DownloadSite:
    """
    In-memory stand-in for a download site: `/dl/?mode=json` serves the
    catalog, `/dl/<filename>` serves published archives.
    """

    def __init__(self):
        self.catalog: list[dict[str, Any]] = []
        self.catalog_body: bytes | None = None
        self.files: dict[str, bytes] = {}
        self.failures: dict[str, int] = {}
        self.requests: list[str] = []

    def register(self, app: web.Application) -> None:
        app.router.add_get("/dl/", self.handle_catalog)
        app.router.add_get("/dl/{filename}", self.handle_file)

    def publish(
        self,
        version_id: str,
        content: bytes,
        filename: str | None = None,
        stable: bool = True,
        os_name: str = "linux",
        arch: str = "amd64",
        sha256: str | None = None,
    ) -> dict[str, Any]:
        """Adds an artifact (and its release, if new) to the catalog."""
        filename = filename or f"{version_id}.{os_name}-{arch}.tar.gz"
        artifact = {
            "filename": filename,
            "os": os_name,
            "arch": arch,
            "sha256": sha256_hex(content) if sha256 is None else sha256,
            "size": len(content),
            "kind": "archive",
        }
        self.files[filename] = content
        for release in self.catalog:
            if release["version"] == version_id:
                release["files"].append(artifact)
                break
        else:
            self.catalog.append(
                {"version": version_id, "stable": stable, "files": [artifact]}
            )
        return artifact

    def publish_go(self, version_id: str, **kwargs) -> dict[str, Any]:
        return self.publish(
            version_id, build_tar_gz(go_distribution(version_id)), **kwargs
        )

    def file_requests(self) -> list[str]:
        return [r for r in self.requests if not r.startswith("/dl/?")]

    def _should_fail(self, key: str) -> bool:
        remaining = self.failures.get(key, 0)
        if remaining > 0:
            self.failures[key] = remaining - 1
            return True
        return False

    async def handle_catalog(self, request: web.Request) -> web.Response:
        self.requests.append(request.path_qs)
        if self._should_fail("catalog"):
            return web.Response(status=503, text="unavailable")
        if self.catalog_body is not None:
            return web.Response(body=self.catalog_body, content_type="application/json")
        return web.json_response(self.catalog)

    async def handle_file(self, request: web.Request) -> web.Response:
        filename = request.match_info["filename"]
        self.requests.append(request.path)
        if self._should_fail(filename):
            return web.Response(status=503, text="unavailable")
        data = self.files.get(filename)
        if data is None:
            return web.Response(status=404, text="not found")
        return web.Response(body=data, content_type="application/octet-stream")
