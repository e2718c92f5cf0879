"""Shared test fixtures: a local download site and isolated gvm homes."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from gvm_cli.core.version_manager import VersionManager
from gvm_cli.models.config import ManagerConfig

from .archives import DownloadSite


async def _start(app: web.Application) -> TestServer:
    server = TestServer(app)
    await server.start_server()
    return server


@pytest.fixture
def site() -> DownloadSite:
    return DownloadSite()


@pytest_asyncio.fixture
async def base_url(site: DownloadSite):
    """Base URL of a running local download site."""
    app = web.Application()
    site.register(app)
    server = await _start(app)
    yield f"http://{server.host}:{server.port}"
    await server.close()


@pytest_asyncio.fixture
async def dead_base_url():
    """Base URL of a server that answers every request with 503."""

    async def unavailable(request: web.Request) -> web.Response:
        return web.Response(status=503, text="down for maintenance")

    app = web.Application()
    app.router.add_route("*", "/{tail:.*}", unavailable)
    server = await _start(app)
    yield f"http://{server.host}:{server.port}"
    await server.close()


@pytest.fixture
def gvm_home(tmp_path: Path) -> Path:
    return tmp_path / "gvm-home"


@pytest.fixture
def make_config(gvm_home: Path) -> Callable[..., ManagerConfig]:
    """Factory fixture: a config rooted in a temp dir with fast retries."""

    def _factory(**overrides: Any) -> ManagerConfig:
        values: dict[str, Any] = {
            "gvm_home": str(gvm_home),
            "retry_delay": 0,
            "max_attempts": 2,
            "request_timeout": 5,
            "target_os": "linux",
            "target_arch": "amd64",
            "shell_integration": False,
        }
        values.update(overrides)
        return ManagerConfig(**values)

    return _factory


@pytest.fixture
def empty_path(tmp_path: Path) -> str:
    """A PATH value with no runtime on it."""
    empty = tmp_path / "empty-bin"
    empty.mkdir()
    return str(empty)


@pytest_asyncio.fixture
async def manager(make_config, base_url: str, empty_path: str, tmp_path: Path):
    """A VersionManager wired to the local download site."""
    config = make_config(mirror=base_url, fallback_mirror=base_url)
    vm = VersionManager(config, environ={"PATH": empty_path}, home=tmp_path / "home")
    yield vm
    await vm.close()
