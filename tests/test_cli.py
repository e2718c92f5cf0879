"""Tests for the Typer command-line interface."""

import json
import os

import pytest
from typer.testing import CliRunner

from gvm_cli import __version__
from gvm_cli.cli.app import app
from gvm_cli.core.version_manager import VersionManager
from gvm_cli.exceptions import (
    ActiveVersionInUseError,
    NotInstalledError,
    UnknownVersionError,
)
from gvm_cli.models.catalog import ReleaseEntry
from gvm_cli.models.state import InstallationRecord, InstallState
from gvm_cli.storage.state_store import StateStore

runner = CliRunner()


@pytest.fixture
def cli_env(tmp_path):
    home = tmp_path / "home"
    home.mkdir()
    empty_bin = tmp_path / "empty-bin"
    empty_bin.mkdir()
    return {
        "GVM_HOME": str(tmp_path / "gvm"),
        "HOME": str(home),
        "SHELL": "/bin/bash",
        "PATH": str(empty_bin),
        "GVM_DL_MIRROR": "",
    }


@pytest.fixture
def seeded(cli_env, tmp_path):
    """Two fake installations recorded in the state file."""
    gvm_home = tmp_path / "gvm"
    versions = gvm_home / "versions"
    state = InstallState(install_dir=str(versions))
    for version_id in ("go1.21.5", "go1.20.12"):
        bin_dir = versions / version_id / "bin"
        bin_dir.mkdir(parents=True)
        go = bin_dir / "go"
        go.write_text("#!/bin/sh\n", encoding="utf-8")
        go.chmod(0o755)
        state.add_record(
            InstallationRecord(version_id=version_id, install_path=str(versions / version_id))
        )
    StateStore(gvm_home / "config.json", str(versions), gvm_home / "gvm.lock").save(state)
    return gvm_home


@pytest.fixture
def fake_catalog(monkeypatch):
    releases = [
        ReleaseEntry(version_id="go1.22.1", is_stable=True),
        ReleaseEntry(version_id="go1.22rc2", is_stable=False),
        ReleaseEntry(version_id="go1.21.5", is_stable=True),
        ReleaseEntry(version_id="go1.18.10", is_stable=True),
    ]

    async def fetch_catalog(self):
        return releases

    monkeypatch.setattr(VersionManager, "fetch_catalog", fetch_catalog)
    return releases


def test_version_flag():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_list_without_installs(cli_env):
    result = runner.invoke(app, ["list"], env=cli_env)

    assert result.exit_code == 0
    assert "No versions installed" in result.stdout


@pytest.mark.skipif(os.name == "nt", reason="POSIX shims")
def test_use_then_current_and_list(cli_env, seeded):
    result = runner.invoke(app, ["use", "1.21.5"], env=cli_env)
    assert result.exit_code == 0, result.output
    assert "Now using Go go1.21.5" in result.stdout

    assert (seeded / "shims" / "go").is_symlink()
    profile = os.path.join(cli_env["HOME"], ".bash_profile")
    with open(profile, encoding="utf-8") as f:
        assert str(seeded / "shims") in f.read()

    current = runner.invoke(app, ["current"], env=cli_env)
    assert "go1.21.5" in current.stdout

    listed = runner.invoke(app, ["ls"], env=cli_env)
    lines = [line.strip() for line in listed.stdout.splitlines() if line.strip()]
    assert lines[0].startswith("* go1.21.5")
    assert lines[1].startswith("go1.20.12")


def test_use_unknown_version_fails(cli_env, seeded):
    result = runner.invoke(app, ["use", "9.9.9"], env=cli_env)

    assert result.exit_code == 1
    assert isinstance(result.exception, NotInstalledError)


@pytest.mark.skipif(os.name == "nt", reason="POSIX shims")
def test_uninstall_active_version_is_refused(cli_env, seeded):
    runner.invoke(app, ["use", "go1.21.5"], env=cli_env)

    result = runner.invoke(app, ["uninstall", "go1.21.5", "--force"], env=cli_env)

    assert isinstance(result.exception, ActiveVersionInUseError)
    assert (seeded / "versions" / "go1.21.5").exists()


def test_uninstall_after_confirmation(cli_env, seeded):
    result = runner.invoke(app, ["uninstall", "1.20.12"], input="y\n", env=cli_env)

    assert result.exit_code == 0, result.output
    assert "Successfully uninstalled Go go1.20.12" in result.stdout
    assert not (seeded / "versions" / "go1.20.12").exists()


def test_current_without_active_version(cli_env):
    result = runner.invoke(app, ["current"], env=cli_env)

    assert result.exit_code == 1
    assert "No Go version is active" in result.stdout


def test_config_init_and_show(cli_env, tmp_path):
    result = runner.invoke(app, ["config", "--init"], env=cli_env)
    assert result.exit_code == 0, result.output
    assert (tmp_path / "gvm" / "settings.ini").is_file()

    shown = runner.invoke(
        app, ["--mirror", "https://mirror.example.com", "config"], env=cli_env
    )
    assert shown.exit_code == 0, shown.output
    assert "https://mirror.example.com" in shown.stdout


def test_available_json(cli_env, fake_catalog):
    result = runner.invoke(app, ["available", "--json", "--stable", "--limit", "2"], env=cli_env)

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert [entry["version"] for entry in payload] == ["go1.22.1", "go1.21.5"]
    assert payload[0]["stable"] is True


def test_available_table(cli_env, fake_catalog):
    result = runner.invoke(app, ["available"], env=cli_env)

    assert result.exit_code == 0, result.output
    assert "CURRENT" in result.stdout
    assert "OLD STABLE" in result.stdout
    assert "go1.22rc2" in result.stdout
    assert "go1.18.10" in result.stdout


def test_install_unknown_version(cli_env, fake_catalog, tmp_path):
    result = runner.invoke(app, ["install", "9.9.9"], env=cli_env)

    assert result.exit_code == 1
    assert isinstance(result.exception, UnknownVersionError)
    assert not (tmp_path / "gvm" / "versions").exists()
