"""Tests for shim maintenance."""

import os

import pytest

from gvm_cli.core.activation import ActivationManager
from gvm_cli.core.shell import ShellIntegrator
from gvm_cli.exceptions import NotInstalledError
from gvm_cli.models.state import InstallationRecord

pytestmark = pytest.mark.skipif(os.name == "nt", reason="POSIX symlink shims")


def _fake_install(install_dir, version_id, binaries=("go", "gofmt"), suffix=""):
    bin_dir = install_dir / version_id / "bin"
    bin_dir.mkdir(parents=True)
    for name in binaries:
        path = bin_dir / f"{name}{suffix}"
        path.write_text("#!/bin/sh\n", encoding="utf-8")
        path.chmod(0o755)
    (bin_dir / "README").write_text("not executable\n", encoding="utf-8")
    return InstallationRecord(version_id=version_id, install_path=str(install_dir / version_id))


@pytest.fixture
def dirs(tmp_path):
    return tmp_path / "shims", tmp_path / "versions"


def test_activate_links_every_executable(dirs):
    shims, versions = dirs
    record = _fake_install(versions, "go1.21.5")
    activation = ActivationManager(shims, versions, "go", target_os="linux")

    shim = activation.activate(record)

    assert shim == shims / "go"
    assert os.readlink(shims / "go") == str(versions / "go1.21.5" / "bin" / "go")
    assert (shims / "gofmt").is_symlink()
    assert not (shims / "README").exists()
    assert activation.shim_target() == versions / "go1.21.5" / "bin" / "go"


def test_activate_twice_is_idempotent(dirs):
    shims, versions = dirs
    record = _fake_install(versions, "go1.21.5")
    activation = ActivationManager(shims, versions, "go", target_os="linux")

    activation.activate(record)
    before = {p.name: os.readlink(p) for p in shims.iterdir()}
    activation.activate(record)
    after = {p.name: os.readlink(p) for p in shims.iterdir()}

    assert before == after


def test_switching_versions_drops_stale_shims(dirs):
    shims, versions = dirs
    old = _fake_install(versions, "go1.21.5")
    new = _fake_install(versions, "go1.22.0", binaries=("go",))
    activation = ActivationManager(shims, versions, "go", target_os="linux")

    activation.activate(old)
    activation.activate(new)

    assert sorted(p.name for p in shims.iterdir()) == ["go"]
    assert activation.shim_target() == versions / "go1.22.0" / "bin" / "go"


def test_foreign_files_in_shims_dir_are_kept(dirs):
    shims, versions = dirs
    shims.mkdir()
    (shims / "my-script").write_text("#!/bin/sh\n", encoding="utf-8")
    activation = ActivationManager(shims, versions, "go", target_os="linux")

    activation.activate(_fake_install(versions, "go1.21.5"))

    assert (shims / "my-script").exists()


def test_missing_entrypoint_is_not_installed(dirs):
    shims, versions = dirs
    record = InstallationRecord(version_id="go1.21.5", install_path=str(versions / "go1.21.5"))
    activation = ActivationManager(shims, versions, "go", target_os="linux")

    with pytest.raises(NotInstalledError):
        activation.activate(record)

    assert not shims.exists()


def test_activate_updates_shell_startup_file(dirs, tmp_path):
    shims, versions = dirs
    home = tmp_path / "home"
    home.mkdir()
    shell = ShellIntegrator(tmp_path, environ={"SHELL": "/bin/zsh"}, home=home, target_os="linux")
    activation = ActivationManager(shims, versions, "go", shell=shell, target_os="linux")

    activation.activate(_fake_install(versions, "go1.21.5"))

    assert str(shims) in (home / ".zshrc").read_text(encoding="utf-8")


def test_windows_dispatch_scripts(dirs):
    shims, versions = dirs
    record = _fake_install(versions, "go1.21.5", suffix=".exe")
    activation = ActivationManager(shims, versions, "go", target_os="windows")

    shim = activation.activate(record)
    content = shim.read_bytes()
    activation.activate(record)

    target = versions / "go1.21.5" / "bin" / "go.exe"
    assert shim == shims / "go.cmd"
    assert content == f'@echo off\r\n@"{target}" %*\r\n'.encode()
    assert shim.read_bytes() == content
    assert (shims / "gofmt.cmd").exists()
    assert activation.shim_target() == target


def test_windows_switch_keeps_foreign_dispatch_scripts(dirs):
    shims, versions = dirs
    old = _fake_install(versions, "go1.21.5", binaries=("go", "gofmt", "vet"), suffix=".exe")
    new = _fake_install(versions, "go1.22.0", suffix=".exe")
    activation = ActivationManager(shims, versions, "go", target_os="windows")
    activation.activate(old)
    foreign = shims / "node.cmd"
    foreign.write_text('@echo off\r\n@"C:\\nodejs\\node.exe" %*\r\n', encoding="utf-8")

    activation.activate(new)

    assert not (shims / "vet.cmd").exists()
    assert foreign.exists()
    assert activation.shim_target() == versions / "go1.22.0" / "bin" / "go.exe"
