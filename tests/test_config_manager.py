"""Tests for layered settings: defaults, settings.ini, environment, CLI."""

import configparser
import logging
from pathlib import Path

import pytest

from gvm_cli.exceptions import ConfigurationError
from gvm_cli.models.config import DEFAULT_BASE_URL, FALLBACK_BASE_URL, ManagerConfig
from gvm_cli.storage.config_manager import ConfigManager


def _write_settings(path: Path, **values: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = ["[DEFAULT]"] + [f"{k} = {v}" for k, v in values.items()]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def test_defaults_live_under_gvm_home(tmp_path):
    config = ConfigManager(tmp_path / "settings.ini", environ={}).load_config()

    assert config.mirror == DEFAULT_BASE_URL
    assert config.base_urls() == [DEFAULT_BASE_URL, FALLBACK_BASE_URL]
    assert Path(config.install_dir) == tmp_path / "versions"
    assert Path(config.shims_dir) == tmp_path / "shims"
    assert config.state_file == tmp_path / "config.json"


def test_settings_file_values_are_typed(tmp_path):
    settings = tmp_path / "settings.ini"
    _write_settings(
        settings,
        mirror="https://mirror.example.com/",
        request_timeout="12.5",
        shell_integration="no",
    )

    config = ConfigManager(settings, environ={}).load_config()

    assert config.mirror == "https://mirror.example.com"
    assert config.request_timeout == 12.5
    assert config.shell_integration is False


def test_environment_mirror_beats_settings_file(tmp_path):
    settings = tmp_path / "settings.ini"
    _write_settings(settings, mirror="https://from-file.example.com")

    environ = {"GVM_DL_MIRROR": "https://from-env.example.com"}
    config = ConfigManager(settings, environ=environ).load_config()

    assert config.mirror == "https://from-env.example.com"


def test_cli_option_beats_environment(tmp_path):
    environ = {"GVM_DL_MIRROR": "https://from-env.example.com"}
    manager = ConfigManager(tmp_path / "settings.ini", environ=environ)

    config = manager.load_config({"mirror": "https://from-cli.example.com", "retry_delay": None})

    assert config.mirror == "https://from-cli.example.com"
    assert config.retry_delay == 0.5


@pytest.mark.parametrize(
    "key, value",
    [("mirror", "ftp://mirror.example.com"), ("request_timeout", "0"), ("retry_delay", "soon")],
)
def test_invalid_values_raise(tmp_path, key, value):
    settings = tmp_path / "settings.ini"
    _write_settings(settings, **{key: value})

    with pytest.raises(ConfigurationError):
        ConfigManager(settings, environ={}).load_config()


def test_unknown_keys_are_ignored_with_warning(tmp_path, caplog):
    settings = tmp_path / "settings.ini"
    _write_settings(settings, colour="blue")

    with caplog.at_level(logging.WARNING):
        config = ConfigManager(settings, environ={}).load_config()

    assert config.mirror == DEFAULT_BASE_URL
    assert "colour" in caplog.text


def test_save_settings_writes_every_key(tmp_path):
    settings = tmp_path / "home" / "settings.ini"
    manager = ConfigManager(settings, environ={})

    manager.save_settings({"retry_delay": 2.0})

    parser = configparser.ConfigParser()
    parser.read(settings, encoding="utf-8")
    assert set(parser["DEFAULT"]) == ManagerConfig.get_ini_keys()
    assert parser["DEFAULT"]["retry_delay"] == "2.0"
    assert parser["DEFAULT"]["shell_integration"] == "true"
    assert manager.load_config().retry_delay == 2.0


def test_gvm_home_environment_relocates_everything(tmp_path):
    environ = {"GVM_HOME": str(tmp_path / "elsewhere")}

    manager = ConfigManager.default(environ)
    config = manager.load_config()

    assert manager.settings_path == tmp_path / "elsewhere" / "settings.ini"
    assert Path(config.gvm_home) == tmp_path / "elsewhere"
    assert config.lock_file == tmp_path / "elsewhere" / "gvm.lock"


def test_normalize_version_adds_prefix_once(tmp_path):
    config = ConfigManager(tmp_path / "settings.ini", environ={}).load_config()

    assert config.normalize_version("1.21.5") == "go1.21.5"
    assert config.normalize_version(" go1.21.5 ") == "go1.21.5"
