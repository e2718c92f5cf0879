"""
Manages loading and validation of the optional INI settings file, layered with
environment and command-line overrides.
"""

import configparser
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from gvm_cli.exceptions import ConfigurationError
from gvm_cli.models.config import ManagerConfig

log = logging.getLogger(__name__)

DEFAULT_GVM_HOME = "~/.gvm"
HOME_ENV_VAR = "GVM_HOME"
MIRROR_ENV_VAR = "GVM_DL_MIRROR"

_FLOAT_KEYS = ("request_timeout", "retry_delay")
_BOOL_KEYS = ("shell_integration",)


def get_gvm_home(environ: Mapping[str, str] | None = None) -> Path:
    environ = os.environ if environ is None else environ
    return Path(environ.get(HOME_ENV_VAR) or DEFAULT_GVM_HOME).expanduser()


class ConfigManager:
    """Handles all operations related to the application's settings file."""

    def __init__(self, settings_path: Path, environ: Mapping[str, str] | None = None):
        self.settings_path = settings_path
        self.environ = os.environ if environ is None else environ
        self._parser = configparser.ConfigParser()

    @classmethod
    def default(cls, environ: Mapping[str, str] | None = None) -> "ConfigManager":
        return cls(get_gvm_home(environ) / "settings.ini", environ)

    def load_config(self, cli_options: dict[str, Any] | None = None) -> ManagerConfig:
        """
        Builds the configuration: defaults < settings file < environment < CLI.

        Args:
            cli_options: Options provided on the command line; None values are
                ignored.

        Returns:
            A validated ManagerConfig object.

        Raises:
            ConfigurationError: If the settings file is unreadable or a value is
            invalid.
        """
        settings: dict[str, Any] = {}
        if self.settings_path.is_file():
            try:
                self._parser.read(self.settings_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Error parsing settings file: {e}") from e
            settings.update(self._get_settings_as_dict())

        if mirror := self.environ.get(MIRROR_ENV_VAR, "").strip():
            settings["mirror"] = mirror

        if cli_options:
            settings.update({k: v for k, v in cli_options.items() if v is not None})

        try:
            return ManagerConfig(gvm_home=str(self.settings_path.parent), **settings)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_settings(self, settings: dict[str, Any]) -> None:
        """
        Writes a complete settings file, filling unspecified keys with defaults.

        Args:
            settings: A dictionary of settings to save.
        """
        defaults = ManagerConfig(gvm_home=str(self.settings_path.parent))
        config = configparser.ConfigParser()
        config["DEFAULT"] = {}

        for key in sorted(ManagerConfig.get_ini_keys()):
            value = settings.get(key, getattr(defaults, key))
            if isinstance(value, bool):
                config["DEFAULT"][key] = "true" if value else "false"
            elif value is not None:
                config["DEFAULT"][key] = str(value)

        try:
            self.settings_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.settings_path, "w", encoding="utf-8") as f:
                config.write(f)
        except OSError as e:
            raise ConfigurationError(f"Failed to save settings file: {e}") from e

    def _get_settings_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section into a dictionary of typed values."""
        section = self._parser["DEFAULT"]
        known_keys = ManagerConfig.get_ini_keys()
        settings: dict[str, Any] = {}

        for key in section:
            if key not in known_keys:
                log.warning(
                    f"[yellow]Ignoring unknown setting '{key}' in "
                    f"{self.settings_path}[/yellow]"
                )
                continue
            try:
                if key in _FLOAT_KEYS:
                    settings[key] = section.getfloat(key)
                elif key in _BOOL_KEYS:
                    settings[key] = section.getboolean(key)
                else:
                    settings[key] = section.get(key)
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid value for '{key}' in {self.settings_path}: {e}"
                ) from e
        return settings
