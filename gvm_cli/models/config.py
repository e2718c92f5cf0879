"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

DEFAULT_BASE_URL = "https://go.dev"
FALLBACK_BASE_URL = "https://golang.google.cn"
DEFAULT_CATALOG_PATH = "/dl/?mode=json"


class ManagerConfig(BaseModel):
    """A validated configuration model for the version manager."""

    model_config = ConfigDict(str_strip_whitespace=True)

    # Locations
    gvm_home: str
    install_dir: str = ""
    shims_dir: str = ""

    # Network
    mirror: str = DEFAULT_BASE_URL
    fallback_mirror: str = FALLBACK_BASE_URL
    catalog_path: str = DEFAULT_CATALOG_PATH
    request_timeout: float = 30.0
    retry_delay: float = 0.5
    max_attempts: int = 3

    # Activation
    shell_integration: bool = True

    # Target platform ("" means detect from the running interpreter)
    target_os: str = ""
    target_arch: str = ""

    # Runtime layout
    version_prefix: str = "go"
    archive_root: str = "go"
    entrypoint: str = "go"
    marker_file: str = "VERSION"

    @model_validator(mode="before")
    @classmethod
    def fill_derived_dirs(cls, data: Any) -> Any:
        """Places the install and shim directories under ``gvm_home`` by default."""
        if isinstance(data, dict) and data.get("gvm_home"):
            home = Path(str(data["gvm_home"])).expanduser()
            if not data.get("install_dir"):
                data["install_dir"] = str(home / "versions")
            if not data.get("shims_dir"):
                data["shims_dir"] = str(home / "shims")
        return data

    @field_validator("gvm_home", "install_dir", "shims_dir")
    @classmethod
    def expand_path(cls, v: str) -> str:
        if not v:
            raise ValueError("Directory settings cannot be empty.")
        return str(Path(v).expanduser().absolute())

    @field_validator("mirror", "fallback_mirror")
    @classmethod
    def validate_mirror(cls, v: str) -> str:
        """Ensures mirrors are http(s) base URLs without a trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Mirror must be an http(s) URL, got: {v!r}")
        return v.rstrip("/")

    @field_validator("catalog_path")
    @classmethod
    def validate_catalog_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("Catalog path must start with '/'.")
        return v

    @field_validator("request_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Request timeout must be positive.")
        return v

    @field_validator("retry_delay")
    @classmethod
    def validate_retry_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Retry delay cannot be negative.")
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Max attempts must be between 1 and 10.")
        return v

    @property
    def state_file(self) -> Path:
        return Path(self.gvm_home) / "config.json"

    @property
    def settings_file(self) -> Path:
        return Path(self.gvm_home) / "settings.ini"

    @property
    def lock_file(self) -> Path:
        return Path(self.gvm_home) / "gvm.lock"

    @property
    def downloads_dir(self) -> Path:
        return Path(self.gvm_home) / "downloads"

    @property
    def logs_dir(self) -> Path:
        return Path(self.gvm_home) / "logs"

    def base_urls(self) -> list[str]:
        """Primary base first, then the fallback mirror, without duplicates."""
        return list(dict.fromkeys([self.mirror, self.fallback_mirror]))

    def normalize_version(self, version: str) -> str:
        """Adds the version prefix when missing ('1.21.5' -> 'go1.21.5')."""
        version = version.strip()
        if self.version_prefix and not version.startswith(self.version_prefix):
            return f"{self.version_prefix}{version}"
        return version

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns the keys that may be set in the settings file."""
        return {
            "mirror",
            "install_dir",
            "shims_dir",
            "request_timeout",
            "retry_delay",
            "shell_integration",
        }
