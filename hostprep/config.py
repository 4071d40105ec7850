"""Configuration management for hostprep."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .models import ProjectLocation

CONFIG_ENV_VAR = "HOSTPREP_CONFIG"
DEFAULT_CONFIG_NAME = ".hostprep.yaml"

DEFAULTS: dict[str, Any] = {
    "repo_url": "https://github.com/iPmartNetwork/Panelv2.git",
    "install_base": None,  # the user's home directory
    "project_dir": None,  # derived from repo_url
    "service_name": "panelv2",
    "service_description": "Panelv2 Service",
    "run_script": "dev",
    "restart_sec": 5,
    "node_min_version": None,
    "cargo_min_version": None,
    "npm_use_ci": False,
    "detach_when_unsupported": True,
}


def default_config_path(environ: Optional[Mapping[str, str]] = None, home: Optional[Path] = None) -> Path:
    environ = os.environ if environ is None else environ
    override = str(environ.get(CONFIG_ENV_VAR, "")).strip()
    if override:
        return Path(override).expanduser()
    return (home or Path.home()) / DEFAULT_CONFIG_NAME


class Config:
    """Provisioning settings read from an optional YAML file.

    Lookup order for a key: the file, then DEFAULTS. A missing file is not an
    error; the tool then provisions the default project.
    """

    def __init__(self, config_path: Optional[Path] = None, home: Optional[Path] = None):
        self.home = home or Path.home()
        self.config_path = config_path or default_config_path(home=self.home)
        self._data: dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        """Load configuration from file."""
        if not self.config_path.exists():
            self._data = {}
            return
        try:
            with open(self.config_path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise RuntimeError(f"Failed to load config from {self.config_path}: {e}") from e
        if not isinstance(data, dict):
            raise RuntimeError(f"Failed to load config from {self.config_path}: expected a mapping")
        self._data = data

    def get(self, key: str, default: Any = None) -> Any:
        value = self._data.get(key)
        if value is not None:
            return value
        if default is not None:
            return default
        return DEFAULTS.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    @property
    def repo_url(self) -> str:
        return str(self.get("repo_url"))

    @property
    def install_base(self) -> Path:
        """Base directory for the checkout; relative values are taken from $HOME."""
        raw = self.get("install_base")
        return Path(raw) if raw else self.home

    @property
    def service_name(self) -> str:
        return str(self.get("service_name"))

    @property
    def service_description(self) -> str:
        return str(self.get("service_description"))

    @property
    def run_script(self) -> str:
        return str(self.get("run_script"))

    @property
    def restart_sec(self) -> int:
        return int(self.get("restart_sec"))

    @property
    def node_min_version(self) -> Optional[str]:
        value = self.get("node_min_version")
        return str(value) if value else None

    @property
    def cargo_min_version(self) -> Optional[str]:
        value = self.get("cargo_min_version")
        return str(value) if value else None

    @property
    def npm_use_ci(self) -> bool:
        return bool(self.get("npm_use_ci"))

    @property
    def detach_when_unsupported(self) -> bool:
        return bool(self.get("detach_when_unsupported"))

    def project_location(self) -> ProjectLocation:
        return ProjectLocation.resolve(
            self.repo_url,
            self.install_base,
            project_dir=self.get("project_dir"),
            home=self.home,
        )
