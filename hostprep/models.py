from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

from .platform import Platform


@dataclass(frozen=True)
class InstallStrategy:
    """How to install a tool on one platform.

    - commands: argv lists run in order (each must exit 0)
    - script_url: optional vendor bootstrap script, fetched over HTTPS and run
      before ``commands``
    - script_interpreter: argv prefix used to run the downloaded script
    - script_args: extra arguments for the script
    - sudo: prefix package-manager commands with sudo when not root
    - extra_paths: user-local bin dirs the installer puts the tool in
    """

    commands: Tuple[Tuple[str, ...], ...] = ()
    script_url: Optional[str] = None
    script_interpreter: Tuple[str, ...] = ("sh",)
    script_args: Tuple[str, ...] = ()
    sudo: bool = False
    extra_paths: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ToolRequirement:
    name: str
    probe: Tuple[str, ...]
    strategies: Dict[Platform, InstallStrategy] = field(default_factory=dict)
    min_version: Optional[str] = None
    version_regex: Optional[str] = None

    @property
    def executable(self) -> str:
        return self.probe[0]

    def strategy_for(self, platform: Platform) -> Optional[InstallStrategy]:
        return self.strategies.get(platform)


@dataclass(frozen=True)
class ProjectLocation:
    repo_url: str
    install_base: Path
    path: Path

    @classmethod
    def resolve(cls, repo_url: str, install_base: Path, project_dir: Optional[str] = None, home: Optional[Path] = None) -> "ProjectLocation":
        """Build a location whose path never depends on the current directory."""
        home = home or Path.home()
        base = Path(install_base).expanduser()
        if not base.is_absolute():
            base = home / base
        name = project_dir or repo_name_from_url(repo_url)
        return cls(repo_url=repo_url, install_base=base, path=base / name)


@dataclass(frozen=True)
class ServiceDescriptor:
    name: str
    description: str
    working_directory: Path
    exec_path: Path
    search_path: str
    user: Optional[str] = None
    restart: str = "always"
    restart_sec: int = 5


def repo_name_from_url(url: str) -> str:
    tail = url.rstrip("/").rsplit("/", 1)[-1]
    tail = tail.rsplit(":", 1)[-1]
    if tail.endswith(".git"):
        tail = tail[: -len(".git")]
    return tail or "project"
