"""Catalog of the toolchains the provisioned project needs."""
from __future__ import annotations

from typing import List, Optional

from .models import InstallStrategy, ToolRequirement
from .platform import Platform

NODESOURCE_SETUP_URL = "https://deb.nodesource.com/setup_lts.x"
RUSTUP_INIT_URL = "https://sh.rustup.rs"

_WINGET_FLAGS = ("-e", "--silent", "--accept-package-agreements", "--accept-source-agreements")


def _winget(package_id: str) -> InstallStrategy:
    return InstallStrategy(commands=(("winget", "install", "--id", package_id) + _WINGET_FLAGS,))


_RUSTUP = InstallStrategy(
    script_url=RUSTUP_INIT_URL,
    script_interpreter=("sh",),
    script_args=("-y",),
    extra_paths=("~/.cargo/bin",),
)

GIT = ToolRequirement(
    name="git",
    probe=("git", "--version"),
    strategies={
        Platform.LINUX_SYSTEMD: InstallStrategy(
            commands=(("apt-get", "update"), ("apt-get", "install", "-y", "git")),
            sudo=True,
        ),
        Platform.MACOS: InstallStrategy(commands=(("brew", "install", "git"),)),
        Platform.WINDOWS_SCM: _winget("Git.Git"),
    },
)

NODE = ToolRequirement(
    name="node",
    probe=("node", "--version"),
    strategies={
        Platform.LINUX_SYSTEMD: InstallStrategy(
            script_url=NODESOURCE_SETUP_URL,
            script_interpreter=("bash",),
            commands=(("apt-get", "install", "-y", "nodejs"),),
            sudo=True,
        ),
        Platform.MACOS: InstallStrategy(commands=(("brew", "install", "node"),)),
        Platform.WINDOWS_SCM: _winget("OpenJS.NodeJS.LTS"),
    },
    version_regex=r"v?(\d+\.\d+\.\d+)",
)

CARGO = ToolRequirement(
    name="cargo",
    probe=("cargo", "--version"),
    strategies={
        Platform.LINUX_SYSTEMD: _RUSTUP,
        Platform.MACOS: _RUSTUP,
        Platform.WINDOWS_SCM: InstallStrategy(
            commands=_winget("Rustlang.Rustup").commands,
            extra_paths=("~/.cargo/bin",),
        ),
    },
)


def with_min_version(req: ToolRequirement, min_version: Optional[str]) -> ToolRequirement:
    if not min_version:
        return req
    return ToolRequirement(
        name=req.name,
        probe=req.probe,
        strategies=req.strategies,
        min_version=str(min_version),
        version_regex=req.version_regex,
    )


def default_requirements(node_min_version: Optional[str] = None, cargo_min_version: Optional[str] = None) -> List[ToolRequirement]:
    """git, node and cargo, in install order."""
    return [
        GIT,
        with_min_version(NODE, node_min_version),
        with_min_version(CARGO, cargo_min_version),
    ]
