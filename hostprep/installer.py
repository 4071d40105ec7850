from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import requests

from .errors import ErrorKind, ProvisionError
from .hook import Hook
from .models import InstallStrategy, ToolRequirement
from .platform import Platform
from .probe import ToolProbe
from .step import CommandRunner, Step, command_failed, describe_failure, run_command

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 60.0

# fetch(url) -> script bytes
ScriptFetcher = Callable[[str], bytes]


def fetch_script(url: str) -> bytes:
    """Download a vendor bootstrap script. Only HTTPS URLs are accepted."""
    if not url.lower().startswith("https://"):
        raise ProvisionError(ErrorKind.INSTALL_FAILURE, f"Refusing to fetch install script over insecure transport: {url}")
    try:
        resp = requests.get(url, timeout=DOWNLOAD_TIMEOUT)
        resp.raise_for_status()
    except requests.exceptions.RequestException as e:
        raise ProvisionError(ErrorKind.INSTALL_FAILURE, f"Failed to download {url}: {e}") from e
    return resp.content


def _default_is_root() -> bool:
    geteuid = getattr(os, "geteuid", None)
    return bool(geteuid and geteuid() == 0)


class ToolInstaller:
    """Install missing tools with the platform's package manager or vendor script.

    ``ensure`` is idempotent: a tool the probe already accepts is left alone
    and no installer command runs.
    """

    def __init__(
        self,
        platform: Platform,
        probe: ToolProbe,
        runner: Optional[CommandRunner] = None,
        fetch: Optional[ScriptFetcher] = None,
        is_root: Optional[bool] = None,
    ) -> None:
        self.platform = platform
        self.probe = probe
        self.run_command = runner or run_command
        self.fetch = fetch or fetch_script
        self.is_root = _default_is_root() if is_root is None else is_root

    def ensure(self, requirement: ToolRequirement) -> Dict[str, Any]:
        if self.probe.satisfies(requirement):
            return {
                "status": "already_present",
                "tool": requirement.name,
                "path": self.probe.resolve(requirement.executable),
                "message": f"{requirement.name} already installed",
            }

        strategy = requirement.strategy_for(self.platform)
        if strategy is None:
            return {
                "status": "error",
                "kind": ErrorKind.UNSUPPORTED_PLATFORM.value,
                "tool": requirement.name,
                "error": f"{requirement.name} is not installed and cannot be installed automatically on "
                f"{self.platform.value}; please install it manually",
            }

        logger.info("Installing %s on %s", requirement.name, self.platform.value)
        try:
            self._install(requirement, strategy)
        except ProvisionError as e:
            result = e.to_result()
            result["tool"] = requirement.name
            return result

        self.probe.add_paths(strategy.extra_paths)
        if not self.probe.satisfies(requirement):
            return {
                "status": "error",
                "kind": ErrorKind.INSTALL_FAILURE.value,
                "tool": requirement.name,
                "error": f"{requirement.name} is still unavailable after installation",
            }
        return {
            "status": "installed",
            "tool": requirement.name,
            "path": self.probe.resolve(requirement.executable),
            "message": f"{requirement.name} installed",
        }

    def _sudo_prefix(self, strategy: InstallStrategy, preserve_env: bool = False) -> List[str]:
        if not strategy.sudo or self.is_root or self.platform.is_windows:
            return []
        if not self.probe.is_available("sudo"):
            logger.warning("sudo not found; running privileged install commands as the current user")
            return []
        return ["sudo", "-E"] if preserve_env else ["sudo"]

    def _check(self, cmd: List[str], result: Dict[str, Any]) -> None:
        if command_failed(result):
            raise ProvisionError(ErrorKind.INSTALL_FAILURE, describe_failure(cmd, result))

    def _install(self, requirement: ToolRequirement, strategy: InstallStrategy) -> None:
        env = self.probe.environment()
        if strategy.script_url:
            content = self.fetch(strategy.script_url)
            with tempfile.TemporaryDirectory(prefix="hostprep-") as tmp:
                script = Path(tmp) / f"install-{requirement.name}.sh"
                script.write_bytes(content)
                cmd = (
                    self._sudo_prefix(strategy, preserve_env=True)
                    + list(strategy.script_interpreter)
                    + [str(script)]
                    + list(strategy.script_args)
                )
                self._check(cmd, self.run_command(cmd, env=env))
        for base in strategy.commands:
            cmd = self._sudo_prefix(strategy) + list(base)
            self._check(cmd, self.run_command(cmd, env=env))


class EnsureToolStep(Step):
    """Make sure one required tool is present, installing it if needed."""

    def __init__(self, requirement: ToolRequirement, installer: ToolInstaller, hook: Optional[Hook] = None) -> None:
        super().__init__(f"tool:{requirement.name}", hook=hook)
        self.requirement = requirement
        self.installer = installer

    def intent(self) -> str:
        return f"Checking for {self.requirement.name}"

    def run(self) -> Dict[str, Any]:
        return self.installer.ensure(self.requirement)
