"""Tool presence and version checks.

ToolProbe owns the command-search path used for every lookup and child
process. It starts from the inherited PATH plus the user-local toolchain
directories and can be refreshed after an installer has changed PATH on
disk (rustup's ``~/.cargo/bin``, the Windows registry) without the running
process having seen it.
"""
from __future__ import annotations

import logging
import os
import re
import shutil
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional

from .models import ToolRequirement
from .platform import Platform
from .step import CommandRunner, run_command

logger = logging.getLogger(__name__)

USER_LOCAL_BIN_DIRS = (".cargo/bin",)

_VERSION_RE = re.compile(r"\b(\d+\.\d+(?:\.\d+)*)\b")


def parse_version(text: str, pattern: Optional[str] = None) -> Optional[str]:
    if pattern:
        m = re.search(pattern, text)
        return m.group(1) if m else None
    m = _VERSION_RE.search(text)
    return m.group(1) if m else None


def version_tuple(s: str) -> List[int]:
    return [int(p) for p in re.split(r"[._-]", s) if p.isdigit()]


def _windows_registry_path() -> List[str]:
    """PATH entries as currently stored in the registry (machine, then user)."""
    import winreg

    entries: List[str] = []
    keys = [
        (winreg.HKEY_LOCAL_MACHINE, r"SYSTEM\CurrentControlSet\Control\Session Manager\Environment"),
        (winreg.HKEY_CURRENT_USER, r"Environment"),
    ]
    for root, sub in keys:
        try:
            with winreg.OpenKey(root, sub) as key:
                value, _ = winreg.QueryValueEx(key, "Path")
        except OSError:
            continue
        entries.extend(os.path.expandvars(p) for p in str(value).split(os.pathsep) if p)
    return entries


class ToolProbe:
    """Answer "is this tool usable?" without raising for absent tools."""

    def __init__(
        self,
        platform: Platform,
        home: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        runner: Optional[CommandRunner] = None,
    ) -> None:
        self.platform = platform
        self.home = home or Path.home()
        self._environ = environ if environ is not None else os.environ
        self.run_command = runner or run_command
        self._extra: List[str] = []
        self._entries: List[str] = []
        self.refresh()

    # Search path

    @property
    def user_local_dirs(self) -> List[str]:
        return [str(self.home / d) for d in USER_LOCAL_BIN_DIRS]

    @property
    def search_path(self) -> str:
        return os.pathsep.join(self._entries)

    def add_paths(self, paths: Iterable[str]) -> None:
        for p in paths:
            expanded = str(Path(os.path.expandvars(p)).expanduser())
            if expanded not in self._extra:
                self._extra.append(expanded)
        self.refresh()

    def refresh(self) -> str:
        """Re-read the command-search path from the environment (and registry on Windows)."""
        inherited = [p for p in self._environ.get("PATH", "").split(os.pathsep) if p]
        if self.platform.is_windows:
            try:
                inherited += _windows_registry_path()
            except ImportError:
                logger.debug("winreg unavailable; using inherited PATH only")
        entries: List[str] = []
        for p in self.user_local_dirs + self._extra + inherited:
            if p not in entries:
                entries.append(p)
        self._entries = entries
        logger.debug("Search path: %s", self.search_path)
        return self.search_path

    def environment(self) -> Dict[str, str]:
        """A copy of the inherited environment with PATH replaced by the search path.

        On POSIX, HOME is pinned to the probe's home so per-user installers
        (rustup) land where the search path looks for them.
        """
        env = dict(self._environ)
        env["PATH"] = self.search_path
        if not self.platform.is_windows:
            env["HOME"] = str(self.home)
        return env

    # Lookups

    def resolve(self, name: str) -> Optional[str]:
        try:
            return shutil.which(name, path=self.search_path)
        except OSError as e:
            logger.debug("Lookup of %s failed: %s", name, e)
            return None

    def is_available(self, name: str) -> bool:
        return self.resolve(name) is not None

    def version(self, requirement: ToolRequirement) -> Optional[str]:
        exe = self.resolve(requirement.executable)
        if not exe:
            return None
        cmd = [exe] + list(requirement.probe[1:])
        res = self.run_command(cmd, env=self.environment())
        out = (res.get("stdout") or "") + "\n" + (res.get("stderr") or "")
        return parse_version(out, requirement.version_regex)

    def satisfies(self, requirement: ToolRequirement) -> bool:
        """Present on the search path and, if required, at or above min_version."""
        if not self.is_available(requirement.executable):
            return False
        if not requirement.min_version:
            return True
        found = self.version(requirement)
        if not found:
            logger.warning("Could not determine %s version", requirement.name)
            return False
        ok = version_tuple(found) >= version_tuple(requirement.min_version)
        if not ok:
            logger.info("%s %s is below required %s", requirement.name, found, requirement.min_version)
        return ok
