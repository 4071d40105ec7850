"""Host platform detection.

The platform is resolved once at startup and handed to every component that
behaves differently per OS, instead of re-checking ``sys.platform`` at each
call site.
"""
from __future__ import annotations

import sys
from enum import Enum
from typing import Optional


class Platform(str, Enum):
    LINUX_SYSTEMD = "linux-systemd"
    WINDOWS_SCM = "windows-scm"
    MACOS = "macos"
    UNSUPPORTED = "unsupported"

    @property
    def is_windows(self) -> bool:
        return self is Platform.WINDOWS_SCM

    @property
    def has_service_manager(self) -> bool:
        """True when a ServiceRegistrar variant other than Unsupported applies."""
        return self in (Platform.LINUX_SYSTEMD, Platform.WINDOWS_SCM)


def detect_platform(system: Optional[str] = None) -> Platform:
    """Map a ``sys.platform`` style identifier onto a Platform."""
    name = (system if system is not None else sys.platform).lower()
    if name.startswith("linux"):
        return Platform.LINUX_SYSTEMD
    if name.startswith("win") or name == "cygwin":
        return Platform.WINDOWS_SCM
    if name == "darwin":
        return Platform.MACOS
    return Platform.UNSUPPORTED
