from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    MISSING_PREREQUISITE = "missing_prerequisite"
    UNSUPPORTED_PLATFORM = "unsupported_platform"
    INSTALL_FAILURE = "install_failure"
    SYNC_FAILURE = "sync_failure"
    BUILD_FAILURE = "build_failure"
    IO_ERROR = "io_error"
    REGISTRATION_FAILURE = "registration_failure"


class ProvisionError(RuntimeError):
    """Raised by components for a failure that should stop provisioning."""

    def __init__(self, kind: ErrorKind, message: str, details: Optional[Dict[str, Any]] = None):
        self.kind = kind
        self.message = message
        self.details = details or {}
        super().__init__(f"{kind.value}: {message}")

    def to_result(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"status": "error", "kind": self.kind.value, "error": self.message}
        result.update(self.details)
        return result
