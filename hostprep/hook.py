from __future__ import annotations

import logging
from abc import ABC
from typing import Any, Dict, List, Optional, Tuple

from rich.console import Console

logger = logging.getLogger(__name__)

_SUCCESS_STYLE = "green"
_WARN_STYLE = "yellow"
_ERROR_STYLE = "red"


class Hook(ABC):
    """Base Hook with no-op defaults.

    Hooks observe provisioning. The Runner calls them around every step;
    hook failures are logged and never stop provisioning.
    """

    def on_run_start(self, runner: Any) -> None:  # noqa: D401
        return None

    def on_run_end(self, runner: Any, results: Dict[str, Dict[str, Any]]) -> None:  # noqa: D401
        return None

    def on_step_start(self, step: Any) -> None:  # noqa: D401
        return None

    def on_step_end(self, step: Any, result: Dict[str, Any]) -> None:  # noqa: D401
        return None

    def on_error(self, scope: str, error: Exception) -> None:  # noqa: D401
        return None


class ConsoleHook(Hook):
    """Print each stage's intent before it runs and its outcome after."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()

    def on_step_start(self, step: Any) -> None:
        self.console.print(f"[bold]→[/bold] {step.intent()}...")

    def on_step_end(self, step: Any, result: Dict[str, Any]) -> None:
        status = result.get("status", "unknown")
        if status == "error":
            self.console.print(f"  [{_ERROR_STYLE}]✗ {step.id}: {result.get('error', 'failed')}[/{_ERROR_STYLE}]")
            return
        summary = result.get("message") or status.replace("_", " ")
        self.console.print(f"  [{_SUCCESS_STYLE}]✓[/{_SUCCESS_STYLE}] {summary}")
        warning = result.get("warning")
        if warning:
            self.console.print(f"  [{_WARN_STYLE}]! {warning}[/{_WARN_STYLE}]")

    def on_run_end(self, runner: Any, results: Dict[str, Dict[str, Any]]) -> None:
        failed = [sid for sid, res in results.items() if res.get("status") == "error"]
        if failed:
            self.console.print(f"[{_ERROR_STYLE}]Provisioning stopped at '{failed[-1]}'.[/{_ERROR_STYLE}]")
        else:
            self.console.print(f"[{_SUCCESS_STYLE}]Provisioning complete.[/{_SUCCESS_STYLE}]")

    def on_error(self, scope: str, error: Exception) -> None:
        self.console.print(f"[{_ERROR_STYLE}]Unexpected error in {scope}: {error}[/{_ERROR_STYLE}]")


class RecordingHook(Hook):
    """Collect (event, step_id, status) tuples; used to assert ordering."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, Optional[str], Optional[str]]] = []

    def on_step_start(self, step: Any) -> None:
        self.events.append(("start", step.id, None))

    def on_step_end(self, step: Any, result: Dict[str, Any]) -> None:
        self.events.append(("end", step.id, result.get("status")))

    def on_error(self, scope: str, error: Exception) -> None:
        self.events.append(("error", scope, str(error)))


def call_hook(hook: Optional[Hook], method: str, *args: Any) -> None:
    if hook is None:
        return
    try:
        getattr(hook, method)(*args)
    except Exception:  # noqa: BLE001
        logger.exception("Hook %s.%s failed", type(hook).__name__, method)
