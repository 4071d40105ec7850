"""Start script generation and detached launch.

The start script is what every supervisor runs: it carries the full command
search path and absolute project directory, so it works from a service
manager's near-empty environment.
"""
from __future__ import annotations

import logging
import shlex
import subprocess
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .errors import ErrorKind
from .hook import Hook
from .platform import Platform
from .probe import ToolProbe
from .step import Step

logger = logging.getLogger(__name__)

POSIX_SCRIPT_NAME = "hostprep-start.sh"
WINDOWS_SCRIPT_NAME = "hostprep-start.bat"
DETACHED_LOG_NAME = "hostprep.log"
HEADER = "Generated by hostprep; rewritten on every run."


def start_script_path(project_path: Path, platform: Platform) -> Path:
    return Path(project_path) / (WINDOWS_SCRIPT_NAME if platform.is_windows else POSIX_SCRIPT_NAME)


def atomic_write_text(target_path: Path, content: str, newline: str = "\n") -> None:
    target_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = target_path.with_name(f".{target_path.name}.tmp-{uuid.uuid4().hex}")
    try:
        with open(temp_path, "w", encoding="utf-8", newline=newline) as fh:
            fh.write(content)
        temp_path.replace(target_path)
    finally:
        if temp_path.exists():
            temp_path.unlink()


class LaunchScriptWriter:
    """Render and write the project's start script."""

    def __init__(self, platform: Platform, run_script: str = "dev") -> None:
        self.platform = platform
        self.run_script = run_script

    def render(self, project_path: Path, npm: str, search_path: str) -> str:
        project = str(Path(project_path))
        if self.platform.is_windows:
            return "\n".join(
                [
                    "@echo off",
                    f"rem {HEADER}",
                    f'set "PATH={search_path}"',
                    f'cd /d "{project}" || exit /b 1',
                    f'call "{npm}" run {self.run_script}',
                    "",
                ]
            )
        return "\n".join(
            [
                "#!/bin/sh",
                f"# {HEADER}",
                f"PATH={shlex.quote(search_path)}",
                "export PATH",
                f"cd {shlex.quote(project)} || exit 1",
                f"exec {shlex.quote(npm)} run {shlex.quote(self.run_script)}",
                "",
            ]
        )

    def write(self, project_path: Path, npm: str, search_path: str) -> Path:
        """Write (overwrite) the start script and mark it executable."""
        target = start_script_path(project_path, self.platform)
        content = self.render(project_path, npm, search_path)
        atomic_write_text(target, content, newline="\r\n" if self.platform.is_windows else "\n")
        if not self.platform.is_windows:
            target.chmod(target.stat().st_mode | 0o755)
        logger.info("Wrote start script %s", target)
        return target


class LaunchScriptStep(Step):
    description = "Writing start script"

    def __init__(self, project_path: Path, writer: LaunchScriptWriter, probe: ToolProbe, hook: Optional[Hook] = None) -> None:
        super().__init__("start-script", hook=hook)
        self.project_path = Path(project_path)
        self.writer = writer
        self.probe = probe

    def run(self) -> Dict[str, Any]:
        npm = self.probe.resolve("npm") or "npm"
        try:
            path = self.writer.write(self.project_path, npm, self.probe.search_path)
        except OSError as e:
            return {"status": "error", "kind": ErrorKind.IO_ERROR.value, "error": f"Could not write start script: {e}"}
        return {"status": "written", "path": str(path), "message": f"Start script written to {path}"}


def launch_detached(script: Path, platform: Platform, log_path: Optional[Path] = None) -> int:
    """Spawn ``script`` outside this process's lifetime and return its pid.

    The child gets its own session (process group on Windows) and no handle
    to it is kept, so hostprep can exit while the application keeps running.
    """
    script = Path(script)
    log_path = log_path or script.parent / DETACHED_LOG_NAME
    kwargs: Dict[str, Any] = {"cwd": str(script.parent), "stdin": subprocess.DEVNULL}
    if platform.is_windows:
        cmd = ["cmd.exe", "/c", str(script)]
        kwargs["creationflags"] = getattr(subprocess, "DETACHED_PROCESS", 0) | getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)
    else:
        cmd = [str(script)]
        kwargs["start_new_session"] = True
    with open(log_path, "ab") as log:
        proc = subprocess.Popen(cmd, stdout=log, stderr=subprocess.STDOUT, **kwargs)
    pid = proc.pid
    logger.info("Launched %s detached (pid %s), output in %s", script, pid, log_path)
    return pid


class HandoffStep(Step):
    """Start the application in the background when no service manager is used."""

    description = "Starting application in the background"

    def __init__(
        self,
        project_path: Path,
        platform: Platform,
        spawn: Optional[Callable[[Path, Platform], int]] = None,
        hook: Optional[Hook] = None,
    ) -> None:
        super().__init__("handoff", hook=hook)
        self.project_path = Path(project_path)
        self.platform = platform
        self.spawn = spawn or launch_detached

    def run(self) -> Dict[str, Any]:
        script = start_script_path(self.project_path, self.platform)
        try:
            pid = self.spawn(script, self.platform)
        except OSError as e:
            return {
                "status": "skipped",
                "warning": f"Could not start {script} in the background ({e}); run it manually",
            }
        return {"status": "detached", "pid": pid, "message": f"Application started in the background (pid {pid})"}
