from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ErrorKind
from .hook import Hook
from .languages import CargoBuildStep, NpmInstallStep
from .probe import ToolProbe
from .step import CommandRunner, Step, command_failed, run_command

logger = logging.getLogger(__name__)


class ProjectBuilder:
    """Install JS dependencies, then build the crate in release mode.

    Both steps run inside ``project_path`` with the probe's search path and
    absolute tool locations. The first non-zero exit stops the build.
    """

    def __init__(self, probe: ToolProbe, runner: Optional[CommandRunner] = None, use_ci: bool = False) -> None:
        self.probe = probe
        self.run_command = runner or run_command
        self.use_ci = use_ci

    def steps(self, project_path: Path) -> List[Step]:
        cwd = str(project_path)
        env = self.probe.environment()
        return [
            NpmInstallStep(
                "npm-install",
                {"cwd": cwd, "npm": self.probe.resolve("npm") or "npm", "use_ci": self.use_ci, "env": env},
                runner=self.run_command,
            ),
            CargoBuildStep(
                "cargo-build",
                {"cwd": cwd, "cargo": self.probe.resolve("cargo") or "cargo", "release": True, "env": env},
                runner=self.run_command,
            ),
        ]

    def build(self, project_path: Path) -> Dict[str, Any]:
        completed: List[str] = []
        for step in self.steps(Path(project_path)):
            logger.info("Running %s in %s", step.id, project_path)
            res = step.run()
            if command_failed(res):
                detail = (res.get("stderr") or res.get("error") or "").strip()
                return {
                    "status": "error",
                    "kind": ErrorKind.BUILD_FAILURE.value,
                    "error": f"{res.get('executed_cmd', step.id)} failed"
                    + (f" (exit {res['returncode']})" if res.get("returncode") is not None else "")
                    + (f": {detail.splitlines()[-1]}" if detail else ""),
                    "failed_step": step.id,
                    "completed": completed,
                }
            completed.append(step.id)
        return {"status": "built", "path": str(project_path), "completed": completed, "message": "Build finished"}


class BuildStep(Step):
    description = "Building project"

    def __init__(self, project_path: Path, builder: ProjectBuilder, hook: Optional[Hook] = None) -> None:
        super().__init__("build", hook=hook)
        self.project_path = Path(project_path)
        self.builder = builder

    def intent(self) -> str:
        return f"Installing dependencies and building {self.project_path}"

    def run(self) -> Dict[str, Any]:
        return self.builder.build(self.project_path)
