from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import ErrorKind
from .hook import Hook
from .models import ProjectLocation
from .probe import ToolProbe
from .step import CommandRunner, Step, command_failed, describe_failure, run_command

logger = logging.getLogger(__name__)


class RepositorySync:
    """Clone a repository, or fast-forward an existing checkout.

    A failed pull is not fatal: the existing checkout is assumed usable and
    the result carries a ``warning`` instead of an error.
    """

    def __init__(self, probe: ToolProbe, runner: Optional[CommandRunner] = None) -> None:
        self.probe = probe
        self.run_command = runner or run_command

    def _git(self, *args: str, cwd: Optional[Path] = None) -> Dict[str, Any]:
        git = self.probe.resolve("git") or "git"
        return self.run_command(
            [git, *args],
            cwd=str(cwd) if cwd else None,
            env=self.probe.environment(),
        )

    def _head(self, local_path: Path) -> Optional[str]:
        res = self._git("rev-parse", "HEAD", cwd=local_path)
        if command_failed(res):
            return None
        return (res.get("stdout") or "").strip() or None

    def sync(self, remote_url: str, local_path: Path) -> Dict[str, Any]:
        local_path = Path(local_path)
        if not local_path.exists():
            local_path.parent.mkdir(parents=True, exist_ok=True)
            res = self._git("clone", remote_url, str(local_path))
            if command_failed(res):
                return {
                    "status": "error",
                    "kind": ErrorKind.SYNC_FAILURE.value,
                    "error": describe_failure(["git", "clone", remote_url], res),
                    "path": str(local_path),
                }
            return {"status": "cloned", "path": str(local_path), "message": f"Cloned {remote_url} into {local_path}"}

        before = self._head(local_path)
        res = self._git("pull", cwd=local_path)
        if command_failed(res):
            warning = f"Could not update {local_path} ({describe_failure(['git', 'pull'], res)}); using existing checkout"
            logger.warning(warning)
            return {"status": "up_to_date", "path": str(local_path), "warning": warning, "degraded": True}

        after = self._head(local_path)
        if before is not None and before == after:
            return {"status": "up_to_date", "path": str(local_path), "message": "Repository already up to date"}
        return {"status": "updated", "path": str(local_path), "revision": after, "message": f"Updated {local_path}"}


class RepoSyncStep(Step):
    description = "Syncing repository"

    def __init__(self, location: ProjectLocation, sync: RepositorySync, hook: Optional[Hook] = None) -> None:
        super().__init__("repo", hook=hook)
        self.location = location
        self.syncer = sync

    def intent(self) -> str:
        return f"Syncing {self.location.repo_url} into {self.location.path}"

    def run(self) -> Dict[str, Any]:
        return self.syncer.sync(self.location.repo_url, self.location.path)
