from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from .build import BuildStep, ProjectBuilder
from .config import Config
from .hook import Hook
from .installer import EnsureToolStep, ScriptFetcher, ToolInstaller
from .launch import HandoffStep, LaunchScriptStep, LaunchScriptWriter
from .models import ProjectLocation, ToolRequirement
from .platform import Platform
from .probe import ToolProbe
from .repo import RepoSyncStep, RepositorySync
from .runner import Runner
from .service import ServiceRegistrar, ServiceStep, invoking_user, registrar_for
from .step import CommandRunner, Step
from .tools import default_requirements

logger = logging.getLogger(__name__)


class Provisioner:
    """Assemble and run the provisioning sequence.

    tools -> repository -> build -> start script -> service (-> handoff)

    Every collaborator can be injected; by default they are built from the
    config and platform and share one ToolProbe, so a PATH change picked up
    after an install is seen by all later stages.
    """

    def __init__(
        self,
        config: Config,
        platform: Platform,
        hook: Optional[Hook] = None,
        runner: Optional[CommandRunner] = None,
        probe: Optional[ToolProbe] = None,
        installer: Optional[ToolInstaller] = None,
        registrar: Optional[ServiceRegistrar] = None,
        requirements: Optional[List[ToolRequirement]] = None,
        fetch: Optional[ScriptFetcher] = None,
        spawn: Optional[Callable[[Path, Platform], int]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.config = config
        self.platform = platform
        self.hook = hook
        self.run_command = runner
        self.probe = probe or ToolProbe(platform, home=config.home, environ=environ, runner=runner)
        self.installer = installer or ToolInstaller(platform, self.probe, runner=runner, fetch=fetch)
        self.registrar = registrar or registrar_for(platform, self.probe, runner)
        self.requirements = requirements or default_requirements(
            node_min_version=config.node_min_version,
            cargo_min_version=config.cargo_min_version,
        )
        self.spawn = spawn
        self.environ = environ
        self.location: ProjectLocation = config.project_location()

    def steps(self) -> List[Step]:
        steps: List[Step] = [EnsureToolStep(req, self.installer) for req in self.requirements]
        steps.append(RepoSyncStep(self.location, RepositorySync(self.probe, runner=self.run_command)))
        steps.append(
            BuildStep(
                self.location.path,
                ProjectBuilder(self.probe, runner=self.run_command, use_ci=self.config.npm_use_ci),
            )
        )
        steps.append(
            LaunchScriptStep(
                self.location.path,
                LaunchScriptWriter(self.platform, run_script=self.config.run_script),
                self.probe,
            )
        )
        steps.append(
            ServiceStep(
                self.location,
                self.registrar,
                name=self.config.service_name,
                description=self.config.service_description,
                restart_sec=self.config.restart_sec,
                user=invoking_user(self.environ),
            )
        )
        if not self.platform.has_service_manager and self.config.detach_when_unsupported:
            steps.append(HandoffStep(self.location.path, self.platform, spawn=self.spawn))
        return steps

    def execute(self) -> Dict[str, Dict[str, Any]]:
        logger.info("Provisioning %s on %s", self.location.path, self.platform.value)
        return Runner(self.steps(), hook=self.hook).execute()

    @staticmethod
    def exit_code(results: Dict[str, Dict[str, Any]]) -> int:
        """0 when every stage succeeded (or degraded gracefully), else 1."""
        return 1 if any(res.get("status") == "error" for res in results.values()) else 0
