"""
hostprep: provision a machine for a Node + Rust application.

This package provides:
- ToolProbe / ToolInstaller: detect and install git, node and cargo.
- RepositorySync: clone or fast-forward the application checkout.
- ProjectBuilder: npm install followed by cargo build --release.
- LaunchScriptWriter: a self-contained start script for supervisors.
- ServiceRegistrar: systemd / Windows SCM / unsupported variants.
- Provisioner + Runner: the sequential, fail-fast stage sequence.
"""

from .build import BuildStep, ProjectBuilder
from .config import Config
from .errors import ErrorKind, ProvisionError
from .hook import ConsoleHook, Hook, RecordingHook
from .installer import EnsureToolStep, ToolInstaller
from .launch import HandoffStep, LaunchScriptStep, LaunchScriptWriter, launch_detached
from .models import InstallStrategy, ProjectLocation, ServiceDescriptor, ToolRequirement
from .platform import Platform, detect_platform
from .probe import ToolProbe
from .provisioner import Provisioner
from .repo import RepoSyncStep, RepositorySync
from .runner import Runner
from .service import (
    ServiceRegistrar,
    ServiceStep,
    SystemdRegistrar,
    UnsupportedRegistrar,
    WindowsServiceRegistrar,
    registrar_for,
)
from .step import CommandStep, Step, run_command

__all__ = [
    "Step",
    "CommandStep",
    "run_command",
    "Runner",
    "Provisioner",
    "Config",
    "Platform",
    "detect_platform",
    # Errors
    "ErrorKind",
    "ProvisionError",
    # Hooks
    "Hook",
    "ConsoleHook",
    "RecordingHook",
    # Data model
    "InstallStrategy",
    "ToolRequirement",
    "ProjectLocation",
    "ServiceDescriptor",
    # Tools
    "ToolProbe",
    "ToolInstaller",
    "EnsureToolStep",
    # Repository and build
    "RepositorySync",
    "RepoSyncStep",
    "ProjectBuilder",
    "BuildStep",
    # Launch
    "LaunchScriptWriter",
    "LaunchScriptStep",
    "HandoffStep",
    "launch_detached",
    # Services
    "ServiceRegistrar",
    "SystemdRegistrar",
    "WindowsServiceRegistrar",
    "UnsupportedRegistrar",
    "registrar_for",
    "ServiceStep",
]
