"""Background service registration.

One registrar per Platform variant. Every variant is safe to re-run: the
systemd unit file is overwritten in place and an existing Windows service of
the same name is deleted before it is created again, so a name never ends up
with two registrations.
"""
from __future__ import annotations

import getpass
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .errors import ErrorKind, ProvisionError
from .hook import Hook
from .launch import atomic_write_text, start_script_path
from .models import ProjectLocation, ServiceDescriptor
from .platform import Platform
from .probe import ToolProbe
from .step import CommandRunner, Step, command_failed, describe_failure, run_command

logger = logging.getLogger(__name__)

SYSTEMD_UNIT_DIR = Path("/etc/systemd/system")
SC = "sc.exe"


def _systemd_escape(value: str) -> str:
    # unit files expand %-specifiers in paths and command lines
    return value.replace("%", "%%")


def systemd_quote(value: str) -> str:
    """Quote one ExecStart=/Environment= word so spaces survive unit parsing."""
    escaped = _systemd_escape(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def invoking_user(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """The non-privileged user who ran hostprep, or None if that is root."""
    environ = os.environ if environ is None else environ
    user = environ.get("SUDO_USER") or environ.get("USER") or environ.get("USERNAME")
    if not user:
        try:
            user = getpass.getuser()
        except (KeyError, OSError):
            return None
    return None if user == "root" else user


def invoking_home(environ: Optional[Mapping[str, str]] = None) -> Optional[Path]:
    """Home directory of the user behind ``sudo``, or None when not run through sudo.

    ``$HOME`` is root's under sudo; paths baked into the service must live in
    the home of the user the service runs as.
    """
    environ = os.environ if environ is None else environ
    user = environ.get("SUDO_USER")
    if not user or user == "root":
        return None
    try:
        import pwd
    except ImportError:
        return None
    try:
        return Path(pwd.getpwnam(user).pw_dir)
    except KeyError:
        logger.warning("No passwd entry for SUDO_USER %s; using %s", user, Path.home())
        return None


class ServiceRegistrar(ABC):
    """Install, enable and start a persistent service for a ServiceDescriptor.

    ``register`` returns a result dict whose ``state`` follows
    Absent -> Registered -> Started.
    """

    def __init__(self, platform: Platform, probe: ToolProbe, runner: Optional[CommandRunner] = None) -> None:
        self.platform = platform
        self.probe = probe
        self.run_command = runner or run_command

    @abstractmethod
    def register(self, descriptor: ServiceDescriptor) -> Dict[str, Any]:
        """Register and start the service."""

    def _run(self, cmd: List[str]) -> Dict[str, Any]:
        return self.run_command(cmd, env=self.probe.environment())

    def _run_checked(self, cmd: List[str]) -> Dict[str, Any]:
        res = self._run(cmd)
        if command_failed(res):
            raise ProvisionError(ErrorKind.REGISTRATION_FAILURE, describe_failure(cmd, res))
        return res


class SystemdRegistrar(ServiceRegistrar):
    def __init__(
        self,
        platform: Platform,
        probe: ToolProbe,
        runner: Optional[CommandRunner] = None,
        unit_dir: Path = SYSTEMD_UNIT_DIR,
        is_root: Optional[bool] = None,
    ) -> None:
        super().__init__(platform, probe, runner)
        self.unit_dir = Path(unit_dir)
        if is_root is None:
            geteuid = getattr(os, "geteuid", None)
            is_root = bool(geteuid and geteuid() == 0)
        self.is_root = is_root

    def unit_path(self, descriptor: ServiceDescriptor) -> Path:
        return self.unit_dir / f"{descriptor.name}.service"

    def render_unit(self, d: ServiceDescriptor) -> str:
        service = ["[Service]", "Type=simple"]
        if d.user:
            service.append(f"User={d.user}")
        service += [
            f"WorkingDirectory={_systemd_escape(str(d.working_directory))}",
            f"Environment={systemd_quote('PATH=' + d.search_path)}",
            f"ExecStart={systemd_quote(str(d.exec_path))}",
            f"Restart={d.restart}",
            f"RestartSec={d.restart_sec}",
        ]
        lines = (
            ["[Unit]", f"Description={d.description}", "After=network.target", ""]
            + service
            + ["", "[Install]", "WantedBy=multi-user.target", ""]
        )
        return "\n".join(lines)

    def _sudo(self) -> List[str]:
        return [] if self.is_root else ["sudo"]

    def _install_unit(self, d: ServiceDescriptor) -> Path:
        target = self.unit_path(d)
        content = self.render_unit(d)
        if self.is_root:
            try:
                atomic_write_text(target, content)
            except OSError as e:
                raise ProvisionError(ErrorKind.REGISTRATION_FAILURE, f"Could not write {target}: {e}") from e
            return target
        staged = Path(d.working_directory) / f".{d.name}.service"
        try:
            atomic_write_text(staged, content)
            self._run_checked(self._sudo() + ["install", "-m", "0644", str(staged), str(target)])
        except OSError as e:
            raise ProvisionError(ErrorKind.REGISTRATION_FAILURE, f"Could not stage {staged}: {e}") from e
        finally:
            if staged.exists():
                staged.unlink()
        return target

    def register(self, descriptor: ServiceDescriptor) -> Dict[str, Any]:
        systemctl = self.probe.resolve("systemctl") or "systemctl"
        state = "absent"
        try:
            if self.is_root and descriptor.user:
                # a checkout built under sudo is owned by root
                self._run_checked(["chown", "-R", descriptor.user, str(descriptor.working_directory)])
            unit = self._install_unit(descriptor)
            self._run_checked(self._sudo() + [systemctl, "daemon-reload"])
            self._run_checked(self._sudo() + [systemctl, "enable", descriptor.name])
            state = "registered"
            # restart also covers a unit that is already running from a previous run
            self._run_checked(self._sudo() + [systemctl, "restart", descriptor.name])
            active = self._run([systemctl, "is-active", descriptor.name])
            if (active.get("stdout") or "").strip() not in ("active", "activating"):
                raise ProvisionError(
                    ErrorKind.REGISTRATION_FAILURE,
                    f"{descriptor.name} was started but is not active; see `journalctl -u {descriptor.name}`",
                )
        except ProvisionError as e:
            result = e.to_result()
            result.update({"service": descriptor.name, "state": state})
            return result
        return {
            "status": "started",
            "state": "started",
            "service": descriptor.name,
            "unit": str(unit),
            "message": f"systemd service {descriptor.name} enabled and started",
        }


class WindowsServiceRegistrar(ServiceRegistrar):
    def exists(self, name: str) -> bool:
        res = self._run([SC, "query", name])
        return not command_failed(res)

    def _create_commands(self, d: ServiceDescriptor) -> List[List[str]]:
        bin_path = f'cmd.exe /c "{d.exec_path}"'
        return [
            [SC, "create", d.name, "binPath=", bin_path, "start=", "auto", "DisplayName=", d.description],
            [SC, "description", d.name, d.description],
            [SC, "failure", d.name, "reset=", "86400", "actions=", f"restart/{int(d.restart_sec) * 1000}"],
        ]

    def register(self, descriptor: ServiceDescriptor) -> Dict[str, Any]:
        name = descriptor.name
        state = "absent"
        replaced = False
        try:
            if self.exists(name):
                logger.info("Replacing existing service %s", name)
                # stopping a service that is not running fails; that is fine
                self._run([SC, "stop", name])
                self._run_checked([SC, "delete", name])
                replaced = True
            for cmd in self._create_commands(descriptor):
                self._run_checked(cmd)
            state = "registered"
            self._run_checked([SC, "start", name])
            query = self._run([SC, "query", name])
            out = query.get("stdout") or ""
            if "RUNNING" not in out and "START_PENDING" not in out:
                raise ProvisionError(ErrorKind.REGISTRATION_FAILURE, f"{name} was registered but is not running")
        except ProvisionError as e:
            result = e.to_result()
            result.update({"service": name, "state": state, "replaced": replaced})
            return result
        return {
            "status": "started",
            "state": "started",
            "service": name,
            "replaced": replaced,
            "message": f"Windows service {name} registered and started",
        }


class UnsupportedRegistrar(ServiceRegistrar):
    def register(self, descriptor: ServiceDescriptor) -> Dict[str, Any]:
        warning = (
            f"Background services are not supported on {self.platform.value}; "
            f"start the application manually with {descriptor.exec_path}"
        )
        logger.warning(warning)
        return {
            "status": "skipped",
            "kind": ErrorKind.UNSUPPORTED_PLATFORM.value,
            "state": "absent",
            "service": descriptor.name,
            "warning": warning,
        }


def registrar_for(platform: Platform, probe: ToolProbe, runner: Optional[CommandRunner] = None, **kwargs: Any) -> ServiceRegistrar:
    if platform is Platform.LINUX_SYSTEMD:
        return SystemdRegistrar(platform, probe, runner, **kwargs)
    if platform is Platform.WINDOWS_SCM:
        return WindowsServiceRegistrar(platform, probe, runner)
    return UnsupportedRegistrar(platform, probe, runner)


class ServiceStep(Step):
    description = "Registering background service"

    def __init__(
        self,
        location: ProjectLocation,
        registrar: ServiceRegistrar,
        name: str,
        description: str,
        restart_sec: int = 5,
        user: Optional[str] = None,
        hook: Optional[Hook] = None,
    ) -> None:
        super().__init__("service", hook=hook)
        self.location = location
        self.registrar = registrar
        self.name = name
        self.service_description = description
        self.restart_sec = restart_sec
        self.user = user

    def descriptor(self) -> ServiceDescriptor:
        return ServiceDescriptor(
            name=self.name,
            description=self.service_description,
            working_directory=self.location.path,
            exec_path=start_script_path(self.location.path, self.registrar.platform),
            search_path=self.registrar.probe.search_path,
            user=self.user,
            restart="always",
            restart_sec=int(self.restart_sec),
        )

    def intent(self) -> str:
        return f"Registering service {self.name}"

    def run(self) -> Dict[str, Any]:
        return self.registrar.register(self.descriptor())
