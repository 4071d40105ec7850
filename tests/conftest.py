"""Pytest configuration and fixtures for hostprep tests"""
import os
import stat
import tempfile
from pathlib import Path

import pytest

from hostprep.config import Config
from hostprep.platform import Platform
from hostprep.probe import ToolProbe


def make_executable(bin_dir: Path, name: str) -> Path:
    """Create a fake executable so shutil.which can find it"""
    bin_dir.mkdir(parents=True, exist_ok=True)
    exe = bin_dir / name
    exe.write_text("#!/bin/sh\nexit 0\n")
    exe.chmod(exe.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return exe


def _normalize(cmd):
    cmd = list(cmd)
    while cmd and cmd[0] in ("sudo", "-E"):
        cmd = cmd[1:]
    if cmd:
        cmd[0] = os.path.basename(cmd[0])
    return cmd


class FakeCommands:
    """Recording stand-in for run_command.

    Rules match on a command prefix (first token compared by basename, sudo
    stripped). The last matching rule wins; unmatched commands succeed.
    """

    def __init__(self):
        self.calls = []
        self.rules = []

    def on(self, *prefix, returncode=0, stdout="", stderr="", action=None):
        self.rules.append((list(prefix), returncode, stdout, stderr, action))
        return self

    def __call__(self, cmd, cwd=None, env=None, timeout=None, show=False):
        self.calls.append({"cmd": list(cmd), "cwd": cwd, "env": env})
        norm = _normalize(cmd)
        for prefix, returncode, stdout, stderr, action in reversed(self.rules):
            if norm[: len(prefix)] == prefix:
                if action:
                    action(list(cmd), cwd)
                return {
                    "status": "success" if returncode == 0 else "error",
                    "stdout": stdout,
                    "stderr": stderr,
                    "returncode": returncode,
                }
        return {"status": "success", "stdout": "", "stderr": "", "returncode": 0}

    def commands(self):
        return [" ".join(_normalize(c["cmd"])) for c in self.calls]

    def count(self, *prefix):
        return sum(1 for c in self.calls if _normalize(c["cmd"])[: len(prefix)] == list(prefix))


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for test files"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def home(temp_dir):
    """A fake home directory"""
    h = temp_dir / "home"
    h.mkdir()
    return h


@pytest.fixture
def bin_dir(temp_dir):
    """A directory on the fake PATH"""
    d = temp_dir / "bin"
    d.mkdir()
    return d


@pytest.fixture
def environ(bin_dir):
    return {"PATH": str(bin_dir), "HOME": "/nonexistent", "USER": "deploy"}


@pytest.fixture
def fake_commands():
    return FakeCommands()


@pytest.fixture
def all_tools(bin_dir):
    """git, node, npm and cargo present on PATH"""
    for name in ("git", "node", "npm", "cargo"):
        make_executable(bin_dir, name)
    return bin_dir


@pytest.fixture
def linux_probe(home, environ, fake_commands):
    return ToolProbe(Platform.LINUX_SYSTEMD, home=home, environ=environ, runner=fake_commands)


@pytest.fixture
def config(temp_dir, home):
    """Config pointing the checkout at temp_dir/apps"""
    cfg = Config(config_path=temp_dir / "hostprep.yaml", home=home)
    cfg.set("install_base", str(temp_dir / "apps"))
    cfg.set("repo_url", "https://example.com/acme/widget.git")
    cfg.set("service_name", "widget")
    cfg.set("service_description", "Widget Service")
    return cfg
