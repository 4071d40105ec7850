"""Tests for ToolInstaller and EnsureToolStep"""
import pytest
import requests
from unittest.mock import MagicMock, patch

from conftest import make_executable
from hostprep.errors import ErrorKind, ProvisionError
from hostprep.installer import EnsureToolStep, ToolInstaller, fetch_script
from hostprep.platform import Platform
from hostprep.tools import CARGO, GIT, NODE, RUSTUP_INIT_URL, default_requirements


class StubProbe:
    """Probe double that reports every tool as present"""

    search_path = "/stub/bin"

    def satisfies(self, requirement):
        return True

    def resolve(self, name):
        return f"/stub/bin/{name}"

    def environment(self):
        return {"PATH": self.search_path}


class TestEnsureIdempotent:
    """Present tools are never reinstalled"""

    @pytest.mark.parametrize("platform", list(Platform))
    def test_present_tool_makes_no_installer_calls(self, platform, fake_commands):
        fetch = MagicMock()
        installer = ToolInstaller(platform, StubProbe(), runner=fake_commands, fetch=fetch)
        for req in default_requirements():
            result = installer.ensure(req)
            assert result["status"] == "already_present"
            assert result["path"] == f"/stub/bin/{req.executable}"
        assert fake_commands.calls == []
        fetch.assert_not_called()

    def test_real_probe_present(self, linux_probe, all_tools, fake_commands):
        installer = ToolInstaller(Platform.LINUX_SYSTEMD, linux_probe, runner=fake_commands, is_root=True)
        assert installer.ensure(GIT)["status"] == "already_present"
        assert fake_commands.calls == []


class TestUnsupportedPlatform:
    """Missing tools on an unknown OS are not guessed at"""

    def test_unsupported_kind_and_no_calls(self, home, fake_commands):
        from hostprep.probe import ToolProbe

        probe = ToolProbe(Platform.UNSUPPORTED, home=home, environ={"PATH": ""})
        fetch = MagicMock()
        installer = ToolInstaller(Platform.UNSUPPORTED, probe, runner=fake_commands, fetch=fetch)

        result = installer.ensure(GIT)

        assert result["status"] == "error"
        assert result["kind"] == ErrorKind.UNSUPPORTED_PLATFORM.value
        assert "install it manually" in result["error"]
        assert fake_commands.calls == []
        fetch.assert_not_called()


class TestLinuxInstall:
    """Package manager and vendor script installs on Linux"""

    def test_apt_install_git_with_sudo(self, linux_probe, bin_dir, fake_commands):
        make_executable(bin_dir, "sudo")
        fake_commands.on("apt-get", "install", "-y", "git", action=lambda cmd, cwd: make_executable(bin_dir, "git"))
        installer = ToolInstaller(Platform.LINUX_SYSTEMD, linux_probe, runner=fake_commands, is_root=False)

        result = installer.ensure(GIT)

        assert result["status"] == "installed"
        assert result["path"] == str(bin_dir / "git")
        assert [c["cmd"] for c in fake_commands.calls] == [
            ["sudo", "apt-get", "update"],
            ["sudo", "apt-get", "install", "-y", "git"],
        ]

    def test_root_skips_sudo(self, linux_probe, bin_dir, fake_commands):
        fake_commands.on("apt-get", "install", action=lambda cmd, cwd: make_executable(bin_dir, "git"))
        installer = ToolInstaller(Platform.LINUX_SYSTEMD, linux_probe, runner=fake_commands, is_root=True)

        installer.ensure(GIT)

        assert all(c["cmd"][0] != "sudo" for c in fake_commands.calls)

    def test_rustup_script_and_path_refresh(self, linux_probe, home, fake_commands):
        """cargo lands in ~/.cargo/bin and is found without restarting"""
        fetched = []

        def fetch(url):
            fetched.append(url)
            return b"#!/bin/sh\necho rustup\n"

        fake_commands.on("sh", action=lambda cmd, cwd: make_executable(home / ".cargo" / "bin", "cargo"))
        installer = ToolInstaller(Platform.LINUX_SYSTEMD, linux_probe, runner=fake_commands, fetch=fetch, is_root=True)

        result = installer.ensure(CARGO)

        assert fetched == [RUSTUP_INIT_URL]
        assert result["status"] == "installed"
        assert result["path"] == str(home / ".cargo" / "bin" / "cargo")
        cmd = fake_commands.calls[0]["cmd"]
        assert cmd[0] == "sh"
        assert cmd[-1] == "-y"

    def test_nodesource_runs_script_with_preserved_env(self, linux_probe, bin_dir, fake_commands):
        make_executable(bin_dir, "sudo")
        fake_commands.on("apt-get", "install", "-y", "nodejs", action=lambda cmd, cwd: make_executable(bin_dir, "node"))
        installer = ToolInstaller(
            Platform.LINUX_SYSTEMD, linux_probe, runner=fake_commands, fetch=lambda url: b"echo setup", is_root=False
        )

        result = installer.ensure(NODE)

        assert result["status"] == "installed"
        first = fake_commands.calls[0]["cmd"]
        assert first[:3] == ["sudo", "-E", "bash"]
        assert first[3].endswith("install-node.sh")
        assert fake_commands.calls[1]["cmd"] == ["sudo", "apt-get", "install", "-y", "nodejs"]

    def test_failed_command_is_install_failure(self, linux_probe, fake_commands):
        fake_commands.on("apt-get", "update", returncode=100, stderr="E: Could not get lock")
        installer = ToolInstaller(Platform.LINUX_SYSTEMD, linux_probe, runner=fake_commands, is_root=True)

        result = installer.ensure(GIT)

        assert result["status"] == "error"
        assert result["kind"] == ErrorKind.INSTALL_FAILURE.value
        assert "Could not get lock" in result["error"]
        # stops at the first failing command
        assert fake_commands.count("apt-get", "install") == 0

    def test_still_absent_after_install(self, linux_probe, fake_commands):
        installer = ToolInstaller(Platform.LINUX_SYSTEMD, linux_probe, runner=fake_commands, is_root=True)

        result = installer.ensure(GIT)

        assert result["status"] == "error"
        assert result["kind"] == ErrorKind.INSTALL_FAILURE.value
        assert "still unavailable" in result["error"]


class TestOtherPlatforms:
    """Homebrew and winget strategies"""

    def test_macos_uses_brew(self, home, bin_dir, fake_commands):
        from hostprep.probe import ToolProbe

        probe = ToolProbe(Platform.MACOS, home=home, environ={"PATH": str(bin_dir)})
        fake_commands.on("brew", "install", "git", action=lambda cmd, cwd: make_executable(bin_dir, "git"))
        installer = ToolInstaller(Platform.MACOS, probe, runner=fake_commands)

        assert installer.ensure(GIT)["status"] == "installed"
        assert fake_commands.commands() == ["brew install git"]

    def test_windows_uses_winget(self, home, bin_dir, fake_commands):
        from hostprep.probe import ToolProbe

        # Registry PATH is only read on real Windows hosts
        with patch("hostprep.probe._windows_registry_path", return_value=[]):
            probe = ToolProbe(Platform.WINDOWS_SCM, home=home, environ={"PATH": str(bin_dir)})
            fake_commands.on("winget", "install", action=lambda cmd, cwd: make_executable(bin_dir, "git"))
            installer = ToolInstaller(Platform.WINDOWS_SCM, probe, runner=fake_commands)
            result = installer.ensure(GIT)

        assert result["status"] == "installed"
        cmd = fake_commands.calls[0]["cmd"]
        assert cmd[:4] == ["winget", "install", "--id", "Git.Git"]
        assert "sudo" not in cmd


class TestFetchScript:
    """Test vendor script download"""

    def test_refuses_plain_http(self):
        with pytest.raises(ProvisionError) as exc:
            fetch_script("http://sh.rustup.rs")
        assert exc.value.kind is ErrorKind.INSTALL_FAILURE

    def test_network_error_becomes_install_failure(self):
        with patch("hostprep.installer.requests.get", side_effect=requests.exceptions.ConnectionError("offline")):
            with pytest.raises(ProvisionError, match="offline"):
                fetch_script("https://sh.rustup.rs")

    def test_returns_body(self):
        resp = MagicMock()
        resp.content = b"#!/bin/sh\n"
        with patch("hostprep.installer.requests.get", return_value=resp) as get:
            assert fetch_script("https://sh.rustup.rs") == b"#!/bin/sh\n"
        resp.raise_for_status.assert_called_once()
        assert get.call_args.kwargs["timeout"] > 0

    def test_download_failure_reported_by_ensure(self, linux_probe, fake_commands):
        def fetch(url):
            raise ProvisionError(ErrorKind.INSTALL_FAILURE, "Failed to download")

        installer = ToolInstaller(Platform.LINUX_SYSTEMD, linux_probe, runner=fake_commands, fetch=fetch, is_root=True)
        result = installer.ensure(CARGO)
        assert result["kind"] == ErrorKind.INSTALL_FAILURE.value
        assert result["tool"] == "cargo"
        assert fake_commands.calls == []


class TestEnsureToolStep:
    def test_step_wraps_installer(self, fake_commands):
        installer = ToolInstaller(Platform.LINUX_SYSTEMD, StubProbe(), runner=fake_commands)
        step = EnsureToolStep(GIT, installer)
        assert step.id == "tool:git"
        assert step.intent() == "Checking for git"
        assert step.run()["status"] == "already_present"
