"""Tests for registering the daemon with the user's service manager."""

import plistlib
import sys
from pathlib import Path

import pytest

from gitify_prompt.daemon.pidfile import RuntimePaths
from gitify_prompt.daemon.service import LAUNCHD_LABEL, install_service
from gitify_prompt.errors import DaemonError


@pytest.fixture
def paths(tmp_path: Path) -> RuntimePaths:
    return RuntimePaths(tmp_path / "run")


@pytest.fixture
def home(tmp_path: Path) -> Path:
    return tmp_path / "home"


class TestInstallService:
    """Tests for install_service."""

    def test_macos_launch_agent(self, home: Path, paths: RuntimePaths) -> None:
        installed = install_service(platform="darwin", home=home, paths=paths)

        assert installed.path == home / "Library" / "LaunchAgents" / "com.gitify-prompt.daemon.plist"
        plist = plistlib.loads(installed.path.read_bytes())
        assert plist["Label"] == LAUNCHD_LABEL
        assert plist["ProgramArguments"] == [sys.executable, "-m", "gitify_prompt.daemon"]
        assert plist["EnvironmentVariables"] == {"GITIFY_PROMPT_RUNTIME_DIR": str(paths.runtime_dir)}
        assert plist["RunAtLoad"] is True
        assert plist["KeepAlive"] is True
        assert installed.start_commands == [f"launchctl load {installed.path}"]

    def test_linux_user_unit(self, home: Path, paths: RuntimePaths) -> None:
        installed = install_service(platform="linux", home=home, paths=paths)

        assert installed.path == home / ".config" / "systemd" / "user" / "gitify-prompt.service"
        unit = installed.path.read_text()
        assert f"ExecStart={sys.executable} -m gitify_prompt.daemon\n" in unit
        assert f"Environment=GITIFY_PROMPT_RUNTIME_DIR={paths.runtime_dir}\n" in unit
        assert "WantedBy=default.target" in unit
        # A user unit must not name a system user
        assert "User=" not in unit
        assert installed.start_commands[-1] == "systemctl --user enable --now gitify-prompt.service"

    def test_reinstall_overwrites(self, home: Path, paths: RuntimePaths) -> None:
        first = install_service(platform="linux", home=home, paths=paths)
        first.path.write_text("stale")

        second = install_service(platform="linux", home=home, paths=paths)

        assert second.path == first.path
        assert "ExecStart=" in second.path.read_text()

    def test_unsupported_platform(self, home: Path, paths: RuntimePaths) -> None:
        with pytest.raises(DaemonError, match="daemon start"):
            install_service(platform="win32", home=home, paths=paths)
        assert not home.exists()
