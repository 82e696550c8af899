"""Tests for runtime paths and the PID file."""

import os
from pathlib import Path

import pytest

from gitify_prompt.daemon.pidfile import (
    RuntimePaths,
    is_process_alive,
    read_live_pid,
    read_pid,
    remove_pid,
    write_pid,
)

# Above any real pid_max but still a valid C int
DEAD_PID = 999_999_999


class TestRuntimePaths:
    """Tests for RuntimePaths."""

    def test_file_names(self, tmp_path: Path) -> None:
        paths = RuntimePaths(tmp_path)
        assert paths.socket == tmp_path / "daemon.sock"
        assert paths.pid == tmp_path / "daemon.pid"
        assert paths.log == tmp_path / "daemon.log"

    def test_env_override(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GITIFY_PROMPT_RUNTIME_DIR", str(tmp_path))
        assert RuntimePaths.default().runtime_dir == tmp_path

    def test_default_is_per_user(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GITIFY_PROMPT_RUNTIME_DIR", raising=False)
        assert RuntimePaths.default().runtime_dir.name == f"gitify-prompt-{os.getuid()}"


class TestProcessAlive:
    """Tests for is_process_alive."""

    def test_self_is_alive(self) -> None:
        assert is_process_alive(os.getpid()) is True

    def test_dead_pid(self) -> None:
        assert is_process_alive(DEAD_PID) is False

    def test_non_positive(self) -> None:
        assert is_process_alive(0) is False
        assert is_process_alive(-1) is False


class TestPidFile:
    """Tests for PID file read/write and stale detection."""

    def test_write_and_read(self, tmp_path: Path) -> None:
        path = tmp_path / "run" / "daemon.pid"
        write_pid(path)
        assert read_pid(path) == os.getpid()

    def test_read_missing(self, tmp_path: Path) -> None:
        assert read_pid(tmp_path / "missing.pid") is None

    def test_read_garbage(self, tmp_path: Path) -> None:
        path = tmp_path / "daemon.pid"
        path.write_text("not-a-pid")
        assert read_pid(path) is None

    def test_live_pid_kept(self, tmp_path: Path) -> None:
        path = tmp_path / "daemon.pid"
        write_pid(path)
        assert read_live_pid(path) == os.getpid()
        assert path.exists()

    def test_stale_pid_removed(self, tmp_path: Path) -> None:
        """Should discard a marker naming a dead process."""
        path = tmp_path / "daemon.pid"
        write_pid(path, DEAD_PID)

        assert read_live_pid(path) is None
        assert not path.exists()

    def test_garbage_marker_removed(self, tmp_path: Path) -> None:
        path = tmp_path / "daemon.pid"
        path.write_text("???")

        assert read_live_pid(path) is None
        assert not path.exists()

    def test_remove_missing_is_noop(self, tmp_path: Path) -> None:
        remove_pid(tmp_path / "missing.pid")
