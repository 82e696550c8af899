"""Tests for the capturing file writer and the pathlib write hooks."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from gitify_prompt.capture import hooks
from gitify_prompt.capture.outcome import CaptureErrorKind, CaptureOutcome
from gitify_prompt.capture.writer import CapturingFileWriter, DirectFileWriter, read_prior_content


class Recorder:
    """Capture callback that remembers what it was told."""

    def __init__(self, outcome: CaptureOutcome | None = None) -> None:
        self.changes: list[tuple[str, str, str]] = []
        self.outcome = outcome or CaptureOutcome.success()

    def __call__(self, path: str, before: str, after: str) -> CaptureOutcome:
        self.changes.append((path, before, after))
        return self.outcome


@pytest.fixture
def clean_hooks() -> Iterator[None]:
    yield
    hooks.uninstall()


class TestCapturingFileWriter:
    """Tests for CapturingFileWriter."""

    def test_new_file_reports_empty_before(self, tmp_path: Path) -> None:
        recorder = Recorder()
        writer = CapturingFileWriter(recorder)
        target = tmp_path / "new.py"

        writer.write_text(target, "x = 1\n")

        assert target.read_text() == "x = 1\n"
        assert recorder.changes == [(str(target), "", "x = 1\n")]

    def test_existing_file_reports_prior_content(self, tmp_path: Path) -> None:
        target = tmp_path / "app.py"
        target.write_text("old\n")
        recorder = Recorder()

        CapturingFileWriter(recorder).write_text(target, "new\n")

        assert recorder.changes == [(str(target), "old\n", "new\n")]

    def test_write_bytes(self, tmp_path: Path) -> None:
        recorder = Recorder()
        target = tmp_path / "data.txt"

        written = CapturingFileWriter(recorder).write_bytes(target, b"hello")

        assert written == 5
        assert recorder.changes[0][2] == "hello"

    def test_callback_failure_does_not_reach_caller(self, tmp_path: Path) -> None:
        """Should still complete the write when capture blows up."""

        def explode(path: str, before: str, after: str) -> CaptureOutcome:
            raise RuntimeError("capture broke")

        target = tmp_path / "a.txt"
        CapturingFileWriter(explode).write_text(target, "content")

        assert target.read_text() == "content"

    def test_failed_outcome_is_discarded(self, tmp_path: Path) -> None:
        recorder = Recorder(CaptureOutcome.failure(CaptureErrorKind.UNREACHABLE_DAEMON, "down"))
        target = tmp_path / "a.txt"

        CapturingFileWriter(recorder).write_text(target, "content")

        assert target.read_text() == "content"

    def test_write_error_propagates(self, tmp_path: Path) -> None:
        """Should surface the host's own write errors and report nothing."""
        recorder = Recorder()
        with pytest.raises(OSError):
            CapturingFileWriter(recorder).write_text(tmp_path / "missing-dir" / "a.txt", "x")
        assert recorder.changes == []

    def test_read_prior_content_missing(self, tmp_path: Path) -> None:
        assert read_prior_content(tmp_path / "nope") == ""


class TestHooks:
    """Tests for the pathlib write hooks adapter."""

    def test_install_routes_pathlib_writes(self, tmp_path: Path, clean_hooks: None) -> None:
        recorder = Recorder()
        hooks.install(CapturingFileWriter(recorder, DirectFileWriter()))

        target = tmp_path / "hooked.txt"
        target.write_text("via pathlib")

        assert hooks.is_installed()
        assert recorder.changes == [(str(target), "", "via pathlib")]
        assert target.read_text() == "via pathlib"

    def test_uninstall_restores(self, tmp_path: Path, clean_hooks: None) -> None:
        original = Path.write_text
        recorder = Recorder()
        hooks.install(CapturingFileWriter(recorder))
        hooks.uninstall()

        (tmp_path / "plain.txt").write_text("untracked")

        assert Path.write_text is original
        assert recorder.changes == []
        assert not hooks.is_installed()

    def test_double_install_refused(self, clean_hooks: None) -> None:
        hooks.install(CapturingFileWriter(Recorder()))
        with pytest.raises(RuntimeError):
            hooks.install(CapturingFileWriter(Recorder()))
