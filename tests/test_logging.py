"""Tests for logging setup."""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from gitify_prompt.logging import PACKAGE_LOGGER, get_logger, setup_logging


@pytest.fixture(autouse=True)
def clean_package_logger() -> Iterator[logging.Logger]:
    package = logging.getLogger(PACKAGE_LOGGER)
    saved = list(package.handlers)
    for handler in saved:
        package.removeHandler(handler)
    yield package
    for handler in list(package.handlers):
        package.removeHandler(handler)
        handler.close()
    for handler in saved:
        package.addHandler(handler)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_component_logs_reach_file(self, tmp_path: Path) -> None:
        setup_logging("daemon", log_dir=tmp_path, console=False)

        get_logger("server").info("Daemon started: pid=%d", 42)

        content = (tmp_path / "daemon.log").read_text()
        assert "[INFO] gitify_prompt.server: Daemon started: pid=42" in content

    def test_repeated_setup_keeps_one_handler(
        self, tmp_path: Path, clean_package_logger: logging.Logger
    ) -> None:
        setup_logging("cli", log_dir=tmp_path, console=False)
        setup_logging("cli", log_dir=tmp_path, console=False)

        assert len(clean_package_logger.handlers) == 1

    def test_console_goes_to_stderr(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        setup_logging("daemon", log_dir=tmp_path, console=True)

        get_logger("server").warning("careful")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "careful" in captured.err

    def test_other_component_replaces_file(
        self, tmp_path: Path, clean_package_logger: logging.Logger
    ) -> None:
        setup_logging("cli", log_dir=tmp_path, console=False)
        setup_logging("daemon", log_dir=tmp_path, console=False)

        get_logger("server").info("hello")

        assert len(clean_package_logger.handlers) == 1
        assert "hello" in (tmp_path / "daemon.log").read_text()
        assert "hello" not in (tmp_path / "cli.log").read_text()

    def test_level_from_environment(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("GITIFY_PROMPT_LOG_LEVEL", "debug")
        setup_logging("daemon", log_dir=tmp_path, console=False)

        get_logger("server").debug("verbose detail")

        assert "verbose detail" in (tmp_path / "daemon.log").read_text()

    def test_bad_level_falls_back(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GITIFY_PROMPT_LOG_LEVEL", "chatty")
        setup_logging("daemon", log_dir=tmp_path, console=False)

        get_logger("server").debug("hidden")
        get_logger("server").info("shown")

        content = (tmp_path / "daemon.log").read_text()
        assert "hidden" not in content
        assert "shown" in content
