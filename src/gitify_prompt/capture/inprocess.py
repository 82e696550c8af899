"""In-process capture for host tools that embed gitify-prompt directly.

The integration owns its own SessionRegistry and PersistenceSink, so no
daemon is involved: events are appended under the registry lock and the
commit hook of the host calls ``on_commit``. Entry points return a
CaptureOutcome and never raise into the host tool.
"""

import os
from pathlib import Path
from typing import Any

from gitify_prompt import git_utils
from gitify_prompt.capture.filters import exclusion_reason, is_noise_message
from gitify_prompt.capture.outcome import CaptureErrorKind, CaptureOutcome
from gitify_prompt.capture.writer import CapturingFileWriter, FileWriter
from gitify_prompt.config import DaemonConfig, load_daemon_config
from gitify_prompt.daemon.registry import SessionRegistry
from gitify_prompt.daemon.sink import PersistenceSink, PersistOutcome
from gitify_prompt.logging import get_logger

logger = get_logger("inprocess")


class InProcessCapture:
    """Captures one tool's sessions straight into a local registry."""

    def __init__(
        self,
        tool: str,
        cwd: str | Path | None = None,
        config: DaemonConfig | None = None,
        registry: SessionRegistry | None = None,
        sink: PersistenceSink | None = None,
        check_gitignore: bool = True,
    ) -> None:
        self.tool = tool
        self.cwd = str(Path(cwd or os.getcwd()).absolute())
        self.config = config or load_daemon_config()
        self.registry = registry if registry is not None else SessionRegistry()
        self.sink = sink or PersistenceSink(self.registry, self.config)
        self.check_gitignore = check_gitignore
        self.repo_root = git_utils.get_repo_root(self.cwd) or self.cwd
        self._session_id: str | None = None

    @property
    def session_id(self) -> str | None:
        return self._session_id

    def _metadata(self, previous_commit: str | None = None) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "cwd": self.cwd,
            "repoPath": self.repo_root,
            "pid": os.getpid(),
            "capture": "in-process",
        }
        if previous_commit:
            metadata["previousCommit"] = previous_commit
        return metadata

    def start(self, metadata: dict[str, Any] | None = None) -> CaptureOutcome:
        """Open the first session, unless capture is disabled for this tool."""
        if not self.config.auto_capture.is_tool_enabled(self.tool):
            return CaptureOutcome.failure(CaptureErrorKind.DISABLED, f"capture disabled for {self.tool}")
        if self._session_id is not None:
            return CaptureOutcome.success(self._session_id)

        self._session_id = self.registry.create_session(self.tool, {**self._metadata(), **(metadata or {})})
        return CaptureOutcome.success(self._session_id)

    def record_message(self, role: str, content: str) -> CaptureOutcome:
        if self._session_id is None:
            return CaptureOutcome.failure(CaptureErrorKind.UNKNOWN_SESSION, "capture not started")
        if role == "assistant" and is_noise_message(content):
            return CaptureOutcome.failure(CaptureErrorKind.FILTERED, "noise message")
        try:
            known = self.registry.add_message(self._session_id, role, content)
        except ValueError as e:
            return CaptureOutcome.failure(CaptureErrorKind.INTERNAL, str(e))
        if not known:
            return CaptureOutcome.failure(CaptureErrorKind.UNKNOWN_SESSION, self._session_id)
        return CaptureOutcome.success()

    def record_file_write(self, file_path: str, before_content: str, after_content: str) -> CaptureOutcome:
        if self._session_id is None:
            return CaptureOutcome.failure(CaptureErrorKind.UNKNOWN_SESSION, "capture not started")

        reason = exclusion_reason(file_path, self.repo_root, self.check_gitignore)
        if reason:
            return CaptureOutcome.failure(CaptureErrorKind.FILTERED, f"{reason}: {file_path}")

        if not self.registry.add_code_change(self._session_id, file_path, before_content, after_content):
            return CaptureOutcome.failure(CaptureErrorKind.UNKNOWN_SESSION, self._session_id)
        return CaptureOutcome.success()

    def file_writer(self, inner: FileWriter | None = None) -> CapturingFileWriter:
        """A FileWriter the host tool can write through to have changes captured."""
        return CapturingFileWriter(self.record_file_write, inner)

    def on_commit(self, commit_sha: str) -> CaptureOutcome:
        """Persist the current session against ``commit_sha`` and open a fresh one.

        A session that fails to persist stays current so its events are not
        lost; an empty session is discarded.
        """
        if self._session_id is None:
            return CaptureOutcome.failure(CaptureErrorKind.UNKNOWN_SESSION, "capture not started")

        session = self.registry.get_session(self._session_id)
        if session is not None:
            outcome, path = self.sink.persist(session, commit_sha)
            if outcome is PersistOutcome.FAILED:
                return CaptureOutcome.failure(CaptureErrorKind.INTERNAL, f"cannot persist session {session.id}")
            if outcome is PersistOutcome.SKIPPED_EMPTY:
                self.registry.remove(session.id)

        self._session_id = self.registry.create_session(self.tool, self._metadata(previous_commit=commit_sha))
        logger.info("Rotated session after commit: commit=%s session=%s", commit_sha, self._session_id)
        return CaptureOutcome.success(self._session_id)

    def shutdown(self) -> CaptureOutcome:
        """Persist whatever is left without a commit."""
        report = self.sink.save_all()
        self._session_id = None
        if report.failed:
            return CaptureOutcome.failure(CaptureErrorKind.INTERNAL, f"{report.failed} session(s) not saved")
        return CaptureOutcome.success(f"{report.saved} saved")
