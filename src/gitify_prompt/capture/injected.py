"""Capture for host tools that can only be instrumented from the outside.

Events are forwarded to the daemon over IPC and mirrored into a private
local registry. If the daemon cannot be reached the capture switches to
local-only mode for the rest of the process and keeps the current session
in the repository's staging area, where the commit trigger picks it up.
Conversation messages come from the host's Claude Code transcript, which is
read on every captured write and at exit.
"""

import atexit
import os
from datetime import datetime
from pathlib import Path
from typing import Any

from gitify_prompt import git_utils
from gitify_prompt.capture import hooks
from gitify_prompt.capture.filters import exclusion_reason, is_noise_message
from gitify_prompt.capture.outcome import CaptureErrorKind, CaptureOutcome, discard
from gitify_prompt.capture.transcripts import read_conversation
from gitify_prompt.capture.writer import CapturingFileWriter
from gitify_prompt.config import DaemonConfig, load_daemon_config
from gitify_prompt.daemon.client import DaemonClient
from gitify_prompt.daemon.registry import SessionRegistry
from gitify_prompt.daemon.sink import PersistenceSink
from gitify_prompt.errors import DaemonRequestError, DaemonUnreachableError, PersistenceError
from gitify_prompt.logging import get_logger

logger = get_logger("injected")

# Injected into someone else's process: keep IPC calls short
CLIENT_TIMEOUT = 2.0


class InjectedHookCapture:
    """Forwards one host process's session to the daemon, with a local fallback."""

    def __init__(
        self,
        tool: str = "claude-code",
        cwd: str | Path | None = None,
        client: DaemonClient | None = None,
        config: DaemonConfig | None = None,
        projects_dir: Path | None = None,
        check_gitignore: bool = True,
    ) -> None:
        self.tool = tool
        self.cwd = str(Path(cwd or os.getcwd()).absolute())
        self.client = client or DaemonClient(timeout=CLIENT_TIMEOUT)
        self.config = config or load_daemon_config()
        self.projects_dir = projects_dir
        self.check_gitignore = check_gitignore

        self.local = SessionRegistry()
        self.sink = PersistenceSink(self.local, self.config)
        self.repo_root: str | None = None
        self.local_only = False

        self._daemon_session_id: str | None = None
        self._local_session_id: str | None = None
        self._undelivered = False
        self._staged_path: Path | None = None
        self._installed = False
        self._seen_messages: set[tuple[str, str, datetime]] = set()

    @property
    def session_id(self) -> str | None:
        """Id of the current session in the local mirror."""
        return self._local_session_id

    @property
    def daemon_session_id(self) -> str | None:
        return self._daemon_session_id

    # Session lifecycle

    def start(self) -> CaptureOutcome:
        if not self.config.auto_capture.is_tool_enabled(self.tool):
            return CaptureOutcome.failure(CaptureErrorKind.DISABLED, f"capture disabled for {self.tool}")

        self.repo_root = git_utils.get_repo_root(self.cwd)
        if self.repo_root is None:
            return CaptureOutcome.failure(CaptureErrorKind.FILTERED, f"not a git repository: {self.cwd}")

        self._open_session()
        return CaptureOutcome.success(self._local_session_id)

    def _metadata(self, previous_commit: str | None) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "cwd": self.cwd,
            "repoPath": self.repo_root,
            "pid": os.getpid(),
            "capture": "injected",
        }
        if previous_commit:
            metadata["previousCommit"] = previous_commit
        return metadata

    def _open_session(self, previous_commit: str | None = None) -> None:
        metadata = self._metadata(previous_commit)
        self._local_session_id = self.local.create_session(self.tool, metadata)
        self._undelivered = False
        self._staged_path = None

        self._daemon_session_id = None
        if not self.local_only:
            try:
                self._daemon_session_id = self.client.create_session(self.tool, metadata)
            except DaemonUnreachableError as e:
                self._go_local(e)
            except DaemonRequestError as e:
                logger.warning("Daemon rejected createSession: %s", e)
                self._go_local(e)

    def _rotate(self) -> None:
        """Replace the current session after a commit persisted it."""
        previous = self._local_session_id
        if previous is not None:
            self.local.remove(previous)
        head = git_utils.get_head_commit(self.repo_root) if self.repo_root else None
        self._open_session(previous_commit=head)
        logger.info("Started new session after commit: previous=%s session=%s", previous, self._local_session_id)

    def _go_local(self, error: Exception) -> None:
        if not self.local_only:
            logger.warning("Daemon unreachable, capturing locally: error=%s", error)
        self.local_only = True
        self._daemon_session_id = None

    def _staging_consumed(self) -> bool:
        """Whether a commit has swept our staging file since the last flush."""
        return self._staged_path is not None and not self._staged_path.exists()

    # Events

    def record_message(self, role: str, content: str) -> CaptureOutcome:
        if role == "assistant" and is_noise_message(content):
            return CaptureOutcome.failure(CaptureErrorKind.FILTERED, "noise message")
        return self._record("addMessage", role, content)

    def record_file_write(self, file_path: str, before_content: str, after_content: str) -> CaptureOutcome:
        if self.repo_root is None:
            return CaptureOutcome.failure(CaptureErrorKind.UNKNOWN_SESSION, "capture not started")
        reason = exclusion_reason(file_path, self.repo_root, self.check_gitignore)
        if reason:
            return CaptureOutcome.failure(CaptureErrorKind.FILTERED, f"{reason}: {file_path}")
        # The prompt behind a write is already in the transcript
        return self._record("addCodeChange", file_path, before_content, after_content, sync=True)

    def finish(self) -> CaptureOutcome:
        """Catch up with the transcript and stage whatever the daemon missed."""
        if self._local_session_id is None:
            return CaptureOutcome.success()
        try:
            self._prepare()
            self.sync_transcript()
        except Exception as e:
            logger.exception("Unexpected capture error while finishing")
            return CaptureOutcome.failure(CaptureErrorKind.INTERNAL, f"{type(e).__name__}: {e}")
        return self.flush()

    def _prepare(self) -> None:
        if self.local_only and self._staging_consumed():
            self._rotate()

    def _record(self, command: str, *args: str, sync: bool = False) -> CaptureOutcome:
        if self._local_session_id is None:
            return CaptureOutcome.failure(CaptureErrorKind.UNKNOWN_SESSION, "capture not started")
        try:
            self._prepare()
            if sync:
                self.sync_transcript()
            self._deliver(command, *args)
            if self.local_only:
                return self.flush()
            return CaptureOutcome.success()
        except ValueError as e:
            return CaptureOutcome.failure(CaptureErrorKind.INTERNAL, str(e))
        except Exception as e:
            logger.exception("Unexpected capture error: command=%s", command)
            return CaptureOutcome.failure(CaptureErrorKind.INTERNAL, f"{type(e).__name__}: {e}")

    def _deliver(self, command: str, *args: str) -> None:
        self._apply_local(command, *args)
        if not self.local_only:
            self._forward(command, *args)
        # Checked again: forwarding may have just lost the daemon
        if self.local_only:
            self._undelivered = True

    def _apply_local(self, command: str, *args: str) -> None:
        if command == "addMessage":
            self.local.add_message(self._local_session_id, *args)
        else:
            self.local.add_code_change(self._local_session_id, *args)

    def _forward(self, command: str, *args: str, retry: bool = True) -> None:
        try:
            if command == "addMessage":
                known = self.client.add_message(self._daemon_session_id, *args)
            else:
                known = self.client.add_code_change(self._daemon_session_id, *args)
        except DaemonUnreachableError as e:
            self._go_local(e)
            return
        except DaemonRequestError as e:
            logger.warning("Daemon rejected %s: %s", command, e)
            self._undelivered = True
            return

        if not known and retry:
            # A commit persisted our session; this event opens the next one
            self._rotate()
            self._apply_local(command, *args)
            if not self.local_only:
                self._forward(command, *args, retry=False)

    def sync_transcript(self) -> int:
        """Deliver conversation messages from the Claude Code transcript.

        The host tool's conversation only reaches us through its transcript.
        Each transcript entry is delivered once per process; noise messages
        are skipped. Returns the number of messages delivered.
        """
        session = self.local.get_session(self._local_session_id) if self._local_session_id else None
        if session is None:
            return 0

        delivered = 0
        for message in read_conversation(self.cwd, session.start_time, self.projects_dir):
            key = (message.role, message.content, message.timestamp)
            if key in self._seen_messages:
                continue
            self._seen_messages.add(key)
            if message.role == "assistant" and is_noise_message(message.content):
                continue
            self._deliver("addMessage", message.role, message.content)
            delivered += 1

        if delivered:
            logger.debug("Synced transcript messages: session=%s count=%d", self._local_session_id, delivered)
        return delivered

    # Staging

    def flush(self) -> CaptureOutcome:
        """Write the current session to the staging area if the daemon missed events."""
        if not self._undelivered or self._local_session_id is None:
            return CaptureOutcome.success()

        session = self.local.get_session(self._local_session_id)
        if session is None:
            return CaptureOutcome.failure(CaptureErrorKind.UNKNOWN_SESSION, self._local_session_id)
        if not session.messages and not session.code_changes:
            return CaptureOutcome.success()

        try:
            self._staged_path = self.sink.stage(session)
        except PersistenceError as e:
            return CaptureOutcome.failure(CaptureErrorKind.INTERNAL, str(e))
        logger.debug("Staged session: id=%s path=%s", session.id, self._staged_path)
        return CaptureOutcome.success(str(self._staged_path))

    def _flush_at_exit(self) -> None:
        discard(self.finish())

    # Installation

    def file_writer(self) -> CapturingFileWriter:
        return CapturingFileWriter(self.record_file_write)

    def install(self) -> None:
        """Intercept pathlib writes and stage leftovers at interpreter exit."""
        if self._installed:
            return
        hooks.install(self.file_writer())
        atexit.register(self._flush_at_exit)
        self._installed = True

    def uninstall(self) -> None:
        if not self._installed:
            return
        hooks.uninstall()
        atexit.unregister(self._flush_at_exit)
        self._installed = False
