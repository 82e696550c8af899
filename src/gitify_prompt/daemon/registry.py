"""In-memory registry of active capture sessions."""

import secrets
import threading
from collections import Counter
from typing import Any

from gitify_prompt.logging import get_logger
from gitify_prompt.models import (
    ROLES,
    CaptureSession,
    CodeChange,
    ConversationMessage,
    Tool,
)

logger = get_logger("registry")


class SessionRegistry:
    """Authoritative store of the sessions that have not been persisted yet.

    Every operation runs under a single lock, so mutations are atomic with
    respect to each other whether the caller is the asyncio server or an
    in-process integration calling from several threads.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, CaptureSession] = {}
        self._lock = threading.RLock()

    def _new_id(self) -> str:
        while True:
            session_id = secrets.token_hex(8)
            if session_id not in self._sessions:
                return session_id

    def create_session(self, tool: str, metadata: dict[str, Any] | None = None) -> str:
        """Create an empty session and return its id."""
        metadata = dict(metadata or {})
        resolved = Tool.coerce(tool)
        if tool and str(tool) != resolved.value:
            metadata.setdefault("requestedTool", str(tool))

        with self._lock:
            session_id = self._new_id()
            self._sessions[session_id] = CaptureSession(
                id=session_id,
                tool=resolved,
                metadata=metadata,
            )

        logger.info(
            "Created session: id=%s tool=%s repo=%s",
            session_id,
            resolved,
            metadata.get("repoPath") or metadata.get("cwd"),
        )
        return session_id

    def add_message(self, session_id: str, role: str, content: str) -> bool:
        """Append a message.

        Returns:
            False if the session is unknown (already persisted or never
            existed); the call is otherwise a no-op.

        Raises:
            ValueError: If role is not 'user' or 'assistant'
        """
        if role not in ROLES:
            raise ValueError(f"Invalid role: {role!r}")

        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                logger.warning("Session not found, dropping message: id=%s", session_id)
                return False
            session.messages.append(ConversationMessage(role=role, content=content or ""))
        return True

    def add_code_change(
        self,
        session_id: str,
        file_path: str,
        before_content: str,
        after_content: str,
    ) -> bool:
        """Append a code change; same unknown-session policy as add_message."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                logger.warning("Session not found, dropping code change: id=%s path=%s", session_id, file_path)
                return False
            session.code_changes.append(
                CodeChange(
                    file_path=file_path,
                    before_content=before_content or "",
                    after_content=after_content or "",
                )
            )
        return True

    def get_session(self, session_id: str) -> CaptureSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def list_active(self, repo_filter: str | None = None) -> list[CaptureSession]:
        """All active sessions, or only those tagged with ``repo_filter``."""
        with self._lock:
            sessions = list(self._sessions.values())
        if repo_filter is None:
            return sessions
        return [s for s in sessions if s.belongs_to(repo_filter)]

    def remove(self, session_id: str) -> CaptureSession | None:
        """Drop a session; called by the persistence sink after a write."""
        with self._lock:
            return self._sessions.pop(session_id, None)

    def sessions_by_repo(self) -> dict[str, int]:
        with self._lock:
            return dict(Counter(s.repo_tag for s in self._sessions.values()))

    def expired(self, max_age_ms: int) -> list[CaptureSession]:
        """Sessions whose age exceeds ``max_age_ms``."""
        with self._lock:
            return [s for s in self._sessions.values() if s.age_ms() > max_age_ms]

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

