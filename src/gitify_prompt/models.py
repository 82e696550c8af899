"""Capture session data models."""

import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class Tool(StrEnum):
    """Assistant integrations a session can originate from."""

    CLAUDE_CODE = "claude-code"
    CURSOR = "cursor"
    CHATGPT = "chatgpt"
    GENERIC = "generic"

    @classmethod
    def coerce(cls, value: str | None) -> "Tool":
        """Map a raw tag onto a known tool, falling back to GENERIC."""
        try:
            return cls(value)
        except ValueError:
            return cls.GENERIC


ROLES = ("user", "assistant")


def utc_now() -> datetime:
    return datetime.now(UTC)


def format_timestamp(ts: datetime) -> str:
    """ISO 8601 with millisecond precision and a Z suffix."""
    return ts.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str | None) -> datetime:
    """Parse an ISO 8601 timestamp (Z suffix allowed); epoch on failure."""
    if not value:
        return datetime.fromtimestamp(0, UTC)
    try:
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        dt = datetime.fromisoformat(value)
    except (ValueError, AttributeError):
        return datetime.fromtimestamp(0, UTC)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def normalize_repo_path(path: str | None) -> str | None:
    """Normalize a repository tag for equality comparison."""
    if not path:
        return None
    return os.path.normpath(str(path))


@dataclass
class ConversationMessage:
    """One conversation turn."""

    role: str  # user, assistant
    content: str
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": format_timestamp(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationMessage":
        return cls(
            role=data.get("role", "user"),
            content=data.get("content", ""),
            timestamp=parse_timestamp(data.get("timestamp")),
        )


@dataclass
class CodeChange:
    """A single file write observed during a session."""

    file_path: str
    before_content: str
    after_content: str
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "filePath": self.file_path,
            "beforeContent": self.before_content,
            "afterContent": self.after_content,
            "timestamp": format_timestamp(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CodeChange":
        return cls(
            file_path=data.get("filePath", ""),
            before_content=data.get("beforeContent", ""),
            after_content=data.get("afterContent", ""),
            timestamp=parse_timestamp(data.get("timestamp")),
        )


@dataclass
class CaptureSession:
    """A single assistant interaction, from creation until it is persisted.

    ``messages`` and ``code_changes`` only ever grow; the registry appends to
    them and nothing edits or deletes entries in place.
    """

    id: str
    tool: Tool
    start_time: datetime = field(default_factory=utc_now)
    messages: list[ConversationMessage] = field(default_factory=list)
    code_changes: list[CodeChange] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def repo_path(self) -> str | None:
        """Explicit repository tag, falling back to the working directory."""
        return normalize_repo_path(self.metadata.get("repoPath") or self.metadata.get("cwd"))

    @property
    def repo_tag(self) -> str:
        """Repository tag used for per-repo counts ('unknown' when untagged)."""
        return self.repo_path or "unknown"

    def belongs_to(self, repo_path: str) -> bool:
        """Whether the session's cwd or repoPath tag equals ``repo_path``."""
        target = normalize_repo_path(repo_path)
        if target is None:
            return False
        return target in (
            normalize_repo_path(self.metadata.get("cwd")),
            normalize_repo_path(self.metadata.get("repoPath")),
        )

    def first_user_message(self) -> str | None:
        for msg in self.messages:
            if msg.role == "user":
                return msg.content
        return None

    def age_ms(self, now: datetime | None = None) -> int:
        now = now or utc_now()
        return int((now - self.start_time).total_seconds() * 1000)

    def to_dict(self) -> dict[str, Any]:
        """Wire form used by the IPC protocol and staging files."""
        return {
            "id": self.id,
            "tool": str(self.tool),
            "startTime": format_timestamp(self.start_time),
            "messages": [m.to_dict() for m in self.messages],
            "codeChanges": [c.to_dict() for c in self.code_changes],
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CaptureSession":
        return cls(
            id=data["id"],
            tool=Tool.coerce(data.get("tool")),
            start_time=parse_timestamp(data.get("startTime")),
            messages=[ConversationMessage.from_dict(m) for m in data.get("messages", [])],
            code_changes=[CodeChange.from_dict(c) for c in data.get("codeChanges", [])],
            metadata=dict(data.get("metadata") or {}),
        )
