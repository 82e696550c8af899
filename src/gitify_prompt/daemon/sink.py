"""Persistence sink: turns capture sessions into durable JSON records.

Each persisted record is written to the record store of the repository the
session is tagged with (see gitify_prompt.store). A session is removed from
the registry only after its record is on disk, so a failed write leaves it
in memory for a later retry.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any

from gitify_prompt import git_utils, store
from gitify_prompt.config import DaemonConfig
from gitify_prompt.daemon.registry import SessionRegistry
from gitify_prompt.errors import PersistenceError
from gitify_prompt.logging import get_logger
from gitify_prompt.models import CaptureSession, format_timestamp, utc_now
from gitify_prompt.privacy import SensitiveDataMasker, matches_exclude_pattern

logger = get_logger("sink")

LABEL_WORDS = 3
SUMMARY_LENGTH = 100


class PersistOutcome(StrEnum):
    SAVED = "saved"
    SKIPPED_EMPTY = "skipped_empty"
    FAILED = "failed"


@dataclass
class SaveReport:
    """Result of persisting a batch of sessions."""

    saved: int = 0
    failed: int = 0
    skipped: int = 0
    paths: list[Path] = field(default_factory=list)

    def add(self, outcome: PersistOutcome, path: Path | None = None) -> None:
        if outcome is PersistOutcome.SAVED:
            self.saved += 1
            if path is not None:
                self.paths.append(path)
        elif outcome is PersistOutcome.FAILED:
            self.failed += 1
        else:
            self.skipped += 1


def derive_label(session: CaptureSession, clean: Callable[[str], str] | None = None) -> str:
    """Short human-legible label taken from the first user message.

    Lower-cased, punctuation stripped, the first few words longer than two
    characters joined with '-'; ``auto-<id>`` when nothing usable remains.
    ``clean`` is applied to the message first (secret masking).
    """
    first = session.first_user_message()
    if first and clean:
        first = clean(first)
    if not first:
        return f"auto-{session.id}"

    cleaned = re.sub(r"[^a-z0-9\s]", "", first.lower())
    words = [w for w in cleaned.split() if len(w) > 2][:LABEL_WORDS]
    return "-".join(words) or f"auto-{session.id}"


def summarize(session: CaptureSession) -> str:
    first = session.first_user_message() or ""
    if len(first) > SUMMARY_LENGTH:
        return first[:SUMMARY_LENGTH] + "..."
    return first


def git_context(repo_path: str | None) -> dict[str, Any]:
    """Author/branch/remote details for a record, empty outside a repo."""
    if not repo_path or not Path(repo_path).exists():
        return {}

    context: dict[str, Any] = {}
    author = git_utils.get_author(repo_path)
    if author:
        context["author"] = author
    branch = git_utils.get_branch_info(repo_path)
    if branch:
        context["branch"] = branch["current"]
        context["parentBranch"] = branch["parent"]
    repo_info = git_utils.get_git_repo_info(repo_path)
    if repo_info:
        context["gitRepo"] = repo_info
    return context


def build_record(
    session: CaptureSession,
    commit_sha: str | None = None,
    config: DaemonConfig | None = None,
    include_git: bool = True,
) -> dict[str, Any]:
    """Serialize a session into the persisted record format.

    The same format is used for staging files so the commit trigger can
    merge them without caring which capture technique produced them.
    """
    config = config or DaemonConfig()
    privacy = config.privacy
    masker = SensitiveDataMasker() if privacy.mask_sensitive_data else None

    def clean(text: str) -> str:
        return masker.mask(text) if masker else text

    changes = [
        c for c in session.code_changes
        if not matches_exclude_pattern(c.file_path, privacy.exclude_patterns)
    ]
    excluded = len(session.code_changes) - len(changes)

    messages = []
    for msg in session.messages:
        data = msg.to_dict()
        data["content"] = clean(msg.content)
        messages.append(data)

    code_changes = []
    for change in changes:
        data = change.to_dict()
        data["beforeContent"] = clean(change.before_content)
        data["afterContent"] = clean(change.after_content)
        code_changes.append(data)

    git = git_context(session.repo_path) if include_git else {}

    metadata = dict(session.metadata)
    metadata.update(
        {
            "commitSha": commit_sha,
            "repoPath": session.repo_path,
            "cwd": session.metadata.get("cwd", session.repo_path),
            "fileCount": len(code_changes),
            "messageCount": len(messages),
            "savedAt": format_timestamp(utc_now()),
        }
    )
    for key in ("branch", "parentBranch", "gitRepo"):
        if key in git:
            metadata[key] = git[key]
    if excluded:
        metadata["excludedFiles"] = excluded

    record: dict[str, Any] = {
        "id": session.id,
        "label": derive_label(session, clean),
        "tool": str(session.tool),
        "startTime": format_timestamp(session.start_time),
        "summary": clean(summarize(session)),
        "messages": messages,
        "filesModified": [{"file": c["filePath"], "timestamp": c["timestamp"]} for c in code_changes],
        "codeChanges": code_changes,
        "metadata": metadata,
    }
    if "author" in git:
        record["author"] = git["author"]
    return record


class PersistenceSink:
    """Writes sessions from a registry into their repositories' record stores."""

    def __init__(
        self,
        registry: SessionRegistry,
        config: DaemonConfig | None = None,
        fallback_dir: Path | None = None,
    ) -> None:
        self._registry = registry
        self.config = config or DaemonConfig()
        self._fallback_dir = fallback_dir

    @property
    def fallback_dir(self) -> Path:
        """Store root for sessions that carry no repository tag."""
        return self._fallback_dir or self.config.storage.data_dir

    def store_root(self, repo_path: str | None) -> Path:
        return Path(repo_path) if repo_path else self.fallback_dir

    def write_record(self, record: dict[str, Any], repo_path: str | None) -> Path:
        """Write one record into the repository's record store.

        Raises:
            PersistenceError: If the file cannot be written
        """
        commit_sha = record.get("metadata", {}).get("commitSha")
        path = store.records_dir(self.store_root(repo_path)) / store.record_filename(record["id"], commit_sha)
        try:
            return store.write_json(path, record)
        except OSError as e:
            raise PersistenceError(f"Cannot write record {path}: {e}") from e

    def persist(self, session: CaptureSession, commit_sha: str | None = None) -> tuple[PersistOutcome, Path | None]:
        """Write a session's record and remove it from the registry.

        Sessions without messages are skipped and stay registered.
        """
        if not session.messages:
            logger.info("Session has no messages, skipping save: id=%s", session.id)
            return PersistOutcome.SKIPPED_EMPTY, None

        try:
            record = build_record(session, commit_sha, self.config)
            path = self.write_record(record, session.repo_path)
        except (PersistenceError, OSError, TypeError, ValueError) as e:
            logger.error("Error saving session: id=%s error=%s", session.id, e)
            return PersistOutcome.FAILED, None

        self._registry.remove(session.id)
        logger.info(
            "Saved session: id=%s label=%s commit=%s path=%s",
            session.id,
            record["label"],
            commit_sha,
            path,
        )
        return PersistOutcome.SAVED, path

    def save_session(self, session_id: str, commit_sha: str | None = None) -> PersistOutcome | None:
        """Persist one session by id; None if the id is unknown."""
        session = self._registry.get_session(session_id)
        if session is None:
            logger.debug("saveSession for unknown session: id=%s", session_id)
            return None
        outcome, _ = self.persist(session, commit_sha)
        return outcome

    def save_sessions_for_repo(self, repo_path: str, commit_sha: str | None) -> SaveReport:
        """Persist every active session tagged with ``repo_path`` and only those."""
        sessions = self._registry.list_active(repo_path)
        logger.info("Saving sessions for repo: repo=%s count=%d commit=%s", repo_path, len(sessions), commit_sha)

        report = SaveReport()
        for session in sessions:
            report.add(*self.persist(session, commit_sha))
        return report

    def save_all(self, commit_sha: str | None = None) -> SaveReport:
        """Persist every active session (used at daemon shutdown)."""
        report = SaveReport()
        for session in self._registry.list_active():
            report.add(*self.persist(session, commit_sha))
        return report

    def stage(self, session: CaptureSession) -> Path:
        """Write a session to its repository's staging area without a commit.

        Raises:
            PersistenceError: If the staging file cannot be written
        """
        record = build_record(session, None, self.config)
        path = store.staging_path(self.store_root(session.repo_path), session.id)
        try:
            return store.write_json(path, record)
        except OSError as e:
            raise PersistenceError(f"Cannot write staging file {path}: {e}") from e
