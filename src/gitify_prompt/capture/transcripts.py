"""Reader for Claude Code conversation transcripts.

Claude Code stores conversations as JSONL files at:
    ~/.claude/projects/<encoded-project-path>/<session-id>.jsonl

where the project path is the working directory with '/' replaced by '-'.
Each line is a JSON object with:
- type: "user", "assistant", or bookkeeping types
- message.role / message.content: string or array of content blocks
- timestamp: ISO 8601 timestamp
- cwd: working directory

The injected capture uses this to recover messages it could not observe
directly.
"""

import json
from datetime import datetime, timedelta
from pathlib import Path

from gitify_prompt.logging import get_logger
from gitify_prompt.models import ConversationMessage, parse_timestamp

logger = get_logger("transcripts")

# Entries this long before the session started still count as part of it
START_TOLERANCE = timedelta(seconds=60)


def default_projects_dir() -> Path:
    return Path.home() / ".claude" / "projects"


def encode_project_path(cwd: str) -> str:
    return cwd.replace("/", "-")


def extract_content(content: str | list | None) -> str:
    """Extract the text of a message content field.

    Args:
        content: Either a string or an array of content blocks

    Returns:
        Text blocks joined with newlines; tool blocks are skipped
    """
    if content is None:
        return ""

    if isinstance(content, str):
        return content

    if isinstance(content, list):
        text_parts: list[str] = []
        for block in content:
            if isinstance(block, dict):
                if block.get("type") == "text":
                    text_parts.append(block.get("text", ""))
            elif isinstance(block, str):
                text_parts.append(block)
        return "\n".join(p for p in text_parts if p)

    return ""


def parse_transcript(path: Path, cwd: str, since: datetime) -> list[ConversationMessage]:
    """Messages from one transcript file belonging to ``cwd`` since ``since``."""
    messages: list[ConversationMessage] = []

    with open(path, "rb") as f:
        for line in f:
            line_text = line.decode("utf-8", errors="replace").strip()
            if not line_text:
                continue

            try:
                entry = json.loads(line_text)
            except json.JSONDecodeError:
                # Skip malformed lines
                continue
            if not isinstance(entry, dict):
                continue

            role = entry.get("type")
            if role not in ("user", "assistant"):
                continue

            # Entries without a cwd are assumed to belong to this project
            entry_cwd = entry.get("cwd")
            if entry_cwd and entry_cwd != cwd:
                continue

            ts = parse_timestamp(entry.get("timestamp"))
            if ts < since:
                continue

            message = entry.get("message") or {}
            content = extract_content(message.get("content"))
            if not content:
                continue

            messages.append(ConversationMessage(role=role, content=content, timestamp=ts))

    return messages


def read_conversation(
    cwd: str,
    session_start: datetime,
    projects_dir: Path | None = None,
) -> list[ConversationMessage]:
    """Best-matching conversation for a session started in ``cwd``.

    Every transcript in the project's directory is scanned; the one with the
    most messages inside the session's time range wins. Returns an empty list
    when there is no transcript directory.
    """
    projects_dir = projects_dir or default_projects_dir()
    project_dir = projects_dir / encode_project_path(cwd)
    if not project_dir.is_dir():
        return []

    since = session_start - START_TOLERANCE
    best: list[ConversationMessage] = []
    for path in sorted(project_dir.glob("*.jsonl")):
        try:
            messages = parse_transcript(path, cwd, since)
        except OSError as e:
            logger.warning("Cannot read transcript: path=%s error=%s", path, e)
            continue
        if len(messages) > len(best):
            best = messages

    logger.debug("Transcript lookup: cwd=%s messages=%d", cwd, len(best))
    return best
