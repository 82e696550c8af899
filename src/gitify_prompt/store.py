"""On-disk layout of the per-repository record store.

    <repo>/.prompts/sessions/<epoch-ms>-<commit>-<session-id>.json   persisted records
    <repo>/.prompts/.meta/session-<session-id>.json                  staging files
"""

import json
import os
import tempfile
import time
from pathlib import Path
from typing import Any

PROMPTS_DIR = ".prompts"
RECORDS_SUBDIR = "sessions"
STAGING_SUBDIR = ".meta"
STAGING_PREFIX = "session-"
UNCOMMITTED = "uncommitted"


def records_dir(root: str | Path) -> Path:
    return Path(root) / PROMPTS_DIR / RECORDS_SUBDIR


def staging_dir(root: str | Path) -> Path:
    return Path(root) / PROMPTS_DIR / STAGING_SUBDIR


def staging_path(root: str | Path, session_id: str) -> Path:
    return staging_dir(root) / f"{STAGING_PREFIX}{session_id}.json"


def list_staging_files(root: str | Path) -> list[Path]:
    directory = staging_dir(root)
    if not directory.exists():
        return []
    return sorted(directory.glob(f"{STAGING_PREFIX}*.json"))


def record_filename(session_id: str, commit_sha: str | None, now_ms: int | None = None) -> str:
    """Timestamp-qualified name; concurrent writers never collide on it."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    return f"{now_ms}-{commit_sha or UNCOMMITTED}-{session_id}.json"


def write_json(path: Path, data: dict[str, Any]) -> Path:
    """Write ``data`` as indented JSON, replacing ``path`` atomically."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=".json")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return path


def read_json(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {path}")
    return data
