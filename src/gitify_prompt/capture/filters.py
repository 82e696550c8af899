"""Decides which file writes are worth recording as code changes."""

from pathlib import Path

from gitify_prompt import git_utils
from gitify_prompt.store import PROMPTS_DIR

VCS_DIRS = frozenset({".git", ".hg", ".svn"})

DEPENDENCY_DIRS = frozenset({"node_modules", "venv", ".venv", "site-packages", "bower_components", "vendor"})

BUILD_DIRS = frozenset(
    {
        "dist",
        "build",
        "out",
        ".next",
        ".nuxt",
        ".output",
        ".svelte-kit",
        ".cache",
        ".turbo",
        ".vercel",
        ".netlify",
        "coverage",
        ".nyc_output",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".ruff_cache",
        ".tox",
    }
)

NOISE_FILES = frozenset({".DS_Store", "Thumbs.db"})


def exclusion_reason(
    file_path: str | Path,
    repo_root: str | Path,
    check_gitignore: bool = True,
) -> str | None:
    """Why a write to ``file_path`` should not be captured, or None to capture it.

    Args:
        file_path: Absolute or repo-relative path being written
        repo_root: Root of the repository the session belongs to
        check_gitignore: Also consult ``git check-ignore``
    """
    root = Path(repo_root).resolve()
    path = Path(file_path)
    if not path.is_absolute():
        path = root / path
    path = path.resolve()

    try:
        relative = path.relative_to(root)
    except ValueError:
        return "outside_repo"

    parts = relative.parts
    if not parts:
        return "repo_root"
    dirs = set(parts[:-1])

    if PROMPTS_DIR in parts:
        return "prompts_store"
    if dirs & VCS_DIRS or parts[-1] in VCS_DIRS:
        return "vcs_metadata"
    if dirs & DEPENDENCY_DIRS:
        return "dependency_dir"
    if dirs & BUILD_DIRS:
        return "build_output"
    if parts[-1] in NOISE_FILES:
        return "noise_file"
    if check_gitignore and git_utils.is_ignored(root, relative):
        return "gitignored"
    return None


def should_capture(file_path: str | Path, repo_root: str | Path, check_gitignore: bool = True) -> bool:
    return exclusion_reason(file_path, repo_root, check_gitignore) is None


MIN_MESSAGE_LENGTH = 10

NOISE_PREFIXES = ("DEBUG:", "TRACE:", "[", "Reading file", "Writing file")


def is_noise_message(content: str) -> bool:
    """Whether an assistant message is tool chatter rather than conversation."""
    return len(content) < MIN_MESSAGE_LENGTH or content.startswith(NOISE_PREFIXES)
