"""Git repository utilities."""

import subprocess
from functools import lru_cache
from pathlib import Path

from gitify_prompt.logging import get_logger

logger = get_logger("git_utils")


def _git(path: str | Path, *args: str) -> str | None:
    """Run ``git -C <path> <args>`` and return stripped stdout.

    Returns None when git is missing, the command fails, or the path does
    not exist.
    """
    try:
        result = subprocess.run(
            ["git", "-C", str(path), *args],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        logger.debug("git %s failed for %s: %s", " ".join(args), path, e)
        return None

    if result.returncode != 0:
        return None
    return result.stdout.strip()


def get_repo_root(path: str | Path) -> str | None:
    """Top-level directory of the work tree containing ``path``."""
    if not Path(path).exists():
        return None
    return _git(path, "rev-parse", "--show-toplevel") or None


def get_head_commit(path: str | Path) -> str | None:
    """Full SHA of HEAD, or None outside a repository / before the first commit."""
    return _git(path, "rev-parse", "HEAD") or None


def get_author(path: str | Path) -> dict[str, str] | None:
    """Configured git author ``{name, email}`` for the repository."""
    name = _git(path, "config", "user.name")
    email = _git(path, "config", "user.email")
    if not name and not email:
        return None
    return {"name": name or "", "email": email or ""}


def get_branch_info(path: str | Path) -> dict[str, str | None] | None:
    """Current branch and a best-guess parent branch.

    The parent is the configured upstream merge ref if there is one,
    otherwise ``main`` or ``master`` when the current branch is neither.
    """
    current = _git(path, "rev-parse", "--abbrev-ref", "HEAD")
    if not current:
        return None

    parent: str | None = None
    merge_ref = _git(path, "config", f"branch.{current}.merge")
    if merge_ref:
        parent = merge_ref.removeprefix("refs/heads/")

    if parent is None and current not in ("main", "master"):
        for candidate in ("main", "master"):
            if _git(path, "rev-parse", "--verify", "--quiet", candidate) is not None:
                parent = candidate
                break

    return {"current": current, "parent": parent}


def get_hooks_dir(repo_root: str | Path) -> Path | None:
    """Hooks directory git will run hooks from (honours core.hooksPath)."""
    hooks_dir = _git(repo_root, "rev-parse", "--git-path", "hooks")
    if not hooks_dir:
        return None
    path = Path(hooks_dir)
    if not path.is_absolute():
        path = Path(repo_root) / path
    return path


def is_ignored(repo_root: str | Path, file_path: str | Path) -> bool:
    """Whether ``git check-ignore`` matches ``file_path`` inside ``repo_root``."""
    try:
        result = subprocess.run(
            ["git", "-C", str(repo_root), "check-ignore", "-q", str(file_path)],
            capture_output=True,
            check=False,
        )
    except OSError:
        return False
    return result.returncode == 0


@lru_cache(maxsize=1024)
def get_git_repo_info(project_path: str | Path) -> str | None:
    """Extract git repository information from a project path.

    Tries to determine the remote URL or repository name for a given path.
    Returns None if:
    - The path does not exist
    - The path is not a git repository
    - Git is not installed
    - The repository has no remotes and we can't determine a name

    Args:
        project_path: Path to the project directory

    Returns:
        String identifying the repo (e.g., 'owner/repo' or 'repo_name'), or None
    """
    path = Path(project_path)
    if not path.exists():
        return None

    url = _git(path, "config", "--get", "remote.origin.url")
    if url:
        # https://github.com/owner/repo.git, git@github.com:owner/repo.git
        url = url.removesuffix(".git").replace(":", "/")
        parts = [p for p in url.split("/") if p]
        if len(parts) >= 2:
            return f"{parts[-2]}/{parts[-1]}"
        return parts[-1]

    if _git(path, "rev-parse", "--is-inside-work-tree") == "true":
        return path.name

    return None
