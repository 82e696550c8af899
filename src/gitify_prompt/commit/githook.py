"""Installation of the repository post-commit hook."""

import shlex
import stat
import sys
from pathlib import Path

from gitify_prompt import git_utils
from gitify_prompt.errors import HookExistsError
from gitify_prompt.logging import get_logger

logger = get_logger("githook")

HOOK_MARKER = "# installed by gitify-prompt"

HOOK_TEMPLATE = """#!/bin/sh
{marker}
# Ties captured AI sessions to the commit that was just made.
if command -v gitify-prompt >/dev/null 2>&1; then
    gitify-prompt hook post-commit || true
else
    {python} -m gitify_prompt hook post-commit || true
fi
"""


def hook_path(repo_root: str | Path) -> Path:
    hooks_dir = git_utils.get_hooks_dir(repo_root)
    if hooks_dir is not None:
        return hooks_dir / "post-commit"
    return Path(repo_root) / ".git" / "hooks" / "post-commit"


def render_hook() -> str:
    return HOOK_TEMPLATE.format(marker=HOOK_MARKER, python=shlex.quote(sys.executable))


def is_our_hook(path: Path) -> bool:
    try:
        return HOOK_MARKER in path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return False


def install_post_commit_hook(repo_root: str | Path, force: bool = False) -> Path:
    """Write the post-commit hook for ``repo_root``.

    Re-installing over our own hook is always allowed; a foreign hook is
    only replaced with ``force``.

    Raises:
        HookExistsError: If a foreign hook exists and ``force`` is False
    """
    path = hook_path(repo_root)
    if path.exists() and not is_our_hook(path) and not force:
        raise HookExistsError(f"{path} already exists; use --force to replace it")

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_hook())
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    logger.info("Installed post-commit hook: path=%s", path)
    return path
