"""Tests for git utilities (subprocess is mocked)."""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from gitify_prompt import git_utils


def completed(stdout: str = "", returncode: int = 0) -> MagicMock:
    return MagicMock(stdout=stdout, returncode=returncode)


@pytest.fixture(autouse=True)
def clear_cache() -> None:
    git_utils.get_git_repo_info.cache_clear()


class TestGitCommand:
    """Tests for the _git wrapper."""

    def test_returns_stripped_stdout(self, tmp_path: Path) -> None:
        with patch("gitify_prompt.git_utils.subprocess.run", return_value=completed("abc\n")) as run:
            assert git_utils._git(tmp_path, "rev-parse", "HEAD") == "abc"

        assert run.call_args.args[0] == ["git", "-C", str(tmp_path), "rev-parse", "HEAD"]

    def test_nonzero_exit(self, tmp_path: Path) -> None:
        with patch("gitify_prompt.git_utils.subprocess.run", return_value=completed("", 128)):
            assert git_utils._git(tmp_path, "rev-parse", "HEAD") is None

    def test_git_missing(self, tmp_path: Path) -> None:
        with patch("gitify_prompt.git_utils.subprocess.run", side_effect=FileNotFoundError("git")):
            assert git_utils._git(tmp_path, "status") is None


class TestRepoQueries:
    """Tests for repo root, HEAD, author and branch lookups."""

    def test_repo_root(self, tmp_path: Path) -> None:
        with patch("gitify_prompt.git_utils._git", return_value=str(tmp_path)):
            assert git_utils.get_repo_root(tmp_path) == str(tmp_path)

    def test_repo_root_missing_path(self, tmp_path: Path) -> None:
        assert git_utils.get_repo_root(tmp_path / "nope") is None

    def test_head_commit(self, tmp_path: Path) -> None:
        with patch("gitify_prompt.git_utils._git", return_value="c0ffee"):
            assert git_utils.get_head_commit(tmp_path) == "c0ffee"

    def test_author(self, tmp_path: Path) -> None:
        with patch("gitify_prompt.git_utils._git", side_effect=["Ada", "ada@example.com"]):
            assert git_utils.get_author(tmp_path) == {"name": "Ada", "email": "ada@example.com"}

    def test_author_unconfigured(self, tmp_path: Path) -> None:
        with patch("gitify_prompt.git_utils._git", return_value=None):
            assert git_utils.get_author(tmp_path) is None

    def test_branch_with_upstream(self, tmp_path: Path) -> None:
        with patch("gitify_prompt.git_utils._git", side_effect=["feature/x", "refs/heads/develop"]):
            assert git_utils.get_branch_info(tmp_path) == {"current": "feature/x", "parent": "develop"}

    def test_branch_falls_back_to_main(self, tmp_path: Path) -> None:
        with patch("gitify_prompt.git_utils._git", side_effect=["feature/x", None, "abc"]):
            assert git_utils.get_branch_info(tmp_path) == {"current": "feature/x", "parent": "main"}

    def test_main_has_no_parent(self, tmp_path: Path) -> None:
        with patch("gitify_prompt.git_utils._git", side_effect=["main", None]):
            assert git_utils.get_branch_info(tmp_path) == {"current": "main", "parent": None}

    def test_hooks_dir_relative(self, tmp_path: Path) -> None:
        with patch("gitify_prompt.git_utils._git", return_value=".git/hooks"):
            assert git_utils.get_hooks_dir(tmp_path) == tmp_path / ".git" / "hooks"


class TestIsIgnored:
    """Tests for is_ignored."""

    def test_ignored(self, tmp_path: Path) -> None:
        with patch("gitify_prompt.git_utils.subprocess.run", return_value=completed(returncode=0)):
            assert git_utils.is_ignored(tmp_path, "build.log") is True

    def test_not_ignored(self, tmp_path: Path) -> None:
        with patch("gitify_prompt.git_utils.subprocess.run", return_value=completed(returncode=1)):
            assert git_utils.is_ignored(tmp_path, "app.py") is False

    def test_git_missing(self, tmp_path: Path) -> None:
        with patch("gitify_prompt.git_utils.subprocess.run", side_effect=OSError):
            assert git_utils.is_ignored(tmp_path, "app.py") is False


class TestGetGitRepoInfo:
    """Tests for get_git_repo_info."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://github.com/owner/repo.git",
            "git@github.com:owner/repo.git",
            "ssh://git@github.com/owner/repo",
        ],
    )
    def test_remote_urls(self, tmp_path: Path, url: str) -> None:
        with patch("gitify_prompt.git_utils._git", return_value=url):
            assert git_utils.get_git_repo_info(tmp_path) == "owner/repo"

    def test_no_remote_uses_folder_name(self, tmp_path: Path) -> None:
        with patch("gitify_prompt.git_utils._git", side_effect=[None, "true"]):
            assert git_utils.get_git_repo_info(tmp_path) == tmp_path.name

    def test_not_a_repository(self, tmp_path: Path) -> None:
        with patch("gitify_prompt.git_utils._git", side_effect=[None, None]):
            assert git_utils.get_git_repo_info(tmp_path) is None

    def test_missing_path(self, tmp_path: Path) -> None:
        assert git_utils.get_git_repo_info(tmp_path / "missing") is None


def test_real_git_outside_repository(tmp_path: Path) -> None:
    """Should return None when git runs outside any work tree."""
    try:
        subprocess.run(["git", "--version"], capture_output=True, check=True)
    except (OSError, subprocess.CalledProcessError):
        pytest.skip("git not installed")
    assert git_utils.get_head_commit(tmp_path) is None
