"""Tests for the post-commit trigger."""

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from gitify_prompt import store
from gitify_prompt.commit.trigger import CommitTrigger
from gitify_prompt.config import DaemonConfig
from gitify_prompt.daemon.client import DaemonClient
from gitify_prompt.daemon.registry import SessionRegistry
from gitify_prompt.daemon.sink import PersistenceSink
from gitify_prompt.errors import DaemonRequestError, DaemonUnreachableError


@pytest.fixture
def repo(tmp_path: Path) -> Iterator[Path]:
    root = tmp_path / "repo"
    root.mkdir()
    with (
        patch("gitify_prompt.commit.trigger.git_utils.get_repo_root", return_value=str(root)),
        patch("gitify_prompt.commit.trigger.git_utils.get_head_commit", return_value="c0ffee"),
        patch("gitify_prompt.daemon.sink.git_context", return_value={}),
    ):
        yield root


@pytest.fixture
def client() -> MagicMock:
    client = MagicMock(spec=DaemonClient)
    client.save_sessions_for_repo_report.return_value = {"saved": 2, "failed": 0}
    return client


def stage_session(repo: Path, message: str | None) -> Path:
    """Write a staging file the way injected capture does."""
    registry = SessionRegistry()
    session_id = registry.create_session("claude-code", {"cwd": str(repo)})
    if message is not None:
        registry.add_message(session_id, "user", message)
    return PersistenceSink(registry, DaemonConfig()).stage(registry.get_session(session_id))


def trigger(repo: Path, client: MagicMock, **kwargs) -> CommitTrigger:
    return CommitTrigger(repo_root=repo, client=client, config=DaemonConfig(), **kwargs)


class TestDaemonSave:
    """Tests for the daemon part of the commit trigger."""

    def test_saves_repo_sessions_at_head(self, repo: Path, client: MagicMock) -> None:
        report = trigger(repo, client).run()

        client.save_sessions_for_repo_report.assert_called_once_with(str(repo), "c0ffee")
        assert report.daemon_saved == 2
        assert report.total_saved == 2
        assert report.daemon_reachable is True
        assert report.warnings == []

    def test_explicit_commit(self, repo: Path, client: MagicMock) -> None:
        trigger(repo, client, commit_sha="feedface").run()
        client.save_sessions_for_repo_report.assert_called_once_with(str(repo), "feedface")

    def test_daemon_unreachable_is_warning(self, repo: Path, client: MagicMock) -> None:
        client.save_sessions_for_repo_report.side_effect = DaemonUnreachableError("refused")

        report = trigger(repo, client).run()

        assert report.daemon_reachable is False
        assert report.daemon_saved == 0
        assert any("not reachable" in w for w in report.warnings)

    def test_daemon_error_is_warning(self, repo: Path, client: MagicMock) -> None:
        client.save_sessions_for_repo_report.side_effect = DaemonRequestError("boom")

        report = trigger(repo, client).run()

        assert report.daemon_reachable is True
        assert any("boom" in w for w in report.warnings)

    def test_failed_writes_reported(self, repo: Path, client: MagicMock) -> None:
        client.save_sessions_for_repo_report.return_value = {"saved": 1, "failed": 1}

        report = trigger(repo, client).run()

        assert report.daemon_failed == 1
        assert any("could not be written" in w for w in report.warnings)

    def test_not_a_repository(self, tmp_path: Path, client: MagicMock) -> None:
        with patch("gitify_prompt.commit.trigger.git_utils.get_repo_root", return_value=None):
            with pytest.raises(ValueError):
                CommitTrigger(client=client, config=DaemonConfig()).run()


class TestStagingSweep:
    """Tests for merging staging files into the record store."""

    def test_staged_session_persisted_with_commit(self, repo: Path, client: MagicMock) -> None:
        staging = stage_session(repo, "offline work")

        report = trigger(repo, client).run()

        assert report.staged_saved == 1
        assert report.total_saved == 3
        assert not staging.exists()
        records = list(store.records_dir(repo).glob("*.json"))
        assert len(records) == 1
        assert "-c0ffee-" in records[0].name
        assert store.read_json(records[0])["metadata"]["commitSha"] == "c0ffee"

    def test_empty_staging_file_dropped(self, repo: Path, client: MagicMock) -> None:
        staging = stage_session(repo, None)

        report = trigger(repo, client).run()

        assert report.staged_saved == 0
        assert not staging.exists()
        assert not store.records_dir(repo).exists()

    def test_sweeps_even_when_daemon_down(self, repo: Path, client: MagicMock) -> None:
        client.save_sessions_for_repo_report.side_effect = DaemonUnreachableError("refused")
        stage_session(repo, "offline work")

        report = trigger(repo, client).run()

        assert report.staged_saved == 1
        assert report.total_saved == 1

    def test_unreadable_staging_file_kept(self, repo: Path, client: MagicMock) -> None:
        broken = store.staging_path(repo, "broken")
        broken.parent.mkdir(parents=True)
        broken.write_text("{not json")

        report = trigger(repo, client).run()

        assert report.staged_failed == 1
        assert broken.exists()

    def test_write_failure_keeps_staging_file(self, repo: Path, client: MagicMock) -> None:
        staging = stage_session(repo, "offline work")

        with patch("gitify_prompt.daemon.sink.store.write_json", side_effect=OSError("read-only")):
            report = trigger(repo, client).run()

        assert report.staged_failed == 1
        assert staging.exists()
