"""Post-commit trigger: tie captured sessions to the commit just made.

Runs from the repository's post-commit hook. Asks the daemon to persist the
repository's active sessions against HEAD, then merges any staging files
left by injected capture into the record store.
"""

from dataclasses import dataclass, field
from pathlib import Path

from gitify_prompt import git_utils, store
from gitify_prompt.config import DaemonConfig, load_daemon_config
from gitify_prompt.daemon.client import DaemonClient
from gitify_prompt.daemon.registry import SessionRegistry
from gitify_prompt.daemon.sink import PersistenceSink
from gitify_prompt.errors import DaemonRequestError, DaemonUnreachableError, PersistenceError
from gitify_prompt.logging import get_logger
from gitify_prompt.models import format_timestamp, utc_now

logger = get_logger("commit")


@dataclass
class CommitReport:
    repo_root: str
    commit_sha: str | None
    daemon_reachable: bool = True
    daemon_saved: int = 0
    daemon_failed: int = 0
    staged_saved: int = 0
    staged_failed: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def total_saved(self) -> int:
        return self.daemon_saved + self.staged_saved


class CommitTrigger:
    """Persist everything captured for a repository against one commit."""

    def __init__(
        self,
        repo_root: str | Path | None = None,
        commit_sha: str | None = None,
        client: DaemonClient | None = None,
        config: DaemonConfig | None = None,
        sink: PersistenceSink | None = None,
    ) -> None:
        self._repo_root = str(repo_root) if repo_root else None
        self._commit_sha = commit_sha
        self.client = client or DaemonClient()
        self.config = config or load_daemon_config()
        self.sink = sink or PersistenceSink(SessionRegistry(), self.config)

    def resolve_repo_root(self) -> str:
        """Explicit root, else the work tree containing the current directory.

        Raises:
            ValueError: If no repository can be found
        """
        if self._repo_root:
            return git_utils.get_repo_root(self._repo_root) or self._repo_root
        root = git_utils.get_repo_root(Path.cwd())
        if root is None:
            raise ValueError("Not inside a git repository")
        return root

    def run(self) -> CommitReport:
        repo_root = self.resolve_repo_root()
        commit_sha = self._commit_sha or git_utils.get_head_commit(repo_root)
        report = CommitReport(repo_root=repo_root, commit_sha=commit_sha)

        try:
            counts = self.client.save_sessions_for_repo_report(repo_root, commit_sha)
            report.daemon_saved = counts["saved"]
            report.daemon_failed = counts["failed"]
        except DaemonUnreachableError as e:
            report.daemon_reachable = False
            report.warnings.append(f"capture daemon not reachable ({e}); only staged sessions were saved")
            logger.warning("Daemon unreachable during commit: repo=%s error=%s", repo_root, e)
        except DaemonRequestError as e:
            report.warnings.append(f"capture daemon refused to save sessions: {e}")
            logger.error("Daemon error during commit: repo=%s error=%s", repo_root, e)

        if report.daemon_failed:
            report.warnings.append(f"{report.daemon_failed} session(s) could not be written; they remain in memory")

        self.sweep_staging(repo_root, commit_sha, report)

        logger.info(
            "Commit capture done: repo=%s commit=%s daemon_saved=%d staged_saved=%d",
            repo_root,
            commit_sha,
            report.daemon_saved,
            report.staged_saved,
        )
        return report

    def sweep_staging(self, repo_root: str, commit_sha: str | None, report: CommitReport) -> None:
        """Move every staging file of ``repo_root`` into the record store."""
        for path in store.list_staging_files(repo_root):
            try:
                record = store.read_json(path)
            except (OSError, ValueError) as e:
                report.staged_failed += 1
                report.warnings.append(f"unreadable staging file {path.name}: {e}")
                logger.error("Cannot read staging file: path=%s error=%s", path, e)
                continue

            if not record.get("messages"):
                logger.info("Dropping staging file without messages: path=%s", path)
                path.unlink(missing_ok=True)
                continue

            metadata = record.setdefault("metadata", {})
            metadata["commitSha"] = commit_sha
            metadata["savedAt"] = format_timestamp(utc_now())

            try:
                written = self.sink.write_record(record, repo_root)
            except (PersistenceError, KeyError) as e:
                report.staged_failed += 1
                report.warnings.append(f"staging file {path.name} kept: {e}")
                logger.error("Cannot persist staging file: path=%s error=%s", path, e)
                continue

            path.unlink(missing_ok=True)
            report.staged_saved += 1
            logger.info("Persisted staged session: id=%s path=%s", record.get("id"), written)
