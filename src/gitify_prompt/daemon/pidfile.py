"""Runtime paths and the daemon's liveness marker (PID file)."""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from gitify_prompt.logging import get_logger

logger = get_logger("pidfile")

RUNTIME_DIR_ENV_VAR = "GITIFY_PROMPT_RUNTIME_DIR"


@dataclass(frozen=True)
class RuntimePaths:
    """Socket, PID file and log file of one daemon instance."""

    runtime_dir: Path

    @property
    def socket(self) -> Path:
        return self.runtime_dir / "daemon.sock"

    @property
    def pid(self) -> Path:
        return self.runtime_dir / "daemon.pid"

    @property
    def log(self) -> Path:
        return self.runtime_dir / "daemon.log"

    @classmethod
    def default(cls) -> "RuntimePaths":
        """Per-user runtime dir, overridable with GITIFY_PROMPT_RUNTIME_DIR."""
        override = os.environ.get(RUNTIME_DIR_ENV_VAR)
        if override:
            return cls(Path(override).expanduser())
        return cls(Path(tempfile.gettempdir()) / f"gitify-prompt-{os.getuid()}")


def is_process_alive(pid: int) -> bool:
    """Signal 0 checks for existence without touching the process."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but belongs to another user
        return True
    return True


def write_pid(path: Path, pid: int | None = None) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(str(pid if pid is not None else os.getpid()))


def read_pid(path: Path) -> int | None:
    """PID recorded in ``path``; None if missing or unparsable."""
    try:
        return int(path.read_text().strip())
    except (FileNotFoundError, ValueError):
        return None


def read_live_pid(path: Path) -> int | None:
    """PID from the marker if that process is alive.

    A marker naming a dead process (or holding garbage) is stale and is
    removed on the spot.
    """
    if not path.exists():
        return None
    pid = read_pid(path)
    if pid is not None and is_process_alive(pid):
        return pid
    logger.info("Removing stale PID file: path=%s pid=%s", path, pid)
    path.unlink(missing_ok=True)
    return None


def remove_pid(path: Path) -> None:
    path.unlink(missing_ok=True)
