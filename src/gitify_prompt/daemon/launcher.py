"""Starting and stopping the daemon as a detached background process."""

import os
import signal
import subprocess
import sys
import time
from pathlib import Path

from gitify_prompt.daemon.client import DaemonClient
from gitify_prompt.daemon.pidfile import (
    RUNTIME_DIR_ENV_VAR,
    RuntimePaths,
    is_process_alive,
    read_live_pid,
    read_pid,
    remove_pid,
)
from gitify_prompt.errors import DaemonAlreadyRunningError, DaemonError
from gitify_prompt.logging import get_logger

logger = get_logger("launcher")

START_TIMEOUT_SECONDS = 10.0
STOP_TIMEOUT_SECONDS = 10.0
POLL_INTERVAL_SECONDS = 0.1


def start_daemon_background(
    paths: RuntimePaths | None = None,
    timeout: float = START_TIMEOUT_SECONDS,
) -> int:
    """Spawn the daemon detached from this terminal and wait until it answers.

    The child gets its own session (no controlling terminal, immune to the
    parent's SIGHUP) and its stdio goes to the daemon log file. Start is
    only reported successful once ``ping`` succeeds.

    Returns:
        PID of the daemon process

    Raises:
        DaemonAlreadyRunningError: If a daemon already answers on the socket
        DaemonError: If the child exits or never becomes reachable
    """
    paths = paths or RuntimePaths.default()
    client = DaemonClient(paths.socket, timeout=1.0)
    if client.is_running():
        raise DaemonAlreadyRunningError(f"Daemon is already running (PID {read_live_pid(paths.pid)})")

    paths.runtime_dir.mkdir(parents=True, exist_ok=True)
    env = dict(os.environ)
    env[RUNTIME_DIR_ENV_VAR] = str(paths.runtime_dir)

    with open(paths.log, "a", encoding="utf-8") as log_file:
        proc = subprocess.Popen(
            [sys.executable, "-m", "gitify_prompt.daemon"],
            stdin=subprocess.DEVNULL,
            stdout=log_file,
            stderr=subprocess.STDOUT,
            cwd=str(Path.home()),
            env=env,
            start_new_session=True,
            close_fds=True,
        )

    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if client.is_running():
            logger.info("Daemon started in background: pid=%d", proc.pid)
            return proc.pid
        if proc.poll() is not None:
            raise DaemonError(f"Daemon exited during startup (code {proc.returncode}); see {paths.log}")
        time.sleep(POLL_INTERVAL_SECONDS)

    raise DaemonError(f"Daemon did not become reachable within {timeout:.0f}s; see {paths.log}")


def stop_daemon(paths: RuntimePaths | None = None, timeout: float = STOP_TIMEOUT_SECONDS) -> int | None:
    """Send SIGTERM to the daemon and wait for it to exit.

    The PID comes from the daemon's own status reply, never from the marker
    file alone: a marker left by a crashed daemon may name a PID the system
    has since handed to an unrelated process. Such a marker is removed.

    Returns:
        PID that was stopped, or None if no daemon answers on the socket

    Raises:
        DaemonError: If the process is still alive after ``timeout``
    """
    paths = paths or RuntimePaths.default()
    try:
        pid = int(DaemonClient(paths.socket, timeout=1.0).get_status()["pid"])
    except (DaemonError, KeyError, TypeError, ValueError) as e:
        stale = read_pid(paths.pid)
        if stale is not None:
            logger.warning("Removing stale daemon marker: pid=%d error=%s", stale, e)
            remove_pid(paths.pid)
        return None

    recorded = read_pid(paths.pid)
    if recorded is not None and recorded != pid:
        logger.warning("Daemon marker disagrees with running daemon: marker=%d daemon=%d", recorded, pid)

    try:
        os.kill(pid, signal.SIGTERM)
    except ProcessLookupError:
        return pid

    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if not is_process_alive(pid):
            logger.info("Daemon stopped: pid=%d", pid)
            return pid
        time.sleep(POLL_INTERVAL_SECONDS)

    raise DaemonError(f"Daemon (PID {pid}) did not exit within {timeout:.0f}s")
