"""Registering the daemon with the platform's per-user service manager.

macOS gets a LaunchAgent and Linux a systemd ``--user`` unit. Both run
``python -m gitify_prompt.daemon`` in the foreground with the current
runtime dir pinned, and restart it if it dies. Nothing here talks to
launchctl or systemctl; the caller prints the commands that load the
service.
"""

import plistlib
import sys
from dataclasses import dataclass
from pathlib import Path

from gitify_prompt.daemon.pidfile import RUNTIME_DIR_ENV_VAR, RuntimePaths
from gitify_prompt.errors import DaemonError
from gitify_prompt.logging import get_logger

logger = get_logger("service")

LAUNCHD_LABEL = "com.gitify-prompt.daemon"
SYSTEMD_UNIT = "gitify-prompt.service"
SERVICE_OUTPUT_LOG = "service.out.log"


@dataclass
class ServiceInstall:
    """An installed service definition and how to start it."""

    path: Path
    start_commands: list[str]


def daemon_command() -> list[str]:
    return [sys.executable, "-m", "gitify_prompt.daemon"]


def render_launchd_plist(paths: RuntimePaths) -> bytes:
    output = str(paths.runtime_dir / SERVICE_OUTPUT_LOG)
    return plistlib.dumps(
        {
            "Label": LAUNCHD_LABEL,
            "ProgramArguments": daemon_command(),
            "EnvironmentVariables": {RUNTIME_DIR_ENV_VAR: str(paths.runtime_dir)},
            "RunAtLoad": True,
            "KeepAlive": True,
            "StandardOutPath": output,
            "StandardErrorPath": output,
        }
    )


def render_systemd_unit(paths: RuntimePaths) -> str:
    exec_start = " ".join(daemon_command())
    return (
        "[Unit]\n"
        "Description=gitify-prompt capture daemon\n"
        "\n"
        "[Service]\n"
        "Type=simple\n"
        f"Environment={RUNTIME_DIR_ENV_VAR}={paths.runtime_dir}\n"
        f"ExecStart={exec_start}\n"
        "Restart=on-failure\n"
        "RestartSec=5\n"
        "\n"
        "[Install]\n"
        "WantedBy=default.target\n"
    )


def install_service(
    platform: str | None = None,
    home: Path | None = None,
    paths: RuntimePaths | None = None,
) -> ServiceInstall:
    """Write the service definition for this platform.

    Raises:
        DaemonError: On platforms without a supported service manager, or
            when the file cannot be written
    """
    platform = platform or sys.platform
    home = home or Path.home()
    paths = paths or RuntimePaths.default()

    if platform == "darwin":
        path = home / "Library" / "LaunchAgents" / f"{LAUNCHD_LABEL}.plist"
        content: bytes | str = render_launchd_plist(paths)
        start_commands = [f"launchctl load {path}"]
    elif platform.startswith("linux"):
        path = home / ".config" / "systemd" / "user" / SYSTEMD_UNIT
        content = render_systemd_unit(paths)
        start_commands = [
            "systemctl --user daemon-reload",
            f"systemctl --user enable --now {SYSTEMD_UNIT}",
        ]
    else:
        raise DaemonError(f"No supported service manager on platform {platform!r}; use 'gitify-prompt daemon start'")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise DaemonError(f"Cannot write service file {path}: {e}") from e

    logger.info("Installed daemon service: platform=%s path=%s", platform, path)
    return ServiceInstall(path=path, start_commands=start_commands)
