"""Command line interface for gitify-prompt.

Manages the capture daemon, shows captured sessions, and runs the
post-commit hook:
    gitify-prompt daemon start|stop|status|run|config|install-service
    gitify-prompt sessions [--repo PATH]
    gitify-prompt hook install|post-commit|wrap
"""

import sys
from pathlib import Path
from typing import Any

import click
import yaml

from gitify_prompt import git_utils
from gitify_prompt.capture.attach import run_wrapped
from gitify_prompt.commit.githook import install_post_commit_hook
from gitify_prompt.commit.trigger import CommitTrigger
from gitify_prompt.config import KNOWN_TOOLS, load_daemon_config, save_daemon_config
from gitify_prompt.daemon.client import DaemonClient
from gitify_prompt.daemon.launcher import start_daemon_background, stop_daemon
from gitify_prompt.daemon.pidfile import RuntimePaths
from gitify_prompt.daemon.service import install_service
from gitify_prompt.errors import (
    ConfigError,
    DaemonAlreadyRunningError,
    DaemonError,
    DaemonRequestError,
    HookExistsError,
)
from gitify_prompt.logging import setup_logging
from gitify_prompt.models import format_timestamp


def _setup_cli_logging() -> None:
    # Hooks run inside git; keep the terminal clean and log to the runtime dir
    setup_logging("cli", log_dir=RuntimePaths.default().runtime_dir, console=False)


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Capture AI assistant sessions and tie them to git commits."""
    if ctx.invoked_subcommand != "daemon":
        _setup_cli_logging()


# Daemon management


@cli.group()
@click.pass_context
def daemon(ctx: click.Context) -> None:
    """Manage the background capture daemon."""
    # The foreground daemon configures its own log file
    if ctx.invoked_subcommand != "run":
        _setup_cli_logging()


@daemon.command()
def start() -> None:
    """Start the daemon in the background."""
    try:
        pid = start_daemon_background()
    except DaemonAlreadyRunningError as e:
        click.echo(str(e))
        return
    except DaemonError as e:
        click.echo(f"Error starting daemon: {e}", err=True)
        sys.exit(1)
    click.echo(f"Daemon started (PID {pid})")


@daemon.command()
def stop() -> None:
    """Stop the daemon, saving its active sessions."""
    try:
        pid = stop_daemon()
    except DaemonError as e:
        click.echo(f"Error stopping daemon: {e}", err=True)
        sys.exit(1)
    if pid is None:
        click.echo("Daemon is not running")
    else:
        click.echo(f"Daemon stopped (PID {pid})")


@daemon.command()
def status() -> None:
    """Show whether the daemon is running and what it holds."""
    try:
        info = DaemonClient().get_status()
    except DaemonError:
        click.echo("Daemon is not running")
        sys.exit(1)

    click.echo(f"Daemon is running (PID {info['pid']})")
    click.echo(f"Active sessions: {info['activeSessions']}")
    for repo, count in sorted(info.get("sessionsByRepo", {}).items()):
        click.echo(f"  {repo}: {count}")
    paths = info.get("paths") or {}
    if paths.get("log"):
        click.echo(f"Log: {paths['log']}")


@daemon.command()
def run() -> None:
    """Run the daemon in the foreground."""
    from gitify_prompt.daemon.__main__ import main as run_daemon

    run_daemon()


@daemon.command("install-service")
def install_service_cmd() -> None:
    """Run the daemon under launchd (macOS) or systemd --user (Linux)."""
    try:
        installed = install_service()
    except DaemonError as e:
        click.echo(f"Error installing service: {e}", err=True)
        sys.exit(1)
    click.echo(f"Installed daemon service: {installed.path}")
    click.echo("To start it now:")
    for command in installed.start_commands:
        click.echo(f"  {command}")


def _parse_tool_setting(value: str) -> tuple[str, bool]:
    tool, sep, state = value.partition("=")
    if not sep or state.lower() not in ("on", "off", "true", "false"):
        raise click.BadParameter(f"expected TOOL=on|off, got {value!r}")
    if tool not in KNOWN_TOOLS:
        raise click.BadParameter(f"unknown tool {tool!r} (known: {', '.join(KNOWN_TOOLS)})")
    return tool, state.lower() in ("on", "true")


@daemon.command("config")
@click.option("--enable/--disable", "enabled", default=None, help="Turn automatic capture on or off")
@click.option("--tool", "tools", multiple=True, metavar="TOOL=on|off", help="Enable or disable one tool")
@click.option("--mask/--no-mask", "mask", default=None, help="Mask secrets in saved sessions")
@click.option("--exclude", "excludes", multiple=True, help="Exclude pattern (replaces the list)")
@click.option("--max-age-hours", type=float, default=None, help="Expire sessions older than this")
@click.option("--auto-cleanup/--no-auto-cleanup", "auto_cleanup", default=None, help="Sweep expired sessions")
def config_cmd(
    enabled: bool | None,
    tools: tuple[str, ...],
    mask: bool | None,
    excludes: tuple[str, ...],
    max_age_hours: float | None,
    auto_cleanup: bool | None,
) -> None:
    """Show or change the capture configuration."""
    updates: dict[str, Any] = {}
    if enabled is not None or tools:
        capture: dict[str, Any] = updates.setdefault("autoCapture", {})
        if enabled is not None:
            capture["enabled"] = enabled
        if tools:
            capture["tools"] = dict(_parse_tool_setting(t) for t in tools)
    if mask is not None or excludes:
        privacy: dict[str, Any] = updates.setdefault("privacy", {})
        if mask is not None:
            privacy["maskSensitiveData"] = mask
        if excludes:
            privacy["excludePatterns"] = list(excludes)
    if max_age_hours is not None or auto_cleanup is not None:
        storage: dict[str, Any] = updates.setdefault("storage", {})
        if max_age_hours is not None:
            storage["maxSessionAge"] = int(max_age_hours * 3_600_000)
        if auto_cleanup is not None:
            storage["autoCleanup"] = auto_cleanup

    client = DaemonClient()
    try:
        # A running daemon owns the file; let it rewrite and reload
        if client.is_running():
            current = client.save_config(updates) if updates else client.get_config()
        elif updates:
            current = save_daemon_config(load_daemon_config(), updates).to_dict()
        else:
            current = load_daemon_config().to_dict()
    except (ConfigError, DaemonRequestError, OSError) as e:
        click.echo(f"Error updating config: {e}", err=True)
        sys.exit(1)

    if updates:
        click.echo("Configuration updated")
    click.echo(yaml.safe_dump(current, sort_keys=False).rstrip())


# Sessions


@cli.command()
@click.option("--repo", type=click.Path(file_okay=False), help="Only sessions of this repository")
def sessions(repo: str | None) -> None:
    """List sessions the daemon has not saved yet."""
    repo_path = str(Path(repo).absolute()) if repo else None
    try:
        active = DaemonClient().get_active_sessions(repo_path)
    except DaemonError as e:
        click.echo(f"Daemon is not running ({e})", err=True)
        sys.exit(1)

    click.echo(f"{len(active)} active session(s)")
    for session in active:
        click.echo(
            f"\033[36m[{format_timestamp(session.start_time)}]\033[0m {session.id} "
            f"\033[32m{session.tool}\033[0m messages={len(session.messages)} "
            f"changes={len(session.code_changes)} repo={session.repo_tag}"
        )


# Git hook


@cli.group()
def hook() -> None:
    """Git post-commit hook and capture for wrapped tools."""


@hook.command()
@click.option("--repo", type=click.Path(exists=True, file_okay=False), default=".", help="Repository path")
@click.option("--force", is_flag=True, help="Replace an existing post-commit hook")
def install(repo: str, force: bool) -> None:
    """Install the post-commit hook into a repository."""
    repo_root = git_utils.get_repo_root(repo)
    if repo_root is None:
        click.echo(f"Not a git repository: {repo}", err=True)
        sys.exit(1)
    try:
        path = install_post_commit_hook(repo_root, force=force)
    except HookExistsError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Installed post-commit hook: {path}")


@hook.command("post-commit")
@click.option("--repo", type=click.Path(file_okay=False), default=None, help="Repository path")
@click.option("--commit", "commit_sha", default=None, help="Commit SHA (defaults to HEAD)")
def post_commit(repo: str | None, commit_sha: str | None) -> None:
    """Save captured sessions against the commit just made."""
    # Never fail the commit: every problem becomes a warning
    try:
        report = CommitTrigger(repo_root=repo, commit_sha=commit_sha).run()
    except (ValueError, OSError) as e:
        click.echo(f"gitify-prompt: warning: {e}", err=True)
        return

    for warning in report.warnings:
        click.echo(f"gitify-prompt: warning: {warning}", err=True)

    short_sha = (report.commit_sha or "uncommitted")[:8]
    if report.total_saved:
        click.echo(f"gitify-prompt: saved {report.total_saved} session(s) for commit {short_sha}")
    elif report.daemon_reachable:
        click.echo("gitify-prompt: no AI sessions to save for this commit")


@hook.command(context_settings={"ignore_unknown_options": True})
@click.option(
    "--tool",
    type=click.Choice(KNOWN_TOOLS),
    default="claude-code",
    show_default=True,
    help="Tool the wrapped command is",
)
@click.argument("command", nargs=-1, required=True, type=click.UNPROCESSED)
def wrap(tool: str, command: tuple[str, ...]) -> None:
    """Run COMMAND with write capture attached to its Python processes.

    Example: gitify-prompt hook wrap -- aider --model sonnet
    """
    try:
        code = run_wrapped(command, tool=tool)
    except FileNotFoundError:
        click.echo(f"Command not found: {command[0]}", err=True)
        sys.exit(127)
    sys.exit(code)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
