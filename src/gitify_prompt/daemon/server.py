"""Capture daemon server.

Owns one SessionRegistry and one PersistenceSink and exposes them over a
Unix domain socket. All requests are handled on a single asyncio event
loop, one at a time, so registry mutations never interleave.
"""

import asyncio
import contextlib
import os
import threading
from collections.abc import Callable
from typing import Any

from gitify_prompt.config import DaemonConfig, load_daemon_config, save_daemon_config
from gitify_prompt.daemon.client import DaemonClient
from gitify_prompt.daemon.pidfile import RuntimePaths, read_live_pid, remove_pid, write_pid
from gitify_prompt.daemon.protocol import (
    DELIMITER,
    MAX_MESSAGE_BYTES,
    decode_message,
    encode_message,
    error_response,
)
from gitify_prompt.daemon.registry import SessionRegistry
from gitify_prompt.daemon.sink import PersistenceSink, PersistOutcome
from gitify_prompt.errors import ConfigError, DaemonAlreadyRunningError, PersistenceError, ProtocolError
from gitify_prompt.logging import get_logger

logger = get_logger("daemon")

# Seconds between expiry sweeps
SWEEP_INTERVAL_SECONDS = 60.0

Handler = Callable[[dict[str, Any]], dict[str, Any]]


class MalformedRequestError(ValueError):
    """A request is missing arguments or has arguments of the wrong type."""


def _require(args: dict[str, Any], *names: str) -> None:
    missing = [n for n in names if args.get(n) is None]
    if missing:
        raise MalformedRequestError(f"Missing required argument(s): {', '.join(missing)}")


def _commit_arg(args: dict[str, Any]) -> str | None:
    return args.get("commitSha") or args.get("commitId")


class DaemonServer:
    """Long-running IPC server for capture sessions."""

    def __init__(
        self,
        paths: RuntimePaths | None = None,
        config: DaemonConfig | None = None,
        registry: SessionRegistry | None = None,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
    ) -> None:
        self.paths = paths or RuntimePaths.default()
        self.config = config or load_daemon_config()
        self.registry = registry if registry is not None else SessionRegistry()
        self.sink = PersistenceSink(self.registry, self.config)
        self.sweep_interval = sweep_interval

        self._server: asyncio.AbstractServer | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_event: asyncio.Event | None = None
        self._shutdown_requested = False
        self._stopped = False
        self._ready = threading.Event()
        self._connections: set[asyncio.StreamWriter] = set()

        self._handlers: dict[str, Handler] = {
            "createSession": self._create_session,
            "addMessage": self._add_message,
            "addCodeChange": self._add_code_change,
            "saveSession": self._save_session,
            "saveSessionsForRepo": self._save_sessions_for_repo,
            "getActiveSessions": self._get_active_sessions,
            "getSession": self._get_session,
            "getConfig": self._get_config,
            "saveConfig": self._save_config,
            "status": self._status,
            "ping": self._ping,
        }

    # Lifecycle

    def ensure_not_running(self) -> None:
        """Refuse to start over a live instance; discard a stale marker.

        Raises:
            DaemonAlreadyRunningError: If the PID file names a live process
                whose socket answers ``ping``
        """
        pid = read_live_pid(self.paths.pid)
        if pid is not None:
            if DaemonClient(self.paths.socket, timeout=1.0).is_running():
                raise DaemonAlreadyRunningError(f"Daemon is already running (PID {pid})")
            logger.info("PID file names a live but unreachable process, treating as stale: pid=%d", pid)
            remove_pid(self.paths.pid)

        if self.paths.socket.exists():
            logger.info("Removing leftover socket: path=%s", self.paths.socket)
            self.paths.socket.unlink(missing_ok=True)

    async def start(self) -> None:
        """Bind the socket and record our PID."""
        self.paths.runtime_dir.mkdir(parents=True, exist_ok=True)
        self.ensure_not_running()

        self._loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        self._server = await asyncio.start_unix_server(
            self._handle_client,
            path=str(self.paths.socket),
            limit=MAX_MESSAGE_BYTES,
        )
        os.chmod(self.paths.socket, 0o600)
        write_pid(self.paths.pid)
        self._stopped = False

        logger.info(
            "Daemon server started: pid=%d socket=%s config=%s",
            os.getpid(),
            self.paths.socket,
            self.config.path,
        )

    async def serve(self) -> None:
        """Start, serve until shutdown is requested, then stop."""
        await self.start()
        sweeper = asyncio.create_task(self._sweep_loop())
        self._ready.set()
        try:
            if not self._shutdown_requested:
                await self._stop_event.wait()
        finally:
            sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweeper
            await self.stop()

    def run(self) -> None:
        """Blocking entry point: run the server on a fresh event loop."""
        try:
            asyncio.run(self.serve())
        finally:
            self._ready.set()

    def wait_until_ready(self, timeout: float = 5.0) -> bool:
        return self._ready.wait(timeout)

    def request_shutdown(self) -> None:
        """Ask the server to stop; safe from signal handlers and other threads."""
        self._shutdown_requested = True
        if self._loop is not None and self._stop_event is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._stop_event.set)

    async def stop(self) -> None:
        """Persist remaining sessions, close the socket, remove the marker."""
        if self._stopped:
            return
        self._stopped = True
        logger.info("Stopping daemon server: active_sessions=%d", len(self.registry))

        report = self.sink.save_all()
        if report.saved or report.failed:
            logger.info("Shutdown save: saved=%d failed=%d skipped=%d", report.saved, report.failed, report.skipped)

        if self._server is not None:
            self._server.close()
            for writer in list(self._connections):
                writer.close()
            await self._server.wait_closed()
            self._server = None

        self.paths.socket.unlink(missing_ok=True)
        remove_pid(self.paths.pid)
        logger.info("Daemon server stopped")

    # Connection handling

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._connections.add(writer)
        logger.debug("Client connected")
        try:
            while True:
                try:
                    line = await reader.readuntil(DELIMITER)
                except asyncio.IncompleteReadError as e:
                    # EOF; a final request without a trailing newline still gets an answer
                    if e.partial.strip():
                        writer.write(encode_message(self.handle_line(e.partial)))
                        await writer.drain()
                    break
                except asyncio.LimitOverrunError:
                    writer.write(encode_message(error_response("Message too large")))
                    await writer.drain()
                    break

                if not line.strip():
                    continue
                writer.write(encode_message(self.handle_line(line)))
                await writer.drain()
        except (ConnectionResetError, BrokenPipeError) as e:
            logger.debug("Socket error: %s", e)
        finally:
            self._connections.discard(writer)
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()
            logger.debug("Client disconnected")

    def handle_line(self, line: bytes) -> dict[str, Any]:
        try:
            message = decode_message(line)
        except ProtocolError as e:
            return error_response(str(e))
        return self.dispatch(message)

    def dispatch(self, message: dict[str, Any]) -> dict[str, Any]:
        """Run one request; failures become an error response for it alone."""
        args = dict(message)
        command = args.pop("command", None)
        handler = self._handlers.get(command) if isinstance(command, str) else None
        if handler is None:
            return error_response(f"Unknown command: {command}")

        try:
            return handler(args)
        except (MalformedRequestError, ConfigError, ValueError, TypeError) as e:
            return error_response(str(e))
        except Exception as e:
            logger.exception("Error handling command: command=%s", command)
            return error_response(f"Internal error: {e}")

    # Command handlers

    def _create_session(self, args: dict[str, Any]) -> dict[str, Any]:
        metadata = args.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise MalformedRequestError("metadata must be an object")
        session_id = self.registry.create_session(args.get("tool") or "generic", metadata)
        return {"sessionId": session_id}

    def _add_message(self, args: dict[str, Any]) -> dict[str, Any]:
        _require(args, "sessionId", "role", "content")
        known = self.registry.add_message(args["sessionId"], args["role"], str(args["content"]))
        return {"success": True, "known": known}

    def _add_code_change(self, args: dict[str, Any]) -> dict[str, Any]:
        _require(args, "sessionId", "filePath")
        known = self.registry.add_code_change(
            args["sessionId"],
            args["filePath"],
            args.get("beforeContent") or "",
            args.get("afterContent") or "",
        )
        return {"success": True, "known": known}

    def _save_session(self, args: dict[str, Any]) -> dict[str, Any]:
        _require(args, "sessionId")
        outcome = self.sink.save_session(args["sessionId"], _commit_arg(args))
        return {
            "success": outcome is not PersistOutcome.FAILED,
            "saved": outcome is PersistOutcome.SAVED,
        }

    def _save_sessions_for_repo(self, args: dict[str, Any]) -> dict[str, Any]:
        _require(args, "repoPath")
        report = self.sink.save_sessions_for_repo(args["repoPath"], _commit_arg(args))
        return {
            "success": report.failed == 0,
            "sessionsSaved": report.saved,
            "sessionsFailed": report.failed,
        }

    def _get_active_sessions(self, args: dict[str, Any]) -> dict[str, Any]:
        sessions = self.registry.list_active(args.get("repoPath"))
        return {"sessions": [s.to_dict() for s in sessions]}

    def _get_session(self, args: dict[str, Any]) -> dict[str, Any]:
        _require(args, "sessionId")
        session = self.registry.get_session(args["sessionId"])
        return {"session": session.to_dict() if session else None}

    def _get_config(self, args: dict[str, Any]) -> dict[str, Any]:
        return {"config": self.config.to_dict()}

    def _save_config(self, args: dict[str, Any]) -> dict[str, Any]:
        _require(args, "config")
        self.config = save_daemon_config(self.config, args["config"])
        self.sink.config = self.config
        return {"config": self.config.to_dict()}

    def _status(self, args: dict[str, Any]) -> dict[str, Any]:
        return {
            "running": True,
            "pid": os.getpid(),
            "activeSessions": len(self.registry),
            "sessionsByRepo": self.registry.sessions_by_repo(),
            "config": self.config.to_dict(),
            "paths": {
                "socket": str(self.paths.socket),
                "pid": str(self.paths.pid),
                "log": str(self.paths.log),
            },
        }

    def _ping(self, args: dict[str, Any]) -> dict[str, Any]:
        return {"pong": True}

    # Expiry

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                self.sweep_expired()
            except Exception:
                logger.exception("Error during expiry sweep")

    def sweep_expired(self) -> int:
        """Retire sessions older than storage.maxSessionAge.

        Expired sessions with messages are moved to their repository's
        staging area so the next commit still picks them up. Sessions with no
        repository have no commit to wait for and are saved straight to the
        fallback store. Empty ones are dropped. Returns the number of sessions
        removed.
        """
        storage = self.config.storage
        if not storage.auto_cleanup:
            return 0

        removed = 0
        for session in self.registry.expired(storage.max_session_age_ms):
            if session.messages and session.repo_path is None:
                outcome, path = self.sink.persist(session)
                if outcome is PersistOutcome.FAILED:
                    continue
                logger.info("Saved expired untagged session: id=%s path=%s", session.id, path)
            elif session.messages:
                try:
                    path = self.sink.stage(session)
                except PersistenceError as e:
                    logger.error("Cannot stage expired session: id=%s error=%s", session.id, e)
                    continue
                logger.info("Staged expired session: id=%s path=%s", session.id, path)
            else:
                logger.info("Dropping expired empty session: id=%s", session.id)
            self.registry.remove(session.id)
            removed += 1
        return removed
