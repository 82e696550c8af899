"""Client for talking to the capture daemon over its Unix socket.

Every call opens a fresh connection, sends one request, waits for the
matching response and closes. Calls never block longer than ``timeout``.
"""

import socket
import time
from pathlib import Path
from typing import Any

from gitify_prompt.daemon.pidfile import RuntimePaths
from gitify_prompt.daemon.protocol import (
    DELIMITER,
    MAX_MESSAGE_BYTES,
    build_request,
    decode_message,
    encode_message,
)
from gitify_prompt.errors import DaemonRequestError, DaemonUnreachableError, ProtocolError
from gitify_prompt.models import CaptureSession

DEFAULT_TIMEOUT = 5.0


class DaemonClient:
    """Synchronous request/response client for the daemon."""

    def __init__(self, socket_path: Path | None = None, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.socket_path = socket_path or RuntimePaths.default().socket
        self.timeout = timeout

    def send(self, command: str, **args: Any) -> dict[str, Any]:
        """Send one request and return its response.

        Raises:
            DaemonUnreachableError: Socket missing, connection refused, or
                the response did not arrive within ``timeout``
            DaemonRequestError: The daemon answered with an error
        """
        deadline = time.monotonic() + self.timeout
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.settimeout(self.timeout)
            sock.connect(str(self.socket_path))
            sock.sendall(encode_message(build_request(command, **args)))
            line = self._read_line(sock, deadline)
        except (FileNotFoundError, ConnectionRefusedError, ConnectionResetError, BrokenPipeError) as e:
            raise DaemonUnreachableError(f"Cannot connect to daemon: {e}") from e
        except TimeoutError as e:
            raise DaemonUnreachableError("Request timeout") from e
        except OSError as e:
            raise DaemonUnreachableError(f"Cannot connect to daemon: {e}") from e
        finally:
            sock.close()

        try:
            response = decode_message(line)
        except ProtocolError as e:
            raise DaemonRequestError(str(e)) from e
        if "error" in response:
            raise DaemonRequestError(response["error"])
        return response

    def _read_line(self, sock: socket.socket, deadline: float) -> bytes:
        buffer = bytearray()
        while DELIMITER not in buffer:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TimeoutError("Request timeout")
            sock.settimeout(remaining)
            chunk = sock.recv(65536)
            if not chunk:
                raise ConnectionResetError("Daemon closed the connection")
            buffer.extend(chunk)
            if len(buffer) > MAX_MESSAGE_BYTES:
                raise DaemonRequestError("Response too large")
        line, _, _ = bytes(buffer).partition(DELIMITER)
        return line

    def is_running(self) -> bool:
        """True if the daemon answers ``ping``."""
        try:
            return bool(self.send("ping").get("pong"))
        except (DaemonUnreachableError, DaemonRequestError):
            return False

    def get_status(self) -> dict[str, Any]:
        return self.send("status")

    def create_session(self, tool: str, metadata: dict[str, Any] | None = None) -> str:
        return self.send("createSession", tool=tool, metadata=metadata or {})["sessionId"]

    def add_message(self, session_id: str, role: str, content: str) -> bool:
        """Append a message; False if the daemon no longer knows the session."""
        response = self.send("addMessage", sessionId=session_id, role=role, content=content)
        return response.get("known", True)

    def add_code_change(self, session_id: str, file_path: str, before_content: str, after_content: str) -> bool:
        response = self.send(
            "addCodeChange",
            sessionId=session_id,
            filePath=file_path,
            beforeContent=before_content,
            afterContent=after_content,
        )
        return response.get("known", True)

    def save_session(self, session_id: str, commit_sha: str | None = None) -> bool:
        """Persist one session; True if a record was written."""
        return bool(self.send("saveSession", sessionId=session_id, commitSha=commit_sha).get("saved"))

    def save_sessions_for_repo(self, repo_path: str, commit_sha: str | None) -> int:
        """Persist all sessions of a repository; returns the saved count."""
        return self.save_sessions_for_repo_report(repo_path, commit_sha)["saved"]

    def save_sessions_for_repo_report(self, repo_path: str, commit_sha: str | None) -> dict[str, int]:
        """Saved and failed counts for a repository save."""
        response = self.send("saveSessionsForRepo", repoPath=repo_path, commitSha=commit_sha)
        return {
            "saved": response.get("sessionsSaved", 0),
            "failed": response.get("sessionsFailed", 0),
        }

    def get_active_sessions(self, repo_path: str | None = None) -> list[CaptureSession]:
        response = self.send("getActiveSessions", repoPath=repo_path)
        return [CaptureSession.from_dict(s) for s in response["sessions"]]

    def get_session(self, session_id: str) -> CaptureSession | None:
        data = self.send("getSession", sessionId=session_id).get("session")
        return CaptureSession.from_dict(data) if data else None

    def get_config(self) -> dict[str, Any]:
        return self.send("getConfig")["config"]

    def save_config(self, updates: dict[str, Any]) -> dict[str, Any]:
        return self.send("saveConfig", config=updates)["config"]
