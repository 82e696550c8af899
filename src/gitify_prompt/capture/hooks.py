"""Adapter that routes ``pathlib`` writes through a capturing writer.

This is the only module that patches the standard library. It replaces
``Path.write_text`` and ``Path.write_bytes`` for the current process so that
a host tool which cannot be changed to use a ``FileWriter`` still has its
writes captured. ``uninstall`` restores the originals.
"""

import logging
import os
import threading
from pathlib import Path

from gitify_prompt.capture.outcome import discard
from gitify_prompt.capture.writer import CapturingFileWriter
from gitify_prompt.daemon.pidfile import RuntimePaths
from gitify_prompt.errors import GitifyPromptError
from gitify_prompt.logging import PACKAGE_LOGGER, get_logger, setup_logging

logger = get_logger("hooks")

ACTIVATE_ENV_VAR = "GITIFY_PROMPT_HOOK"
TOOL_ENV_VAR = "GITIFY_PROMPT_TOOL"

_lock = threading.Lock()
_originals: dict[str, object] = {}
_active_capture = None


def is_installed() -> bool:
    return bool(_originals)


def install(writer: CapturingFileWriter) -> None:
    """Patch ``Path.write_text``/``Path.write_bytes`` to go through ``writer``."""
    with _lock:
        if _originals:
            raise RuntimeError("Write hooks are already installed")

        _originals["write_text"] = Path.write_text
        _originals["write_bytes"] = Path.write_bytes

        def write_text(self, data, encoding=None, errors=None, newline=None):
            return writer.write_text(self, data, encoding=encoding, errors=errors, newline=newline)

        def write_bytes(self, data):
            return writer.write_bytes(self, data)

        Path.write_text = write_text
        Path.write_bytes = write_bytes

    logger.debug("Installed pathlib write hooks")


def uninstall() -> None:
    """Restore the original ``pathlib`` methods; no-op if not installed."""
    with _lock:
        if not _originals:
            return
        Path.write_text = _originals.pop("write_text")
        Path.write_bytes = _originals.pop("write_bytes")

    logger.debug("Removed pathlib write hooks")


def activate(cwd: str | None = None):
    """Start injected-hook capture for this process when enabled.

    Meant to be called at host-tool startup (for example from a
    ``sitecustomize`` module) when ``GITIFY_PROMPT_HOOK=1``. Returns the
    running capture, or None when disabled or not inside a repository.
    """
    global _active_capture

    if os.environ.get(ACTIVATE_ENV_VAR) != "1":
        return None
    if _active_capture is not None:
        return _active_capture

    _log_to_runtime_dir()

    # Imported here: the injected capture pulls in the IPC client
    from gitify_prompt.capture.injected import InjectedHookCapture

    try:
        capture = InjectedHookCapture(tool=os.environ.get(TOOL_ENV_VAR, "claude-code"), cwd=cwd)
        outcome = capture.start()
    except GitifyPromptError as e:
        logger.warning("Injected capture not started: %s", e)
        return None
    if not outcome.ok:
        logger.debug("Injected capture not started: %s", outcome.error)
        return None

    capture.install()
    _active_capture = capture
    return capture


def deactivate() -> None:
    """Stop capture started by ``activate`` and stage what it still holds."""
    global _active_capture

    capture = _active_capture
    _active_capture = None
    if capture is None:
        return
    capture.uninstall()
    discard(capture.finish())


def _log_to_runtime_dir() -> None:
    """Keep capture logs out of the host tool's terminal.

    The host owns stderr. Unless something in the process already set up
    gitify-prompt logging, records go to ``hook.log`` in the runtime dir and
    never propagate to the host's root logger or ``logging.lastResort``.
    """
    package = logging.getLogger(PACKAGE_LOGGER)
    if package.handlers:
        return

    try:
        setup_logging("hook", log_dir=RuntimePaths.default().runtime_dir, console=False)
    except OSError:
        package.addHandler(logging.NullHandler())
    package.propagate = False
