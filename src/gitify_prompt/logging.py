"""Logging configuration for gitify-prompt.

Every component logs through ``gitify_prompt.<component>`` loggers. Handlers
are attached once, to the ``gitify_prompt`` package logger, by whichever
entry point runs first: the daemon writes ``daemon.log`` and the CLI writes
``cli.log``, both in the runtime directory.
"""

import logging
import os
import sys
import tempfile
from pathlib import Path

PACKAGE_LOGGER = "gitify_prompt"
LEVEL_ENV_VAR = "GITIFY_PROMPT_LOG_LEVEL"

# Used only when an entry point has no runtime dir to hand
DEFAULT_LOG_DIR = Path(tempfile.gettempdir()) / "gitify-prompt"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _level_from_env(default: int) -> int:
    name = os.environ.get(LEVEL_ENV_VAR, "").upper()
    level = logging.getLevelName(name) if name else default
    return level if isinstance(level, int) else default


def setup_logging(
    name: str,
    log_dir: Path | None = None,
    level: int = logging.INFO,
    console: bool = True,
) -> logging.Logger:
    """Configure logging for a gitify-prompt component.

    Args:
        name: Component name; also the log file name (<log_dir>/<name>.log)
        log_dir: Directory for the log file (defaults to DEFAULT_LOG_DIR)
        level: Level used unless GITIFY_PROMPT_LOG_LEVEL overrides it
        console: Also log to stderr. Never stdout: capture hooks run inside
            other tools' processes and git hook output is read by people.

    Returns:
        The component's logger
    """
    log_dir = log_dir or DEFAULT_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    level = _level_from_env(level)

    package = logging.getLogger(PACKAGE_LOGGER)
    package.setLevel(level)
    logger = get_logger(name)

    log_file = (log_dir / f"{name}.log").absolute()
    for handler in package.handlers:
        if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == log_file:
            return logger
    # A process logs to one file; switching components replaces it
    for handler in list(package.handlers):
        package.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: list[logging.Handler] = [logging.FileHandler(log_file, encoding="utf-8")]
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        package.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger for a component, named ``gitify_prompt.<name>``.

    Messages go nowhere until an entry point calls setup_logging().
    """
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")
