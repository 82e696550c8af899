"""Attach injected capture to a host tool launched through gitify-prompt.

``gitify-prompt hook wrap -- <command>`` runs the command with a generated
``sitecustomize`` module first on ``PYTHONPATH``. Any Python interpreter the
command starts imports it during startup, before the tool's own code, and it
calls ``hooks.activate()``. A ``sitecustomize`` the environment already had
is imported right after ours so wrapping never hides it.
"""

import os
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from gitify_prompt.capture import hooks
from gitify_prompt.daemon.pidfile import RUNTIME_DIR_ENV_VAR, RuntimePaths
from gitify_prompt.logging import get_logger

logger = get_logger("attach")

SITE_DIR_NAME = "site"
SITECUSTOMIZE_FILENAME = "sitecustomize.py"

# Directory holding the gitify_prompt package, for hosts on another interpreter
PACKAGE_ROOT = str(Path(hooks.__file__).resolve().parents[2])

SITECUSTOMIZE_TEMPLATE = '''\
# Generated by gitify-prompt. Starts capture when {activate_var}=1.
import importlib.machinery
import importlib.util
import os
import sys

if os.environ.get("{activate_var}") == "1":
    if {package_root!r} not in sys.path:
        sys.path.append({package_root!r})
    try:
        from gitify_prompt.capture import hooks as _hooks

        _hooks.activate()
    except ImportError:
        # Host interpreter lacks gitify-prompt's dependencies
        pass

# Run the sitecustomize this one shadows, if any
_here = os.path.dirname(os.path.abspath(__file__))
_rest = [p for p in sys.path if os.path.abspath(p or ".") != _here]
_spec = importlib.machinery.PathFinder.find_spec("sitecustomize", _rest)
if _spec is not None and _spec.loader is not None:
    _spec.loader.exec_module(importlib.util.module_from_spec(_spec))
'''


def site_dir(paths: RuntimePaths | None = None) -> Path:
    paths = paths or RuntimePaths.default()
    return paths.runtime_dir / SITE_DIR_NAME


def render_sitecustomize() -> str:
    return SITECUSTOMIZE_TEMPLATE.format(activate_var=hooks.ACTIVATE_ENV_VAR, package_root=PACKAGE_ROOT)


def write_sitecustomize(directory: Path) -> Path:
    """Write the generated module into ``directory``; rewritten only when it changed."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / SITECUSTOMIZE_FILENAME
    content = render_sitecustomize()
    if not path.exists() or path.read_text(encoding="utf-8") != content:
        path.write_text(content, encoding="utf-8")
        logger.debug("Wrote %s", path)
    return path


def wrap_environment(
    tool: str,
    directory: Path,
    paths: RuntimePaths | None = None,
    base_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Environment that activates capture in any Python process started with it."""
    env = dict(os.environ if base_env is None else base_env)
    env[hooks.ACTIVATE_ENV_VAR] = "1"
    env[hooks.TOOL_ENV_VAR] = tool
    if paths is not None:
        env[RUNTIME_DIR_ENV_VAR] = str(paths.runtime_dir)

    existing = env.get("PYTHONPATH")
    env["PYTHONPATH"] = os.pathsep.join([str(directory), existing]) if existing else str(directory)
    return env


def run_wrapped(command: Sequence[str], tool: str = "claude-code", paths: RuntimePaths | None = None) -> int:
    """Run ``command`` with capture attached and return its exit code.

    Raises:
        FileNotFoundError: If the command does not exist
    """
    paths = paths or RuntimePaths.default()
    directory = site_dir(paths)
    write_sitecustomize(directory)
    env = wrap_environment(tool, directory, paths)

    logger.info("Running wrapped command: tool=%s command=%s", tool, command[0])
    return subprocess.run(list(command), env=env, check=False).returncode
