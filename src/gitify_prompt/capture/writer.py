"""File-writer capability that records code changes as it writes.

Host tools that can be modified write files through a ``FileWriter``; a
``CapturingFileWriter`` reads the prior on-disk content, performs the write
through an inner writer, and reports ``(path, before, after)`` to a capture
callback. Tools that cannot be modified get the same writer installed by
``gitify_prompt.capture.hooks``.
"""

from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from gitify_prompt.capture.outcome import CaptureErrorKind, CaptureOutcome, discard

ChangeCallback = Callable[[str, str, str], CaptureOutcome]


class FileWriter(Protocol):
    def write_text(
        self,
        path: str | Path,
        data: str,
        encoding: str | None = None,
        errors: str | None = None,
        newline: str | None = None,
    ) -> int: ...

    def write_bytes(self, path: str | Path, data: bytes) -> int: ...


class DirectFileWriter:
    """Writes straight to disk with ``open``; never intercepted."""

    def write_text(
        self,
        path: str | Path,
        data: str,
        encoding: str | None = None,
        errors: str | None = None,
        newline: str | None = None,
    ) -> int:
        with open(path, "w", encoding=encoding or "utf-8", errors=errors, newline=newline) as f:
            return f.write(data)

    def write_bytes(self, path: str | Path, data: bytes) -> int:
        with open(path, "wb") as f:
            return f.write(data)


def read_prior_content(path: Path) -> str:
    """Current on-disk text of ``path``; empty for new or unreadable files."""
    try:
        return path.read_bytes().decode("utf-8", errors="replace")
    except OSError:
        return ""


class CapturingFileWriter:
    """FileWriter that reports every successful write as a code change."""

    def __init__(self, on_change: ChangeCallback, inner: FileWriter | None = None) -> None:
        self._on_change = on_change
        self._inner = inner or DirectFileWriter()

    def write_text(
        self,
        path: str | Path,
        data: str,
        encoding: str | None = None,
        errors: str | None = None,
        newline: str | None = None,
    ) -> int:
        target = Path(path).absolute()
        before = read_prior_content(target)
        written = self._inner.write_text(target, data, encoding=encoding, errors=errors, newline=newline)
        self._report(target, before, data)
        return written

    def write_bytes(self, path: str | Path, data: bytes) -> int:
        target = Path(path).absolute()
        before = read_prior_content(target)
        written = self._inner.write_bytes(target, data)
        self._report(target, before, bytes(data).decode("utf-8", errors="replace"))
        return written

    def _report(self, path: Path, before: str, after: str) -> None:
        # The write already happened; capture problems must not surface to the caller
        try:
            outcome = self._on_change(str(path), before, after)
        except Exception as e:
            outcome = CaptureOutcome.failure(CaptureErrorKind.INTERNAL, f"{type(e).__name__}: {e}")
        discard(outcome)
