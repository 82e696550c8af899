"""Result type for capture operations.

Capture runs inside (or next to) someone else's tool, so its entry points
report failures as values instead of raising. Callers that have nothing
useful to do with a failure hand it to ``discard``, which logs it.
"""

from dataclasses import dataclass
from enum import StrEnum

from gitify_prompt.logging import get_logger

logger = get_logger("capture")


class CaptureErrorKind(StrEnum):
    UNREACHABLE_DAEMON = "unreachable_daemon"
    UNKNOWN_SESSION = "unknown_session"
    FILTERED = "filtered"
    DISABLED = "disabled"
    INTERNAL = "internal"


@dataclass(frozen=True)
class CaptureOutcome:
    error: CaptureErrorKind | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, detail: str = "") -> "CaptureOutcome":
        return cls(None, detail)

    @classmethod
    def failure(cls, error: CaptureErrorKind, detail: str = "") -> "CaptureOutcome":
        return cls(error, detail)


# Expected during normal operation; only worth a debug line
_QUIET_KINDS = {CaptureErrorKind.FILTERED, CaptureErrorKind.DISABLED}


def discard(outcome: CaptureOutcome) -> None:
    """Log a failed outcome and drop it."""
    if outcome.ok:
        return
    if outcome.error in _QUIET_KINDS:
        logger.debug("Capture skipped: kind=%s detail=%s", outcome.error, outcome.detail)
    else:
        logger.warning("Capture failed: kind=%s detail=%s", outcome.error, outcome.detail)
