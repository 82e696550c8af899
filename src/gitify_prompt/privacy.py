"""Privacy filtering applied to sessions before they are written to disk.

Two independent controls from the ``privacy`` config section:
- ``excludePatterns``: glob patterns; code changes to matching files are
  dropped from persisted records.
- ``maskSensitiveData``: credential-looking substrings in messages and
  code-change contents are replaced with ``[REDACTED]``.
"""

import fnmatch
import re
from pathlib import PurePath
from typing import ClassVar

REDACTED = "[REDACTED]"


class SensitiveDataMasker:
    """Replaces credentials and secrets in free text."""

    PATTERNS: ClassVar[dict[str, re.Pattern[str]]] = {
        "private_key": re.compile(
            r"-----BEGIN (?:RSA |EC |OPENSSH |PGP )?PRIVATE KEY(?: BLOCK)?-----.*?"
            r"-----END (?:RSA |EC |OPENSSH |PGP )?PRIVATE KEY(?: BLOCK)?-----",
            re.DOTALL,
        ),
        "aws_access_key": re.compile(r"AKIA[0-9A-Z]{16}"),
        "github_token": re.compile(r"gh[pousr]_[a-zA-Z0-9]{36}"),
        "slack_token": re.compile(r"xox[baprs]-[0-9a-zA-Z-]{10,72}"),
        "anthropic_key": re.compile(r"sk-ant-[a-zA-Z0-9_\-]{20,}"),
        "openai_key": re.compile(r"sk-(?:proj-)?[a-zA-Z0-9_\-]{20,}"),
        "stripe_key": re.compile(r"[sr]k_live_[0-9a-zA-Z]{24,}"),
        "jwt": re.compile(r"eyJ[a-zA-Z0-9_-]+\.eyJ[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+"),
        "database_url": re.compile(r"(?i)\b((?:postgres(?:ql)?|mysql|mongodb|redis)://[^:\s]+:)[^@\s]+(@)"),
        "assignment": re.compile(
            r"(?i)\b((?:password|passwd|pwd|secret|api[_-]?key|apikey|access[_-]?token|auth[_-]?token)"
            r"\s*[:=]\s*['\"]?)([^'\"\s]{8,})"
        ),
    }

    def mask(self, text: str) -> str:
        if not text:
            return text
        for name, pattern in self.PATTERNS.items():
            if name in ("database_url", "assignment"):
                # Keep the key/scheme so the masked text stays readable
                text = pattern.sub(
                    lambda m: m.group(1) + REDACTED + (m.group(2) if name == "database_url" else ""),
                    text,
                )
            else:
                text = pattern.sub(REDACTED, text)
        return text


def matches_exclude_pattern(file_path: str, patterns: list[str]) -> bool:
    """Whether ``file_path`` (full path or basename) matches any glob.

    Matching is case-insensitive so ``*secret*`` also catches ``Secrets.yaml``.
    """
    if not patterns:
        return False
    lowered = file_path.lower()
    name = PurePath(file_path).name.lower()
    for pattern in patterns:
        pat = pattern.lower()
        if fnmatch.fnmatchcase(name, pat) or fnmatch.fnmatchcase(lowered, pat):
            return True
    return False
