"""Error taxonomy & redaction.

Two tiers of failure exist in a run:

- ``PreconditionError`` subclasses are fatal configuration / environment
  problems (missing credentials, unreadable backlog, missing tracker labels).
  They are raised before any tracker mutation and are never retried.
- ``GitHubAPIError`` (see ``github_rest``) is raised by individual tracker
  calls; callers decide whether it is per-item or fatal.

``classify_error`` and ``redact`` prepare tracker failures for safe inclusion in
logs and reports.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ghp_[A-Za-z0-9]{20,40}"),  # classic tokens
    re.compile(r"gh[osu]_[A-Za-z0-9]{20,40}"),  # oauth / server / user tokens
    re.compile(r"github_pat_\w{20,}"),  # fine-grained tokens
    re.compile(r"(?i)bearer\s+[A-Za-z0-9_\-.]{20,}"),
]

_REDACTION_PLACEHOLDER = "<redacted>"


class PreconditionError(RuntimeError):
    """Fatal precondition failure; aborts the run before any mutation."""


class CredentialsError(PreconditionError):
    pass


class BacklogError(PreconditionError):
    pass


class MissingLabelError(PreconditionError):
    def __init__(self, missing: list[str]):
        super().__init__(f"Required labels missing in tracker: {', '.join(missing)}")
        self.missing = missing


class ConfigError(PreconditionError):
    pass


@dataclass
class ErrorInfo:
    category: str
    message: str


def redact(text: str) -> str:
    """Replace anything that looks like a GitHub credential with a placeholder."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of a tracker call failure.

    - rate limit / abuse wording -> 'github.rate_limit'
    - HTTP 401/403 otherwise -> 'github.auth'
    - network keywords -> 'network'
    - fallback -> 'generic'
    """
    msg = str(exc) if exc else ""
    low = msg.lower()
    status = getattr(exc, "status", None)
    response_text = str(getattr(exc, "response_text", "") or "").lower()

    if "rate limit" in low or "rate limit" in response_text or "abuse" in response_text:
        return ErrorInfo("github.rate_limit", redact(msg))
    if status in (401, 403):
        return ErrorInfo("github.auth", redact(msg))
    if any(k in low for k in ("timeout", "timed out", "connection reset", "temporarily unavailable")):
        return ErrorInfo("network", redact(msg))
    return ErrorInfo("generic", redact(msg))


__all__ = [
    "PreconditionError",
    "CredentialsError",
    "BacklogError",
    "MissingLabelError",
    "ConfigError",
    "ErrorInfo",
    "classify_error",
    "redact",
]
