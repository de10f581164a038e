"""Error taxonomy & redaction.

Failures surfaced to the operator go through ``classify_error`` so the CLI
can print a stable category and never leaks credentials into logs.

Public API:
- classify_error(exc) -> ErrorInfo
- redact(text) -> str
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import requests

from .config import ConfigError
from .github_rest import GitHubAPIError

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"ghp_[A-Za-z0-9]{20,40}"),  # GitHub classic tokens
    re.compile(r"ghs_[A-Za-z0-9]{20,40}"),  # GitHub Actions installation tokens
    re.compile(r"github_pat_\w{20,}"),  # GitHub fine-grained tokens
    re.compile(r"Bearer\s+[A-Za-z0-9_\-\.]{8,}"),
]

_REDACTION_PLACEHOLDER = "<redacted>"

_AUTH_STATUSES = (401, 403)


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    transient: bool = False
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Replace token-looking substrings with a placeholder."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def _classify_api_error(exc: GitHubAPIError, msg: str, name: str) -> ErrorInfo | None:
    details = {"status": exc.status}
    low = (msg + " " + (exc.response_text or "")).lower()
    if exc.status == 429 or "rate limit" in low:  # noqa: PLR2004
        return ErrorInfo("github.rate_limit", msg, name, transient=True, details=details)
    if exc.status in _AUTH_STATUSES:
        return ErrorInfo("github.auth", msg, name, details=details)
    if exc.status == 404:  # noqa: PLR2004
        return ErrorInfo("github.not_found", msg, name, details=details)
    return None


def classify_error(exc: BaseException) -> ErrorInfo:
    """Best-effort classification of an exception.

    - ConfigError -> 'config'
    - GitHubAPIError -> by status ('github.rate_limit', 'github.auth', 'github.not_found')
    - requests connection / timeout failures and network-y keywords -> 'network', transient
    - Fallback -> 'generic'
    """
    msg = redact(str(exc) if exc else "")
    name = exc.__class__.__name__
    low = msg.lower()

    if isinstance(exc, ConfigError):
        return ErrorInfo("config", msg, name)
    if isinstance(exc, GitHubAPIError):
        info = _classify_api_error(exc, msg, name)
        if info is not None:
            return info
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return ErrorInfo("network", msg, name, transient=True)
    if "rate limit" in low or "secondary rate" in low:
        return ErrorInfo("github.rate_limit", msg, name, transient=True)
    if any(k in low for k in ("timeout", "connection reset", "temporarily unavailable")):
        return ErrorInfo("network", msg, name, transient=True)
    return ErrorInfo("generic", msg, name)


__all__ = ["ErrorInfo", "classify_error", "redact"]
