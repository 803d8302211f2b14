"""securetrace.security.redaction

Redaction helpers.

Two jobs: keep secrets out of process logs, and build the digest that is allowed
to leave the process for summarization (no message content, hashes cut short).
"""

from __future__ import annotations

import copy
import re
from collections.abc import Iterable
from typing import Any

from securetrace.core.models import ForensicLogEntry
from securetrace.core.time import ms_to_iso

_REDACTION_PATTERNS: list[tuple[str, str]] = [
    # Generic key/value
    (r"(?i)(api[_-]?key|secret|password)\s*[:=]\s*[^\s\"']+", "[REDACTED]"),
    # Bearer tokens
    (r"(?i)bearer\s+[a-zA-Z0-9._~+/=-]{16,}", "[REDACTED]"),
    # Provider-style API keys
    (r"sk-[a-zA-Z0-9_-]{20,}", "[REDACTED]"),
    (r"AIza[0-9A-Za-z_-]{30,}", "[REDACTED]"),
    # JWT
    (r"eyJ[a-zA-Z0-9_-]+\.eyJ[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+", "[REDACTED]"),
    # PEM private key blocks
    (r"-----BEGIN [A-Z ]*PRIVATE KEY-----[\s\S]+?-----END [A-Z ]*PRIVATE KEY-----", "[REDACTED]"),
]

_SENSITIVE_FIELD_NAMES = {
    "api_key",
    "apikey",
    "secret",
    "password",
    "token",
    "private_key",
    "session_key",
    "sessionkey",
    "auth",
    "authorization",
}

# Fields that may carry message content. These never leave the process.
CONTENT_FIELD_NAMES = frozenset({"content", "plaintext", "text", "message", "body"})


def redact_secrets(text: str) -> str:
    out = text
    for pattern, repl in _REDACTION_PATTERNS:
        out = re.sub(pattern, repl, out)
    return out


def sanitize_for_log(data: dict[str, Any]) -> dict[str, Any]:
    """Deep-copy and redact sensitive fields + embedded secrets."""

    def _walk(obj: Any) -> Any:
        if isinstance(obj, dict):
            new: dict[str, Any] = {}
            for k, v in obj.items():
                key = str(k).lower()
                if key in _SENSITIVE_FIELD_NAMES or key in CONTENT_FIELD_NAMES:
                    new[k] = "[REDACTED]"
                else:
                    new[k] = _walk(v)
            return new
        if isinstance(obj, list):
            return [_walk(v) for v in obj]
        if isinstance(obj, tuple):
            return [_walk(v) for v in obj]
        if isinstance(obj, str):
            return redact_secrets(obj)
        return obj

    return _walk(copy.deepcopy(data))


def truncate_hash(value: str, prefix_chars: int = 8) -> str:
    if len(value) <= prefix_chars:
        return value
    return value[:prefix_chars] + "..."


def _digest_metadata(metadata: dict[str, Any], prefix_chars: int) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for k, v in metadata.items():
        if str(k).lower() in CONTENT_FIELD_NAMES:
            continue
        if isinstance(v, str) and str(k).lower().endswith("hash"):
            out[k] = truncate_hash(v, prefix_chars)
        elif isinstance(v, dict):
            out[k] = _digest_metadata(v, prefix_chars)
        else:
            out[k] = v
    return sanitize_for_log(out)


def build_redacted_digest(
    entries: Iterable[ForensicLogEntry], *, hash_prefix_chars: int = 8
) -> list[dict[str, Any]]:
    """Project log entries into the shape handed to an external summarizer.

    Content-bearing metadata is dropped, secrets are redacted, and every hash is
    cut to a short prefix.
    """

    return [
        {
            "time": ms_to_iso(e.timestamp),
            "type": str(e.event_type),
            "severity": str(e.severity),
            "metadata": _digest_metadata(e.metadata, hash_prefix_chars),
            "hash": truncate_hash(e.hash, hash_prefix_chars),
        }
        for e in entries
    ]
