"""securetrace.core.time

This module is the *only* time helper surface in the codebase.

Forensic timestamps are integer milliseconds since the Unix epoch.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return an aware UTC datetime."""

    return datetime.now(tz=UTC)


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""

    return time.time_ns() // 1_000_000


def ms_to_dt(ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""

    return datetime.fromtimestamp(ms / 1000.0, tz=UTC)


def ms_to_iso(ms: int) -> str:
    """ISO-8601 UTC rendering with millisecond precision and a ``Z`` suffix."""

    return ms_to_dt(ms).isoformat(timespec="milliseconds").replace("+00:00", "Z")
