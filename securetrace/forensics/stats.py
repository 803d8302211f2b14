"""securetrace.forensics.stats

Dashboard counters over a chain snapshot.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Literal

from securetrace.core.events import Severity
from securetrace.core.models import ForensicLogEntry

_BUCKET_FORMATS = {"minute": "%H:%M", "hour": "%H:00"}


def _label(timestamp_ms: int, bucket: str) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC).strftime(_BUCKET_FORMATS[bucket])


def activity_histogram(
    entries: Sequence[ForensicLogEntry],
    bucket: Literal["minute", "hour"] = "minute",
    limit: int | None = None,
) -> list[tuple[str, int]]:
    """Event counts per UTC time bucket, in first-seen (chronological) order.

    ``limit`` keeps only the most recent buckets (the dashboard shows 10).
    """

    if bucket not in _BUCKET_FORMATS:
        raise ValueError(f"unknown bucket: {bucket!r}")
    if limit is not None and limit < 1:
        raise ValueError("limit must be >= 1")
    counts: dict[str, int] = {}
    for e in entries:
        label = _label(e.timestamp, bucket)
        counts[label] = counts.get(label, 0) + 1
    items = list(counts.items())
    return items[-limit:] if limit is not None else items


def message_count(entries: Sequence[ForensicLogEntry]) -> int:
    return sum(1 for e in entries if "MESSAGE" in str(e.event_type))


def alert_count(entries: Sequence[ForensicLogEntry]) -> int:
    return sum(1 for e in entries if e.severity in (Severity.WARNING, Severity.CRITICAL))


def severity_breakdown(entries: Sequence[ForensicLogEntry]) -> dict[str, int]:
    counts = Counter(str(e.severity) for e in entries)
    return {str(s): counts.get(str(s), 0) for s in Severity}
