"""securetrace.core.models

Core domain models.

A log entry is immutable. Its hash is a commitment made at creation time and is
never recomputed in place; verification recomputes and compares.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from securetrace.core.codec import canonical_json, sha256_hex
from securetrace.core.events import LogEventType, Severity

GENESIS_HASH = "0" * 64


class ForensicLogEntry(BaseModel):
    """Immutable forensic record, linked to its predecessor by hash."""

    id: str
    timestamp: int
    user_id: str
    event_type: LogEventType
    metadata: dict[str, Any] = Field(default_factory=dict)
    severity: Severity = Severity.INFO
    previous_hash: str = GENESIS_HASH
    hash: str

    model_config = {"frozen": True}


def compute_entry_hash(
    *,
    previous_hash: str,
    entry_id: str,
    timestamp: int,
    user_id: str,
    event_type: LogEventType | str,
    severity: Severity | str,
    metadata: dict[str, Any],
) -> str:
    """Compute the canonical SHA-256 entry hash.

    Hash = sha256(
        previous_hash | timestamp | id | event_type | severity | user_id |
        canonical_metadata_json
    )
    """

    header_parts = [
        previous_hash,
        str(int(timestamp)),
        entry_id,
        str(event_type),
        str(severity),
        user_id,
    ]
    data = "|".join(header_parts) + "|" + canonical_json(metadata)
    return sha256_hex(data.encode("utf-8"))


def expected_hash(entry: ForensicLogEntry, *, previous_hash: str | None = None) -> str:
    """Recompute ``entry``'s hash from its stored fields."""

    return compute_entry_hash(
        previous_hash=entry.previous_hash if previous_hash is None else previous_hash,
        entry_id=entry.id,
        timestamp=entry.timestamp,
        user_id=entry.user_id,
        event_type=entry.event_type,
        severity=entry.severity,
        metadata=entry.metadata,
    )


class RiskFactor(BaseModel):
    factor: str
    points: int
    count: int

    model_config = {"frozen": True}


class AnalysisResult(BaseModel):
    """Derived view over the log chain. Recomputed on demand, never ground truth."""

    score: int = Field(ge=0, le=100)
    summary: str
    anomalies: list[str] = Field(default_factory=list)
    risk_factors: list[RiskFactor] = Field(default_factory=list)

    model_config = {"frozen": True}
