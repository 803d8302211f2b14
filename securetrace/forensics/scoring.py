"""securetrace.forensics.scoring

Deterministic risk rubric over the forensic chain.

Rubric (integers only, applied in this order):
  +15  per SUSPICIOUS_KEYWORD entry
  +25  per CRITICAL entry
  +10  per WARNING entry
  +20  per ANOMALY_DETECTED entry
  +50  once, if any entry's metadata reports an integrity-hash mismatch
Score = min(100, sum).

An entry can satisfy several rules (a CRITICAL anomaly scores +25 and +20).
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Final

from securetrace.core.events import LogEventType, Severity
from securetrace.core.models import AnalysisResult, ForensicLogEntry, RiskFactor
from securetrace.core.time import ms_to_iso

MAX_SCORE: Final = 100

FALLBACK_SUMMARY: Final = "Automated analysis failed. Manual review required."

_MISMATCH_FLAGS = ("integrityMismatch", "hashMismatch", "integrity_mismatch", "hash_mismatch")
_MISMATCH_MARKERS = ("INTEGRITY_HASH_MISMATCH", "HASH_MISMATCH")


def indicates_hash_mismatch(metadata: dict[str, Any]) -> bool:
    if any(bool(metadata.get(k)) for k in _MISMATCH_FLAGS):
        return True
    for k in ("type", "error", "action"):
        v = metadata.get(k)
        if isinstance(v, str) and v.upper() in _MISMATCH_MARKERS:
            return True
    return False


@dataclass(frozen=True, slots=True)
class _Rule:
    factor: str
    points: int
    matches: Callable[[ForensicLogEntry], bool]
    once: bool = False


RUBRIC: Final[tuple[_Rule, ...]] = (
    _Rule("Suspicious Keywords", 15, lambda e: e.event_type is LogEventType.SUSPICIOUS_KEYWORD),
    _Rule("Critical Severity", 25, lambda e: e.severity is Severity.CRITICAL),
    _Rule("Warning Severity", 10, lambda e: e.severity is Severity.WARNING),
    _Rule("Anomaly Detected", 20, lambda e: e.event_type is LogEventType.ANOMALY_DETECTED),
    _Rule("Integrity Hash Mismatch", 50, lambda e: indicates_hash_mismatch(e.metadata), once=True),
)


def describe_anomaly(entry: ForensicLogEntry) -> str:
    """One human-readable line per anomalous entry."""

    md = entry.metadata
    detail = next(
        (str(md[k]) for k in ("type", "action", "error", "reason") if md.get(k)),
        "no detail recorded",
    )
    extra = md.get("reason") if md.get("type") and md.get("reason") else None
    text = f"{ms_to_iso(entry.timestamp)} {entry.event_type} [{entry.severity}]: {detail}"
    return f"{text} ({extra})" if extra else text


def score_factors(entries: Sequence[ForensicLogEntry]) -> list[RiskFactor]:
    factors: list[RiskFactor] = []
    for rule in RUBRIC:
        count = sum(1 for e in entries if rule.matches(e))
        if count == 0:
            continue
        points = rule.points if rule.once else rule.points * count
        factors.append(RiskFactor(factor=rule.factor, points=points, count=count))
    return factors


def local_summary(score: int, entries: Sequence[ForensicLogEntry], anomalies: Sequence[str]) -> str:
    if not entries:
        return "No events recorded."
    level = "HIGH" if score >= 70 else "ELEVATED" if score >= 30 else "LOW"
    return (
        f"Risk {level} ({score}/100) across {len(entries)} events; "
        f"{len(anomalies)} anomalous entries."
    )


def compute_risk_analysis(entries: Sequence[ForensicLogEntry]) -> AnalysisResult:
    """Pure, deterministic rubric evaluation. No I/O, no clock."""

    entries = list(entries)
    factors = score_factors(entries)
    raw = sum(f.points for f in factors)
    score = max(0, min(MAX_SCORE, raw))

    anomalies = [
        describe_anomaly(e)
        for e in entries
        if e.severity is Severity.CRITICAL or e.event_type is LogEventType.ANOMALY_DETECTED
    ]

    return AnalysisResult(
        score=score,
        summary=local_summary(score, entries, anomalies),
        anomalies=anomalies,
        risk_factors=factors,
    )
