"""securetrace.forensics.chain

The forensic journal: append-only entries with a hash chain.

Each entry commits to its predecessor's hash, so verification is a walk from
genesis. Editing any stored field, deleting an entry, inserting one, or
reordering entries breaks the walk.

Appends are serialized by a lock; reads take a snapshot and never block.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from collections.abc import Callable, Iterator, Sequence
from typing import Any

from securetrace.core.codec import canonical_json
from securetrace.core.events import LogEventType, Severity
from securetrace.core.exceptions import LogChainError
from securetrace.core.models import GENESIS_HASH, ForensicLogEntry, compute_entry_hash, expected_hash
from securetrace.core.time import now_ms

logger = logging.getLogger(__name__)


def _coerce_event_type(value: LogEventType | str) -> LogEventType:
    try:
        return LogEventType(str(value))
    except ValueError as e:
        raise LogChainError(f"unknown event type: {value!r}") from e


def _coerce_severity(value: Severity | str) -> Severity:
    try:
        return Severity(str(value))
    except ValueError as e:
        raise LogChainError(f"unknown severity: {value!r}") from e


def first_invalid_index(entries: Sequence[ForensicLogEntry]) -> int | None:
    """Index of the first entry that breaks the chain, or None if intact."""

    prev = GENESIS_HASH
    for i, entry in enumerate(entries):
        if entry.previous_hash != prev:
            return i
        if expected_hash(entry, previous_hash=prev) != entry.hash:
            return i
        prev = entry.hash
    return None


def verify_entries(entries: Sequence[ForensicLogEntry]) -> bool:
    """Recompute every hash from stored fields and check every link."""

    return first_invalid_index(entries) is None


class ForensicLogChain:
    """In-memory, append-only, hash-linked ledger of security events."""

    def __init__(
        self,
        *,
        default_user_id: str = "unknown",
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.default_user_id = default_user_id
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: list[ForensicLogEntry] = []
        self._last_hash = GENESIS_HASH
        self._closed = False

    def append(
        self,
        event_type: LogEventType | str,
        metadata: dict[str, Any] | None = None,
        severity: Severity | str = Severity.INFO,
        user_id: str | None = None,
    ) -> ForensicLogEntry:
        et = _coerce_event_type(event_type)
        sev = _coerce_severity(severity)
        try:
            meta_canon = json.loads(canonical_json(metadata or {}))
        except (TypeError, ValueError) as e:
            raise LogChainError(f"metadata is not JSON-serializable: {e}") from e
        if not isinstance(meta_canon, dict):
            raise LogChainError("metadata must be a mapping")

        uid = user_id or self.default_user_id

        with self._lock:
            if self._closed:
                raise LogChainError("log chain is closed")

            ts = int(self._clock())
            eid = str(uuid.uuid4())
            prev = self._last_hash
            h = compute_entry_hash(
                previous_hash=prev,
                entry_id=eid,
                timestamp=ts,
                user_id=uid,
                event_type=et,
                severity=sev,
                metadata=meta_canon,
            )
            entry = ForensicLogEntry(
                id=eid,
                timestamp=ts,
                user_id=uid,
                event_type=et,
                metadata=meta_canon,
                severity=sev,
                previous_hash=prev,
                hash=h,
            )
            self._entries.append(entry)
            self._last_hash = h

        if sev is not Severity.INFO:
            logger.info("forensic_event", extra={"event_type": str(et), "severity": str(sev)})
        return entry

    def entries(self) -> tuple[ForensicLogEntry, ...]:
        """Snapshot in insertion (= chronological) order."""

        return tuple(self._entries)

    def verify_chain(self) -> bool:
        ok = verify_entries(self.entries())
        if not ok:
            logger.warning("forensic_chain_invalid", extra={"entries": len(self._entries)})
        return ok

    def first_invalid_index(self) -> int | None:
        return first_invalid_index(self.entries())

    @property
    def last_hash(self) -> str:
        return self._last_hash

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ForensicLogEntry]:
        return iter(self.entries())
