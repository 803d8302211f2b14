"""securetrace.session.dlp

Keyword-based data-loss-prevention policy.

The keyword set is live: edits apply to the next scan, never retroactively.
Matching is a case-insensitive substring test. Rule edits are themselves
forensic events.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from securetrace.core.events import AnomalyPayload, LogEventType, Severity
from securetrace.forensics.chain import ForensicLogChain

logger = logging.getLogger(__name__)


def _normalize(keyword: str) -> str:
    norm = str(keyword).strip().lower()
    if not norm:
        raise ValueError("DLP keyword must be non-empty")
    return norm


class KeywordPolicy:
    def __init__(
        self,
        keywords: Iterable[str] = (),
        *,
        chain: ForensicLogChain | None = None,
        user_id: str | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._keywords: list[str] = []
        for kw in keywords:
            norm = _normalize(kw)
            if norm not in self._keywords:
                self._keywords.append(norm)
        self.chain = chain
        self.user_id = user_id

    def keywords(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._keywords)

    def __contains__(self, keyword: object) -> bool:
        return isinstance(keyword, str) and keyword.strip().lower() in self.keywords()

    def __len__(self) -> int:
        return len(self.keywords())

    def add(self, keyword: str) -> str:
        norm = _normalize(keyword)
        with self._lock:
            if norm in self._keywords:
                raise ValueError(f"DLP keyword already present: {norm!r}")
            self._keywords.append(norm)

        logger.info("dlp_rule_added", extra={"keyword": norm})
        if self.chain is not None:
            self.chain.append(
                LogEventType.ANOMALY_DETECTED,
                AnomalyPayload(action="DLP_RULE_ADDED", keyword=norm).to_metadata(),
                Severity.INFO,
                user_id=self.user_id,
            )
        return norm

    def remove(self, keyword: str) -> str:
        norm = _normalize(keyword)
        with self._lock:
            if norm not in self._keywords:
                raise ValueError(f"DLP keyword not present: {norm!r}")
            self._keywords.remove(norm)

        logger.warning("dlp_rule_removed", extra={"keyword": norm})
        if self.chain is not None:
            self.chain.append(
                LogEventType.ANOMALY_DETECTED,
                AnomalyPayload(action="DLP_RULE_REMOVED", keyword=norm).to_metadata(),
                Severity.WARNING,
                user_id=self.user_id,
            )
        return norm

    def scan(self, text: str) -> list[str]:
        """Matched keywords, in policy order."""

        haystack = text.lower()
        return [kw for kw in self.keywords() if kw in haystack]
