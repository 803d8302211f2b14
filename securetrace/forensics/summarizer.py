"""securetrace.forensics.summarizer

External narrative summary of a session's forensic log.

The summarizer only ever sees the redacted digest. Score, risk factors and
anomalies are computed locally before it is called, so its failure costs the
narrative and nothing else.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any, Final, Protocol

import httpx

from securetrace.core.client import ClientConfig, HttpClient
from securetrace.core.config import SummarizerConfig
from securetrace.core.exceptions import SummarizationUnavailable
from securetrace.core.models import AnalysisResult, ForensicLogEntry
from securetrace.forensics.scoring import FALLBACK_SUMMARY, compute_risk_analysis
from securetrace.security.redaction import build_redacted_digest

logger = logging.getLogger(__name__)

INSTRUCTION: Final = (
    "You are a security analyst. Summarize the following forensic events from a "
    "secure messaging session in two or three sentences. Message contents are not "
    "included; do not speculate about them."
)

_SUMMARY_KEYS = ("summary", "text", "content", "response")


class Summarizer(Protocol):
    async def summarize(self, digest: list[dict[str, Any]]) -> str: ...


class NullSummarizer:
    """Used when no summarizer is configured. Always unavailable."""

    async def summarize(self, digest: list[dict[str, Any]]) -> str:
        raise SummarizationUnavailable("no summarizer configured")


def parse_summary(data: Any) -> str:
    """Pull the summary text out of a response body.

    Accepts ``{"summary": str}`` (or ``text``/``content``/``response``) and the
    chat-completions shape ``{"choices": [{"message": {"content": str}}]}``.
    """

    if isinstance(data, dict):
        for k in _SUMMARY_KEYS:
            v = data.get(k)
            if isinstance(v, str) and v.strip():
                return v.strip()
        choices = data.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            msg = choices[0].get("message")
            if isinstance(msg, dict):
                return parse_summary({"content": msg.get("content")})
    raise SummarizationUnavailable("summarizer response had no usable summary")


class HttpSummarizer:
    def __init__(self, cfg: SummarizerConfig, client: HttpClient | None = None) -> None:
        self.cfg = cfg
        self.client = client or HttpClient(
            ClientConfig(
                max_retries=cfg.max_retries,
                timeout_s=cfg.timeout_s,
                circuit_breaker_threshold=cfg.circuit_breaker_threshold,
                circuit_breaker_cooldown_s=cfg.circuit_breaker_cooldown_s,
            )
        )

    async def summarize(self, digest: list[dict[str, Any]]) -> str:
        if not self.cfg.url:
            raise SummarizationUnavailable("summarizer url is not configured")

        headers = {"Content-Type": "application/json"}
        if self.cfg.api_key:
            headers["Authorization"] = f"Bearer {self.cfg.api_key}"
        payload = {"model": self.cfg.model, "instruction": INSTRUCTION, "events": digest}

        try:
            data = await self.client.request_json(
                "POST", self.cfg.url, json=payload, headers=headers, expected=dict
            )
        except httpx.HTTPError as e:
            raise SummarizationUnavailable(f"summarizer request failed: {type(e).__name__}") from e
        return parse_summary(data)

    async def aclose(self) -> None:
        await self.client.aclose()


async def analyze_with_summary(
    entries: Sequence[ForensicLogEntry],
    summarizer: Summarizer,
    *,
    hash_prefix_chars: int = 8,
    timeout_s: float | None = None,
) -> AnalysisResult:
    """Local rubric first, then the narrative. Never raises for summarizer faults."""

    local = compute_risk_analysis(entries)
    digest = build_redacted_digest(entries, hash_prefix_chars=hash_prefix_chars)

    try:
        if timeout_s is not None:
            summary = await asyncio.wait_for(summarizer.summarize(digest), timeout=timeout_s)
        else:
            summary = await summarizer.summarize(digest)
    except (SummarizationUnavailable, httpx.HTTPError, TimeoutError) as e:
        logger.warning("summarizer_unavailable", extra={"error": type(e).__name__, "reason": str(e)})
        return local.model_copy(update={"summary": FALLBACK_SUMMARY})
    except Exception as e:  # noqa: BLE001 - summarizer isolation boundary
        logger.exception("summarizer_failed", extra={"error": type(e).__name__})
        return local.model_copy(update={"summary": FALLBACK_SUMMARY})

    if not isinstance(summary, str) or not summary.strip():
        logger.warning("summarizer_malformed", extra={"result_type": type(summary).__name__})
        return local.model_copy(update={"summary": FALLBACK_SUMMARY})
    return local.model_copy(update={"summary": summary.strip()})
