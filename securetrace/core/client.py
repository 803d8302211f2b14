"""securetrace.core.client

Shared outbound HTTP client with:
- retries (exponential backoff)
- simple circuit breaker

The only outbound caller today is the forensic summarizer. Failures surface as
httpx exceptions; callers decide whether to degrade.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ClientConfig:
    max_retries: int = 2
    timeout_s: float = 20.0
    backoff_cap_s: float = 8.0
    circuit_breaker_threshold: int = 3
    circuit_breaker_cooldown_s: float = 30.0


class CircuitBreakerOpen(httpx.TransportError):
    """Raised without touching the network while the breaker is open."""


class CircuitBreaker:
    def __init__(
        self,
        threshold: int,
        cooldown_s: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.threshold = threshold
        self.cooldown_s = cooldown_s
        self.failures = 0
        self.opened_at: float | None = None
        self._clock = clock

    @property
    def is_open(self) -> bool:
        return self.opened_at is not None

    def allow(self) -> bool:
        if self.opened_at is None:
            return True
        if (self._clock() - self.opened_at) >= self.cooldown_s:
            self.failures = 0
            self.opened_at = None
            return True
        return False

    def on_success(self) -> None:
        self.failures = 0
        self.opened_at = None

    def on_failure(self) -> None:
        self.failures += 1
        if self.failures >= self.threshold and self.opened_at is None:
            self.opened_at = self._clock()
            logger.warning("circuit_breaker_open", extra={"failures": self.failures})


class HttpClient:
    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Any] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or ClientConfig()
        self._breaker = CircuitBreaker(
            threshold=self.config.circuit_breaker_threshold,
            cooldown_s=self.config.circuit_breaker_cooldown_s,
            clock=clock,
        )
        self._sleep = sleep
        self._client = httpx.AsyncClient(timeout=self.config.timeout_s, transport=transport)

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if not url.startswith(("https://", "http://")):
            raise httpx.UnsupportedProtocol(f"unsupported url scheme: {url!r}")

        if not self._breaker.allow():
            raise CircuitBreakerOpen("circuit breaker open")

        last_exc: Exception | None = None
        for attempt in range(self.config.max_retries + 1):
            try:
                resp = await self._client.request(method, url, **kwargs)
                resp.raise_for_status()
                await resp.aread()
                self._breaker.on_success()
                return resp
            except (httpx.TimeoutException, httpx.NetworkError, httpx.HTTPStatusError, httpx.TransportError) as e:
                last_exc = e
                self._breaker.on_failure()
                logger.info("http_attempt_failed", extra={"attempt": attempt, "error": type(e).__name__})
                if attempt >= self.config.max_retries or not self._breaker.allow():
                    break
                await self._sleep(min(2**attempt, self.config.backoff_cap_s))

        assert last_exc is not None
        raise last_exc

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        expected: type | tuple[type, ...] | None = None,
        max_bytes: int = 256 * 1024,
        **kwargs: Any,
    ) -> Any:
        """Request and parse JSON with a body-size cap and an optional top-level type check."""

        resp = await self.request(method, url, **kwargs)
        if len(resp.content) > int(max_bytes):
            raise httpx.TransportError(f"response_too_large:{len(resp.content)}")
        try:
            data: Any = resp.json()
        except ValueError as e:
            raise httpx.DecodingError("response is not JSON") from e
        if expected is not None and not isinstance(data, expected):
            raise httpx.TransportError("response_schema_mismatch")
        return data
