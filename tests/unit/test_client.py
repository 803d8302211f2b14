from __future__ import annotations

import httpx
import pytest

from securetrace.core.client import CircuitBreaker, CircuitBreakerOpen, ClientConfig, HttpClient


async def _no_sleep(_s: float) -> None:
    return None


def _client(handler, **cfg) -> HttpClient:
    return HttpClient(
        ClientConfig(**cfg),
        transport=httpx.MockTransport(handler),
        sleep=_no_sleep,
    )


def test_circuit_breaker_opens_and_cools_down() -> None:
    now = [0.0]
    cb = CircuitBreaker(threshold=2, cooldown_s=10.0, clock=lambda: now[0])
    assert cb.allow()
    cb.on_failure()
    assert cb.allow()
    cb.on_failure()
    assert cb.is_open
    assert not cb.allow()
    now[0] = 10.0
    assert cb.allow()
    assert cb.failures == 0


@pytest.mark.anyio
async def test_request_retries_then_succeeds() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503)
        return httpx.Response(200, json={"ok": True})

    client = _client(handler, max_retries=2, circuit_breaker_threshold=10)
    data = await client.request_json("POST", "https://summarizer.test/v1", json={}, expected=dict)
    await client.aclose()

    assert data == {"ok": True}
    assert len(calls) == 3
    assert client.breaker.failures == 0


@pytest.mark.anyio
async def test_request_gives_up_and_opens_breaker() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(500)

    client = _client(handler, max_retries=5, circuit_breaker_threshold=2)
    with pytest.raises(httpx.HTTPStatusError):
        await client.request("GET", "https://summarizer.test/")
    assert len(calls) == 2
    assert client.breaker.is_open

    with pytest.raises(CircuitBreakerOpen):
        await client.request("GET", "https://summarizer.test/")
    assert len(calls) == 2
    await client.aclose()


@pytest.mark.anyio
async def test_request_json_schema_and_size_checks() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/list":
            return httpx.Response(200, json=[1, 2, 3])
        if request.url.path == "/big":
            return httpx.Response(200, json={"x": "y" * 1000})
        return httpx.Response(200, content=b"not json")

    async with _client(handler, max_retries=0) as client:
        with pytest.raises(httpx.TransportError):
            await client.request_json("GET", "https://s.test/list", expected=dict)
        with pytest.raises(httpx.TransportError):
            await client.request_json("GET", "https://s.test/big", max_bytes=100)
        with pytest.raises(httpx.DecodingError):
            await client.request_json("GET", "https://s.test/text")


@pytest.mark.anyio
async def test_rejects_non_http_urls() -> None:
    async with _client(lambda r: httpx.Response(200)) as client:
        with pytest.raises(httpx.UnsupportedProtocol):
            await client.request("GET", "file:///etc/passwd")
