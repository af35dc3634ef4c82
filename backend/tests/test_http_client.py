"""
backend/tests/test_http_client.py

Purpose:
    Retry, Retry-After and circuit breaker behavior of the shared provider
    HTTP client, driven through an httpx mock transport.
"""

from __future__ import annotations

import httpx
import pytest

from matchhub.providers.base import ProviderError
from matchhub.providers.http_client import CircuitBreaker, ResilientClient


def _client_with(handler, max_retries: int = 2) -> ResilientClient:
    client = ResilientClient("sports_feed", max_retries=max_retries, base_delay=0)
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


@pytest.mark.asyncio
async def test_retries_server_errors_until_success():
    statuses = iter([503, 502, 200])
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(next(statuses), json={"ok": True})

    client = _client_with(handler)
    response = await client.get("https://feed.example/livegames", params={"apikey": "secret"})
    await client.aclose()

    assert response.status_code == 200
    assert len(seen) == 3
    assert client.circuit.failure_count == 0


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(404)

    client = _client_with(handler)
    response = await client.get("https://feed.example/teams")
    await client.aclose()

    assert response.status_code == 404
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_exhausted_retries_return_last_response_and_count_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, headers={"Retry-After": "0"})

    client = _client_with(handler, max_retries=1)
    response = await client.get("https://feed.example/standings")
    await client.aclose()

    assert response.status_code == 429
    assert client.circuit.failure_count == 1


@pytest.mark.asyncio
async def test_network_errors_raise_after_retries():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("refused", request=request)

    client = _client_with(handler, max_retries=1)
    with pytest.raises(httpx.ConnectError):
        await client.get("https://feed.example/lineups")
    await client.aclose()

    assert len(calls) == 2


@pytest.mark.asyncio
async def test_open_circuit_short_circuits_as_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected while the circuit is open")

    client = _client_with(handler)
    client.circuit = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
    client.circuit.record_failure()

    with pytest.raises(ProviderError, match="circuit open"):
        await client.get("https://feed.example/timeline")
    await client.aclose()


def test_circuit_half_opens_after_recovery_window():
    breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=0)
    breaker.record_failure()
    assert breaker.can_attempt()
    breaker.record_failure()
    assert breaker.is_open
    breaker.last_failure_time -= 1
    assert breaker.can_attempt()
    breaker.record_success()
    assert not breaker.is_open and breaker.failure_count == 0
