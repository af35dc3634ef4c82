"""
backend/matchhub/providers/http_client.py

Purpose:
    httpx.AsyncClient wrapper shared by all provider adapters: bounded
    retries with exponential backoff (honoring Retry-After) on 429/5xx and
    network errors, plus a per-provider circuit breaker.

Dependencies:
    - httpx
    - matchhub.config
"""

import asyncio
import logging
import time
from typing import Optional
from urllib.parse import urlparse

import httpx

from matchhub.config import settings
from matchhub.providers.base import ProviderError

logger = logging.getLogger("matchhub.http_client")

_RETRYABLE_STATUSES = {429, 500, 502, 503, 504}
_MAX_BACKOFF_SECONDS = 5.0


class CircuitBreaker:
    """Opens after consecutive failures; half-opens once the recovery window passed."""

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.last_failure_time: Optional[float] = None
        self.is_open = False

    def record_success(self) -> None:
        self.failure_count = 0
        self.is_open = False

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.monotonic()
        if self.failure_count >= self.failure_threshold and not self.is_open:
            self.is_open = True
            logger.warning("Circuit breaker OPEN after %d failures", self.failure_count)

    def can_attempt(self) -> bool:
        if not self.is_open:
            return True
        if self.last_failure_time is not None and (
            time.monotonic() - self.last_failure_time > self.recovery_timeout
        ):
            logger.info("Circuit breaker half-open, allowing probe request")
            return True
        return False


def _parse_retry_after(response: httpx.Response) -> Optional[float]:
    for header in ("retry-after", "x-ratelimit-retry-after"):
        value = response.headers.get(header)
        if value is None:
            continue
        try:
            return float(value)
        except (ValueError, TypeError):
            continue
    return None


def _safe_url(url: str) -> str:
    """Strip query params (API keys travel there) for logging."""
    parsed = urlparse(str(url))
    return f"{parsed.scheme}://{parsed.netloc}{parsed.path}"


class ResilientClient:
    """Retrying GET client. Exhausted retries return the last response or raise the last network error."""

    def __init__(
        self,
        name: str,
        timeout: float | None = None,
        max_retries: int | None = None,
        base_delay: float | None = None,
    ):
        self._name = name
        self._client = httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.PROVIDER_HTTP_TIMEOUT_SECONDS,
            follow_redirects=True,
        )
        self._max_retries = max_retries if max_retries is not None else settings.PROVIDER_HTTP_MAX_RETRIES
        self._base_delay = base_delay if base_delay is not None else settings.PROVIDER_HTTP_RETRY_BASE_DELAY
        self.circuit = CircuitBreaker(
            failure_threshold=settings.PROVIDER_CIRCUIT_FAILURE_THRESHOLD,
            recovery_timeout=settings.PROVIDER_CIRCUIT_RECOVERY_SECONDS,
        )

    def _backoff(self, attempt: int, response: httpx.Response | None = None) -> float:
        delay = _parse_retry_after(response) if response is not None else None
        if delay is None:
            delay = self._base_delay * (2 ** attempt)
        return min(delay, _MAX_BACKOFF_SECONDS)

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        if not self.circuit.can_attempt():
            raise ProviderError(self._name, urlparse(str(url)).path, "circuit open")

        attempts = self._max_retries + 1
        last_exc: Optional[httpx.HTTPError] = None
        last_resp: Optional[httpx.Response] = None

        for attempt in range(attempts):
            try:
                resp = await self._client.request(method, url, **kwargs)
            except (httpx.TimeoutException, httpx.ConnectError, httpx.RemoteProtocolError) as exc:
                last_exc = exc
                logger.warning(
                    "[%s] Network error on %s %s (attempt %d/%d): %s",
                    self._name, method, _safe_url(url), attempt + 1, attempts, exc,
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(self._backoff(attempt))
                continue

            if resp.status_code not in _RETRYABLE_STATUSES:
                self.circuit.record_success()
                return resp

            last_resp = resp
            logger.warning(
                "[%s] Retryable status %d on %s %s (attempt %d/%d)",
                self._name, resp.status_code, method, _safe_url(url), attempt + 1, attempts,
            )
            if attempt < self._max_retries:
                await asyncio.sleep(self._backoff(attempt, resp))

        self.circuit.record_failure()
        if last_resp is not None:
            logger.error(
                "[%s] All %d attempts failed for %s %s (last status: %d)",
                self._name, attempts, method, _safe_url(url), last_resp.status_code,
            )
            return last_resp

        logger.error(
            "[%s] All %d attempts failed for %s %s: %s",
            self._name, attempts, method, _safe_url(url), last_exc,
        )
        raise last_exc  # type: ignore[misc]

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()
