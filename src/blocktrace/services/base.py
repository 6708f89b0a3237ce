"""Base HTTP client with circuit breaker and transport-level retry.

This module provides:
- CircuitState enum for circuit breaker states
- CircuitBreaker dataclass for tracking consecutive failures
- BaseAPIClient for resilient JSON-over-HTTP requests
"""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

import httpx
import structlog

from blocktrace.core.exceptions import CircuitBreakerOpenError, ExternalServiceError

log = structlog.get_logger(__name__)

MAX_TRANSPORT_BACKOFF_SECONDS = 4.0


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Requests allowed
    OPEN = "open"  # Requests blocked
    HALF_OPEN = "half_open"  # One probe request allowed


@dataclass
class CircuitBreaker:
    """Circuit breaker guarding an upstream endpoint.

    Opens after ``failure_threshold`` consecutive failures. Once
    ``cooldown_seconds`` have passed a single probe request is allowed;
    its outcome closes or reopens the circuit.

    Attributes:
        failure_threshold: Consecutive failures before opening.
        cooldown_seconds: Seconds before the half-open probe.
        failure_count: Current consecutive failure count.
        last_failure_time: Timestamp of most recent failure.
        state: Current circuit state.
    """

    failure_threshold: int = 5
    cooldown_seconds: int = 30
    failure_count: int = field(default=0, init=False)
    last_failure_time: datetime | None = field(default=None, init=False)
    state: CircuitState = field(default=CircuitState.CLOSED, init=False)

    def record_success(self) -> None:
        self.failure_count = 0
        if self.state is not CircuitState.CLOSED:
            log.info("circuit_breaker_closed", previous_state=self.state.value)
        self.state = CircuitState.CLOSED

    def record_failure(self) -> None:
        """Count a failure, opening the circuit at the threshold.

        A failed probe in HALF_OPEN reopens the circuit immediately.
        """
        self.failure_count += 1
        self.last_failure_time = datetime.now(UTC)

        if self.state is CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self.state = CircuitState.OPEN
            log.warning(
                "circuit_breaker_opened",
                failure_count=self.failure_count,
                threshold=self.failure_threshold,
            )

    def can_execute(self) -> bool:
        """Check whether a request may be sent, moving OPEN to HALF_OPEN after cooldown."""
        if self.state is not CircuitState.OPEN:
            return True
        if self.last_failure_time is None:
            return False

        elapsed = datetime.now(UTC) - self.last_failure_time
        if elapsed > timedelta(seconds=self.cooldown_seconds):
            self.state = CircuitState.HALF_OPEN
            log.info("circuit_breaker_half_open", cooldown_elapsed=elapsed.total_seconds())
            return True
        return False

    def raise_if_open(self) -> None:
        """Raise when requests are blocked.

        Raises:
            CircuitBreakerOpenError: If circuit is open and cooldown not elapsed.
        """
        if not self.can_execute():
            remaining = 0.0
            if self.last_failure_time is not None:
                elapsed = (datetime.now(UTC) - self.last_failure_time).total_seconds()
                remaining = max(0.0, self.cooldown_seconds - elapsed)
            raise CircuitBreakerOpenError(
                f"Circuit breaker is open. Next retry in {remaining:.1f} seconds."
            )


class BaseAPIClient:
    """HTTP client with lazy initialization, retry and circuit breaker.

    429, 5xx and connection errors are retried with a capped exponential
    backoff; other 4xx responses fail immediately.

    Attributes:
        base_url: Base URL for all requests.
        timeout: Request timeout in seconds.
        headers: Default headers for all requests.
        max_retries: Transport attempts per request.

    Example:
        client = BaseAPIClient(base_url="http://localhost:8545")
        response = await client.post("", json=payload)
        await client.close()
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        max_retries: int = 3,
        circuit_breaker_threshold: int = 5,
        circuit_breaker_cooldown: int = 30,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.headers = headers or {}
        self.max_retries = max_retries
        self._client: httpx.AsyncClient | None = None
        self._circuit_breaker = CircuitBreaker(
            failure_threshold=circuit_breaker_threshold,
            cooldown_seconds=circuit_breaker_cooldown,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.headers,
            )
            log.debug("httpx_client_created", base_url=self.base_url)
        return self._client

    async def close(self) -> None:
        """Close the httpx client and release resources."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            log.debug("httpx_client_closed", base_url=self.base_url)

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request with retry and circuit breaker.

        Args:
            method: HTTP method.
            path: Request path (appended to base_url).
            **kwargs: Additional arguments passed to httpx.

        Returns:
            httpx.Response on success.

        Raises:
            CircuitBreakerOpenError: If circuit breaker is open.
            ExternalServiceError: On non-retryable status or when retries run out.
        """
        self._circuit_breaker.raise_if_open()

        client = await self._get_client()
        last_error: Exception | None = None

        for attempt in range(1, self.max_retries + 1):
            try:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
                self._circuit_breaker.record_success()
                return response

            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                if 400 <= status_code < 500 and status_code != 429:
                    log.warning(
                        "request_client_error",
                        method=method,
                        status_code=status_code,
                        error=str(e),
                    )
                    raise ExternalServiceError(
                        service=self.base_url,
                        message=str(e),
                        status_code=status_code,
                    ) from e

                self._circuit_breaker.record_failure()
                last_error = e
                log.warning(
                    "request_server_error",
                    method=method,
                    status_code=status_code,
                    attempt=attempt,
                    max_retries=self.max_retries,
                )

            except httpx.RequestError as e:
                self._circuit_breaker.record_failure()
                last_error = e
                log.warning(
                    "request_connection_error",
                    method=method,
                    error=str(e) or type(e).__name__,
                    attempt=attempt,
                    max_retries=self.max_retries,
                )

            if attempt < self.max_retries:
                backoff = min(2 ** (attempt - 1), MAX_TRANSPORT_BACKOFF_SECONDS)
                await asyncio.sleep(backoff)

        log.error("request_max_retries_exceeded", method=method, max_retries=self.max_retries)
        raise ExternalServiceError(
            service=self.base_url,
            message=f"Max retries ({self.max_retries}) exceeded: {last_error}",
        )

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self._request("POST", path, **kwargs)
