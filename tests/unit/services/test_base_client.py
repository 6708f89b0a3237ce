"""Tests for BaseAPIClient transport retry and circuit breaking."""

from unittest.mock import AsyncMock, MagicMock, call, patch

import httpx
import pytest

from blocktrace.core.exceptions import CircuitBreakerOpenError, ExternalServiceError
from blocktrace.services.base import BaseAPIClient, CircuitState

RPC_URL = "https://rpc.example.com"


def response(status_code: int) -> MagicMock:
    """Mock httpx response whose raise_for_status mirrors the status code."""
    mock = MagicMock()
    mock.status_code = status_code
    if status_code >= 400:
        mock.raise_for_status = MagicMock(
            side_effect=httpx.HTTPStatusError(
                f"HTTP {status_code}", request=MagicMock(), response=mock
            )
        )
    else:
        mock.raise_for_status = MagicMock()
    return mock


def client_with(*outcomes, **kwargs) -> tuple[BaseAPIClient, AsyncMock]:
    client = BaseAPIClient(base_url=RPC_URL, **kwargs)
    httpx_client = AsyncMock()
    httpx_client.request = AsyncMock(side_effect=list(outcomes))
    client._client = httpx_client
    return client, httpx_client


class TestLifecycle:
    """Tests for construction and cleanup."""

    def test_defaults(self) -> None:
        client = BaseAPIClient(base_url=RPC_URL)

        assert client.timeout == 30.0
        assert client.max_retries == 3
        assert client.headers == {}
        assert client._client is None

    @pytest.mark.asyncio
    async def test_lazy_client_is_reused(self) -> None:
        client = BaseAPIClient(base_url=RPC_URL, headers={"Content-Type": "application/json"})

        first = await client._get_client()
        second = await client._get_client()

        assert first is second
        assert first.headers["Content-Type"] == "application/json"
        await client.close()
        assert client._client is None

    @pytest.mark.asyncio
    async def test_close_without_client(self) -> None:
        await BaseAPIClient(base_url=RPC_URL).close()


class TestRetry:
    """Tests for the transport retry loop."""

    @pytest.mark.asyncio
    async def test_post_success(self) -> None:
        client, httpx_client = client_with(response(200))

        result = await client.post("", json={"method": "trace_block"})

        assert result.status_code == 200
        httpx_client.request.assert_awaited_once_with("POST", "", json={"method": "trace_block"})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [429, 500, 502, 503])
    async def test_retryable_status_then_success(self, status_code: int) -> None:
        """
        Given: One retryable failure followed by a success
        When: A request is posted
        Then: The success is returned after one backoff of 1 second
        """
        client, httpx_client = client_with(response(status_code), response(200))

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            result = await client.post("")

        assert result.status_code == 200
        assert httpx_client.request.await_count == 2
        sleep.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_connection_error_then_success(self) -> None:
        client, httpx_client = client_with(httpx.ConnectError("refused"), response(200))

        with patch("asyncio.sleep", new_callable=AsyncMock):
            result = await client.post("")

        assert result.status_code == 200
        assert httpx_client.request.await_count == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [400, 401, 403, 404])
    async def test_client_errors_fail_fast(self, status_code: int) -> None:
        client, httpx_client = client_with(response(status_code))

        with pytest.raises(ExternalServiceError) as exc_info:
            await client.post("")

        assert exc_info.value.status_code == status_code
        assert exc_info.value.service == RPC_URL
        assert httpx_client.request.await_count == 1

    @pytest.mark.asyncio
    async def test_backoff_is_capped(self) -> None:
        """
        Given: Five attempts that all time out
        When: A request is posted
        Then: Backoff doubles up to 4 seconds and max retries is reported
        """
        client, _ = client_with(
            *[httpx.TimeoutException("timeout")] * 5,
            max_retries=5,
            circuit_breaker_threshold=10,
        )

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(ExternalServiceError, match=r"Max retries \(5\) exceeded"):
                await client.post("")

        assert sleep.await_args_list == [call(1), call(2), call(4), call(4)]


class TestCircuitBreaking:
    """Tests for the breaker wired into requests."""

    @pytest.mark.asyncio
    async def test_failures_open_circuit(self) -> None:
        client, httpx_client = client_with(
            response(500), response(500), max_retries=2, circuit_breaker_threshold=2
        )

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(ExternalServiceError):
                await client.post("")

        assert client._circuit_breaker.state is CircuitState.OPEN

        with pytest.raises(CircuitBreakerOpenError):
            await client.post("")
        assert httpx_client.request.await_count == 2

    @pytest.mark.asyncio
    async def test_success_resets_failures(self) -> None:
        client, _ = client_with(response(503), response(200))

        with patch("asyncio.sleep", new_callable=AsyncMock):
            await client.post("")

        assert client._circuit_breaker.failure_count == 0
        assert client._circuit_breaker.state is CircuitState.CLOSED
