"""JSON-RPC trace source.

Fetches ``trace_block`` results and block headers from an Ethereum-style
JSON-RPC endpoint. The client extends BaseAPIClient to inherit:
- Transport retry with exponential backoff
- Circuit breaker pattern for failure protection
- Proper resource cleanup

Any failure is surfaced as IngestionError so the ingestion service can
apply its own retry policy.
"""

import itertools
from typing import Any

import structlog

from blocktrace.config.settings import Settings, get_settings
from blocktrace.core.block_identifier import (
    BlockIdentifierKind,
    format_block_identifier,
    validate_block_identifier,
)
from blocktrace.core.exceptions import BlockTraceError, IngestionError
from blocktrace.models.block import BlockMetadata
from blocktrace.models.trace import parse_quantity
from blocktrace.services.base import BaseAPIClient

log = structlog.get_logger(__name__)


class TraceRPCClient(BaseAPIClient):
    """Trace source backed by a JSON-RPC endpoint.

    Attributes:
        rpc_call_count: Number of JSON-RPC calls issued.

    Example:
        client = TraceRPCClient(settings)
        traces = await client.fetch_raw_traces("latest")
        metadata = await client.fetch_block_metadata("latest")
        await client.close()
    """

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        super().__init__(
            base_url=settings.rpc_url,
            timeout=settings.rpc_timeout_seconds,
            headers={"Content-Type": "application/json"},
            max_retries=settings.rpc_max_retries,
            circuit_breaker_threshold=settings.circuit_breaker_threshold,
            circuit_breaker_cooldown=settings.circuit_breaker_cooldown,
        )
        self.rpc_call_count = 0
        self._ids = itertools.count(1)
        log.debug("trace_rpc_client_initialized", base_url=settings.rpc_url)

    async def call(self, method: str, params: list[Any]) -> Any:
        """Issue one JSON-RPC call and return its result.

        Raises:
            IngestionError: On transport failure or a JSON-RPC error object.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        self.rpc_call_count += 1

        try:
            response = await self.post("", json=payload)
            data = response.json()
        except BlockTraceError as e:
            raise IngestionError(f"{method} request failed: {e}") from e
        except ValueError as e:
            raise IngestionError(f"{method} returned invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise IngestionError(f"{method} returned a non-object response")

        error = data.get("error")
        if error:
            message = error.get("message", error) if isinstance(error, dict) else error
            log.warning("rpc_error_response", method=method, error=str(message))
            raise IngestionError(f"{method} failed: {message}")

        return data.get("result")

    async def fetch_raw_traces(self, block_identifier: str) -> list[dict[str, Any]]:
        """Fetch raw traces of a block with ``trace_block``.

        Args:
            block_identifier: Validated block number, hash or tag.

        Returns:
            Raw trace records as returned by the node.

        Raises:
            IngestionError: If the call fails or returns no trace list.
        """
        block_param = await self._block_number_param(block_identifier)
        result = await self.call("trace_block", [block_param])
        if not isinstance(result, list):
            raise IngestionError(f"trace_block returned no traces for {block_identifier}")

        log.debug("rpc_traces_fetched", block_identifier=block_identifier, count=len(result))
        return result

    async def fetch_block_metadata(self, block_identifier: str) -> BlockMetadata:
        """Fetch the block header.

        Raises:
            IngestionError: If the block is unknown or the call fails.
        """
        validation = validate_block_identifier(block_identifier)
        if validation.kind is BlockIdentifierKind.HASH:
            block = await self.call("eth_getBlockByHash", [block_identifier.lower(), False])
        else:
            block = await self.call(
                "eth_getBlockByNumber", [format_block_identifier(block_identifier), False]
            )

        if not isinstance(block, dict):
            raise IngestionError(f"Block {block_identifier} not found")

        try:
            return BlockMetadata(
                number=parse_quantity(block.get("number")),
                hash=block.get("hash") or "",
                timestamp=parse_quantity(block.get("timestamp")),
                transaction_count=len(block.get("transactions") or []),
                total_gas_used=parse_quantity(block.get("gasUsed")),
            )
        except ValueError as e:
            raise IngestionError(f"Malformed block header for {block_identifier}: {e}") from e

    async def _block_number_param(self, block_identifier: str) -> str:
        # trace_block takes a number or tag; resolve hashes through the header
        validation = validate_block_identifier(block_identifier)
        if validation.kind is BlockIdentifierKind.HASH:
            metadata = await self.fetch_block_metadata(block_identifier)
            return hex(metadata.number)
        return format_block_identifier(block_identifier)
