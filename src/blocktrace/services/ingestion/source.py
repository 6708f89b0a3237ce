"""Trace source protocol consumed by the ingestion service."""

from typing import Any, Protocol

from blocktrace.models.block import BlockMetadata


class TraceSource(Protocol):
    """Anything that can produce raw traces and a header for a block."""

    async def fetch_raw_traces(self, block_identifier: str) -> list[dict[str, Any]]: ...

    async def fetch_block_metadata(self, block_identifier: str) -> BlockMetadata: ...

    async def close(self) -> None: ...
