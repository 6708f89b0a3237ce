"""Durable stores for cache persistence.

Stores raise CacheError on failure; BlockTraceCache catches and logs it so
persistence problems never affect cache reads or writes.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Protocol

import structlog
from pydantic_core import to_jsonable_python

from blocktrace.core.exceptions import CacheError

log = structlog.get_logger(__name__)


class CacheStore(Protocol):
    """Durable key/value backend for cache snapshots."""

    async def load(self) -> dict[str, Any] | None: ...

    async def save(self, snapshot: dict[str, Any]) -> None: ...

    async def clear(self) -> None: ...


class JsonFileCacheStore:
    """Persist cache snapshots to a JSON file.

    The snapshot has the shape ``{"entries": [...], "metrics": {...}}``.
    Payloads are converted with pydantic's JSON encoder, so models are
    restored as plain dicts and must be re-validated by the reader.

    Example:
        store = JsonFileCacheStore(Path(".cache/blocktrace.json"))
        cache = BlockTraceCache(store=store)
        await cache.load()
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    async def load(self) -> dict[str, Any] | None:
        """Read the snapshot, or None when no file exists.

        Raises:
            CacheError: If the file cannot be read or parsed.
        """
        if not self.path.exists():
            return None
        try:
            text = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
            data = json.loads(text)
        except (OSError, ValueError) as e:
            raise CacheError(f"Cannot read cache file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise CacheError(f"Cache file {self.path} does not contain an object")
        return data

    async def save(self, snapshot: dict[str, Any]) -> None:
        """Write the snapshot atomically.

        Raises:
            CacheError: If the snapshot cannot be encoded or written.
        """
        try:
            text = json.dumps(to_jsonable_python(snapshot))
        except (TypeError, ValueError) as e:
            raise CacheError(f"Cannot encode cache snapshot: {e}") from e
        try:
            await asyncio.to_thread(self._write, text)
        except OSError as e:
            raise CacheError(f"Cannot write cache file {self.path}: {e}") from e

    async def clear(self) -> None:
        """Remove the snapshot file.

        Raises:
            CacheError: If the file exists but cannot be removed.
        """
        try:
            await asyncio.to_thread(self.path.unlink, missing_ok=True)
        except OSError as e:
            raise CacheError(f"Cannot remove cache file {self.path}: {e}") from e

    def _write(self, text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(text, encoding="utf-8")
        tmp_path.replace(self.path)
        log.debug("cache_snapshot_written", path=str(self.path), bytes=len(text))
