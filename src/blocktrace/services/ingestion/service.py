"""Block trace ingestion with validation, caching, timeout and retry.

Flow of ``trace_block``:
1. Validate the block identifier (never retried)
2. Serve from the trace cache when possible
3. Fetch traces and header under an overall deadline, retrying
   IngestionError with exponential backoff
"""

import asyncio
from collections import deque

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from blocktrace.config.settings import Settings, get_settings
from blocktrace.constants.analysis import (
    LOW_HIT_RATE_MIN_ACCESSES,
    LOW_HIT_RATE_PCT,
    MEMORY_WARNING_BYTES,
    PERFORMANCE_HISTORY_LIMIT,
    SLOW_EXECUTION_MS,
)
from blocktrace.core.block_identifier import require_valid_block_identifier
from blocktrace.core.exceptions import AnalysisTimeoutError, BlockTraceError, IngestionError
from blocktrace.core.performance import PerformanceTracker
from blocktrace.models.block import BlockMetadata, FetchResult
from blocktrace.models.performance import PerformanceMetrics
from blocktrace.services.cache import BlockTraceCache, block_trace_key
from blocktrace.services.ingestion.source import TraceSource

log = structlog.get_logger(__name__)


class BlockTraceService:
    """Fetch raw traces and metadata for blocks.

    Attributes:
        source: Trace source (JSON-RPC client by default).
        cache: Cache for fetched traces.
        network: Network name used in cache keys and error context.

    Example:
        service = BlockTraceService(settings=settings)
        result = await service.trace_block("18500000")
        print(len(result.raw_traces))
    """

    def __init__(
        self,
        source: TraceSource | None = None,
        cache: BlockTraceCache | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        if source is None:
            from blocktrace.services.rpc.client import TraceRPCClient

            source = TraceRPCClient(self.settings)
        self.source = source
        self.cache = cache or BlockTraceCache(
            max_size=self.settings.cache_max_size,
            default_ttl_seconds=self.settings.cache_default_ttl_seconds,
        )
        self.network = self.settings.network
        self._history: deque[PerformanceMetrics] = deque(maxlen=PERFORMANCE_HISTORY_LIMIT)
        self._rpc_calls = 0

    @property
    def performance_history(self) -> list[PerformanceMetrics]:
        return list(self._history)

    async def trace_block(self, block_identifier: str | int) -> FetchResult:
        """Fetch raw traces and metadata for one block.

        Args:
            block_identifier: Block number, hex number, hash or tag.

        Returns:
            FetchResult with raw traces, metadata and fetch performance.

        Raises:
            ValidationError: If the identifier is rejected.
            AnalysisTimeoutError: If the fetch exceeds fetch_timeout_seconds.
            IngestionError: If every fetch attempt failed.
        """
        tracker = PerformanceTracker()
        display_id = str(block_identifier)
        calls_before = self._rpc_calls

        try:
            tracker.start_step("validation")
            validation = require_valid_block_identifier(block_identifier)
            identifier = validation.normalized or display_id
            tracker.end_step()

            tracker.start_step("cache_check")
            key = block_trace_key(self.network, identifier)
            cached = await self.cache.get(key)
            tracker.end_step()

            if isinstance(cached, dict):
                cached = FetchResult.model_validate(cached)
            if isinstance(cached, FetchResult):
                log.debug("block_trace_cache_hit", block_identifier=identifier)
                result = cached.model_copy(
                    update={"from_cache": True, "performance": tracker.metrics(cache_hit_rate=100.0)}
                )
                self._record(result.performance)
                return result

            tracker.start_step("block_trace")
            try:
                traces, metadata = await asyncio.wait_for(
                    self._fetch_with_retry(identifier),
                    timeout=self.settings.fetch_timeout_seconds,
                )
            except TimeoutError as e:
                raise AnalysisTimeoutError(
                    f"Fetch exceeded {self.settings.fetch_timeout_seconds}s"
                ) from e
            tracker.end_step()

        except BlockTraceError as e:
            tracker.fail_step(str(e))
            log.error(
                "block_trace_failed",
                block_identifier=display_id,
                network=self.network,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise e.with_context(display_id, self.network) from e

        performance = tracker.metrics(
            cache_hit_rate=self.cache.stats().hit_rate,
            rpc_call_count=self._rpc_calls - calls_before,
        )
        result = FetchResult(
            block_identifier=identifier,
            network=self.network,
            raw_traces=traces,
            metadata=metadata,
            performance=performance,
        )
        await self.cache.set(key, result, ttl_seconds=self.settings.block_trace_ttl_seconds)

        self._record(performance)
        self._warn_on_performance(identifier, performance)
        log.info(
            "block_traced",
            block_identifier=identifier,
            traces=len(traces),
            execution_time_ms=round(performance.execution_time_ms, 2),
            rpc_calls=performance.rpc_call_count,
        )
        return result

    async def _fetch_with_retry(self, identifier: str) -> tuple[list[dict], BlockMetadata]:
        """Fetch traces and metadata, retrying IngestionError with exponential backoff.

        Raises:
            IngestionError: From the last attempt once attempts run out.
        """
        attempts = self.settings.retry_attempts

        def log_retry(state: RetryCallState) -> None:
            log.warning(
                "block_trace_retry",
                block_identifier=identifier,
                attempt=state.attempt_number,
                max_attempts=attempts,
                delay_seconds=state.next_action.sleep if state.next_action else 0.0,
                error=str(state.outcome.exception()) if state.outcome else None,
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=self.settings.retry_base_delay_seconds),
            retry=retry_if_exception_type(IngestionError),
            before_sleep=log_retry,
            sleep=asyncio.sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                self._rpc_calls += 1
                traces = await self.source.fetch_raw_traces(identifier)
                self._rpc_calls += 1
                metadata = await self.source.fetch_block_metadata(identifier)
                return traces, metadata

        raise IngestionError(f"No fetch attempts made for {identifier}")

    def _record(self, metrics: PerformanceMetrics) -> None:
        self._history.append(metrics)

    def _warn_on_performance(self, identifier: str, metrics: PerformanceMetrics) -> None:
        if metrics.execution_time_ms > SLOW_EXECUTION_MS:
            log.warning(
                "slow_block_trace",
                block_identifier=identifier,
                execution_time_ms=round(metrics.execution_time_ms, 2),
            )
        if metrics.memory_usage > MEMORY_WARNING_BYTES:
            log.warning(
                "high_memory_usage",
                block_identifier=identifier,
                memory_usage=metrics.memory_usage,
            )
        stats = self.cache.stats()
        accesses = stats.hit_count + stats.miss_count
        if accesses > LOW_HIT_RATE_MIN_ACCESSES and stats.hit_rate < LOW_HIT_RATE_PCT:
            log.warning("low_cache_hit_rate", hit_rate=stats.hit_rate, accesses=accesses)

    async def close(self) -> None:
        await self.source.close()
