"""Block analysis orchestration.

This module coordinates the end-to-end flow of:
1. Fetching raw traces through the ingestion service
2. Normalizing and categorizing traces
3. Gas usage analysis
4. Token flow analysis
5. Compiling, caching and returning the BlockAnalysis

Progress is published on a ProgressChannel at every stage transition.

Example:
    orchestrator = BlockTraceOrchestrator(settings=settings)
    analysis = await orchestrator.analyze_block("18500000")
    print(analysis.summary.success_rate)
"""

from collections import deque
from collections.abc import Sequence
from datetime import UTC, datetime
from statistics import mean
from typing import Protocol

import structlog

from blocktrace.config.settings import Settings, get_settings
from blocktrace.constants.analysis import (
    ANALYSIS_VERSION,
    COMPARE_HIGH_GAS_RATIO,
    COMPARE_SUCCESS_RATE_FLOOR,
    COMPARE_VARIANCE_RATIO,
    PERFORMANCE_HISTORY_LIMIT,
    SLOW_EXECUTION_MS,
)
from blocktrace.core.analysis.categorizer import TransactionCategorizer
from blocktrace.core.analysis.gas_analyzer import GasAnalyzer
from blocktrace.core.analysis.normalizer import TraceNormalizer
from blocktrace.core.analysis.progress import ProgressChannel, ProgressListener
from blocktrace.core.analysis.token_flow import TokenFlowAnalyzer
from blocktrace.core.block_identifier import validate_block_identifier
from blocktrace.core.exceptions import BlockTraceError, ProcessingError, ValidationError
from blocktrace.core.formatting import format_duration
from blocktrace.core.performance import PerformanceTracker
from blocktrace.models.block import (
    AnalysisProgress,
    AnalysisStage,
    BlockAnalysis,
    BlockComparison,
    BlockSummary,
    ComparisonAverages,
    ExportData,
    ExportMetadata,
)
from blocktrace.models.cache import CacheMetrics
from blocktrace.models.categorization import CategorizedTransaction
from blocktrace.models.performance import PerformanceMetrics
from blocktrace.services.cache import (
    BlockTraceCache,
    analysis_key,
    gas_analysis_key,
    token_flow_key,
)
from blocktrace.services.ingestion.service import BlockTraceService

log = structlog.get_logger(__name__)


class AnalysisExporter(Protocol):
    """Renders export payloads into a concrete format (JSON, CSV, PDF...)."""

    async def export(self, data: ExportData, export_format: str) -> bytes | str: ...


def summarize_transactions(transactions: Sequence[CategorizedTransaction]) -> BlockSummary:
    """Compute block summary counts from categorized traces.

    Traces are grouped by transaction hash. A transaction counts as failed
    when any of its traces failed, and as a token transaction when any of
    its traces carries a decoded token operation.
    """
    failed_hashes: set[str] = set()
    token_hashes: set[str] = set()
    hashes: set[str] = set()

    for tx in transactions:
        hashes.add(tx.transaction_hash)
        if not tx.success:
            failed_hashes.add(tx.transaction_hash)
        if tx.token_operation is not None:
            token_hashes.add(tx.transaction_hash)

    total = len(hashes)
    failed = len(failed_hashes)
    total_gas = sum(tx.gas_used for tx in transactions)

    return BlockSummary(
        total_transactions=total,
        total_traces=len(transactions),
        successful_transactions=total - failed,
        failed_transactions=failed,
        success_rate=round((total - failed) / total * 100, 2) if total else 0.0,
        token_transactions=len(token_hashes),
        token_percentage=round(len(token_hashes) / total * 100, 2) if total else 0.0,
        total_gas_used=total_gas,
        average_gas_per_transaction=total_gas / total if total else 0.0,
        total_value_eth=sum(tx.value_eth for tx in transactions),
    )


class BlockTraceOrchestrator:
    """Run the block analysis pipeline and cache its results.

    Owns its cache, ingestion service and analyzers; each can be injected
    for testing or sharing.

    Attributes:
        cache: Cache for compiled analyses (and fetched traces by default).
        service: Ingestion service used for fetching.
        progress: Channel receiving AnalysisProgress events.

    Example:
        orchestrator = BlockTraceOrchestrator(settings=settings)
        orchestrator.progress.subscribe(print)
        analysis = await orchestrator.analyze_block("latest")
        await orchestrator.close()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        cache: BlockTraceCache | None = None,
        service: BlockTraceService | None = None,
        normalizer: TraceNormalizer | None = None,
        categorizer: TransactionCategorizer | None = None,
        gas_analyzer: GasAnalyzer | None = None,
        flow_analyzer: TokenFlowAnalyzer | None = None,
        progress: ProgressChannel | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        if cache is None:
            if self.settings.cache_persistence_path:
                cache = BlockTraceCache.with_file_store(
                    self.settings.cache_persistence_path,
                    max_size=self.settings.cache_max_size,
                )
            else:
                cache = BlockTraceCache(
                    max_size=self.settings.cache_max_size,
                    default_ttl_seconds=self.settings.cache_default_ttl_seconds,
                )
        self.cache = cache
        self.service = service or BlockTraceService(cache=self.cache, settings=self.settings)
        self.normalizer = normalizer or TraceNormalizer(self.settings)
        self.categorizer = categorizer or TransactionCategorizer(self.settings)
        self.gas_analyzer = gas_analyzer or GasAnalyzer(self.settings)
        self.flow_analyzer = flow_analyzer or TokenFlowAnalyzer(self.settings)
        self.progress = progress or ProgressChannel()
        self.network = self.settings.network
        self._history: deque[PerformanceMetrics] = deque(maxlen=PERFORMANCE_HISTORY_LIMIT)

    async def analyze_block(
        self,
        block_identifier: str | int,
        *,
        use_cache: bool = True,
        on_progress: ProgressListener | None = None,
    ) -> BlockAnalysis:
        """Run the full analysis for one block.

        Args:
            block_identifier: Block number, hex number, hash or tag.
            use_cache: Serve and store compiled analyses in the cache. Gas and
                token flow results are stored alongside under their own keys.
            on_progress: Listener receiving this run's progress events only.

        Returns:
            Compiled BlockAnalysis. A cached analysis is returned unchanged.

        Raises:
            BlockTraceError: Any pipeline failure. Unexpected exceptions are
                wrapped in ProcessingError with block and network context.
        """
        display_id = str(block_identifier)
        tracker = PerformanceTracker()
        stage = AnalysisStage.FETCHING

        async def report(stage: AnalysisStage, percent: int, message: str) -> None:
            await self.progress.publish(
                AnalysisProgress(
                    block_identifier=display_id,
                    stage=stage,
                    percent=percent,
                    message=message,
                    elapsed_ms=tracker.elapsed_ms(),
                ),
                on_progress,
            )

        log.info("block_analysis_started", block_identifier=display_id, network=self.network)
        # Equivalent spellings of one block share cache entries
        cache_id = validate_block_identifier(block_identifier).normalized or display_id
        key = analysis_key(self.network, cache_id)

        try:
            if use_cache:
                cached = await self.cache.get(key)
                if isinstance(cached, dict):
                    cached = BlockAnalysis.model_validate(cached)
                if isinstance(cached, BlockAnalysis):
                    await report(AnalysisStage.COMPLETE, 100, "Using cached analysis results")
                    self._history.append(tracker.metrics(cache_hit_rate=100.0))
                    log.info("block_analysis_cache_hit", block_identifier=display_id)
                    return cached

            # Stage 1: fetch
            tracker.start_step(stage.value)
            await report(stage, 0, "Fetching block trace data...")
            fetched = await self.service.trace_block(block_identifier)
            await report(stage, 20, f"Retrieved {len(fetched.raw_traces)} traces")

            # Stage 2: normalize and categorize
            stage = AnalysisStage.CATEGORIZING
            tracker.start_step(stage.value)
            await report(stage, 25, "Processing trace data...")
            traces = self.normalizer.normalize(fetched.raw_traces)
            await report(stage, 35, "Categorizing transactions...")
            transactions = self.categorizer.categorize(traces)
            statistics = self.categorizer.statistics(transactions)
            await report(stage, 40, f"Categorized {len(transactions)} transactions")

            # Stage 3: gas
            stage = AnalysisStage.ANALYZING_GAS
            tracker.start_step(stage.value)
            await report(stage, 45, "Analyzing gas usage...")
            gas_analysis = self.gas_analyzer.analyze(transactions)
            await report(
                stage, 60, f"Found {len(gas_analysis.opportunities)} optimization opportunities"
            )

            # Stage 4: token flows
            stage = AnalysisStage.ANALYZING_FLOWS
            tracker.start_step(stage.value)
            await report(stage, 65, "Analyzing token flows...")
            token_flow = self.flow_analyzer.analyze_flow(transactions)
            await report(stage, 80, f"Mapped {token_flow.metrics.total_transfers} token transfers")

            # Stage 5: compile and cache
            stage = AnalysisStage.FINALIZING
            tracker.start_step(stage.value)
            await report(stage, 85, "Compiling analysis results...")
            summary = summarize_transactions(transactions)
            if use_cache:
                await report(stage, 95, "Caching results...")
            tracker.end_step()

            performance = tracker.metrics(
                cache_hit_rate=self.cache.stats().hit_rate,
                rpc_call_count=fetched.performance.rpc_call_count,
            )
            analysis = BlockAnalysis(
                block_identifier=fetched.block_identifier,
                network=self.network,
                metadata=fetched.metadata,
                summary=summary,
                transactions=transactions,
                categorization_statistics=statistics,
                gas_analysis=gas_analysis,
                token_flow=token_flow,
                performance_metrics=performance,
                analyzed_at=datetime.now(UTC),
            )
            if use_cache:
                ttl = self.settings.analysis_ttl_seconds
                await self.cache.set(key, analysis, ttl_seconds=ttl)
                await self.cache.set(
                    gas_analysis_key(self.network, cache_id), gas_analysis, ttl_seconds=ttl
                )
                await self.cache.set(
                    token_flow_key(self.network, cache_id), token_flow, ttl_seconds=ttl
                )

        except Exception as e:
            failed_stage = stage
            tracker.fail_step(str(e))
            error = e
            if not isinstance(e, BlockTraceError):
                error = ProcessingError(
                    f"{failed_stage.value} failed: {e}",
                    block_identifier=display_id,
                    network=self.network,
                )
            log.error(
                "block_analysis_failed",
                block_identifier=display_id,
                network=self.network,
                stage=failed_stage.value,
                error_type=type(e).__name__,
                error=str(e),
            )
            await self.progress.publish(
                AnalysisProgress(
                    block_identifier=display_id,
                    stage=AnalysisStage.ERROR,
                    percent=0,
                    message=f"Analysis failed: {error}",
                    elapsed_ms=tracker.elapsed_ms(),
                    error=str(error),
                    failed_stage=failed_stage,
                ),
                on_progress,
            )
            if error is e:
                raise
            raise error from e

        self._history.append(performance)
        await report(
            AnalysisStage.COMPLETE,
            100,
            f"Analysis completed in {format_duration(performance.execution_time_ms)}",
        )
        log.info(
            "block_analysis_complete",
            block_identifier=display_id,
            traces=summary.total_traces,
            transactions=summary.total_transactions,
            execution_time_ms=round(performance.execution_time_ms, 2),
        )
        return analysis

    async def analyze_blocks(
        self,
        block_identifiers: Sequence[str | int],
        *,
        use_cache: bool = True,
    ) -> list[BlockAnalysis]:
        """Analyze blocks one after another, skipping failures.

        Returns:
            Analyses of the blocks that succeeded, in input order.
        """
        results: list[BlockAnalysis] = []
        for block_identifier in block_identifiers:
            try:
                results.append(await self.analyze_block(block_identifier, use_cache=use_cache))
            except BlockTraceError as e:
                log.warning(
                    "block_analysis_skipped",
                    block_identifier=str(block_identifier),
                    error=str(e),
                )

        log.info(
            "blocks_analyzed",
            requested=len(block_identifiers),
            successful=len(results),
        )
        return results

    @staticmethod
    def compare_blocks(analyses: Sequence[BlockAnalysis]) -> BlockComparison:
        """Compare several block analyses.

        Raises:
            ValidationError: If fewer than two analyses are given.
        """
        if len(analyses) < 2:
            raise ValidationError("At least two block analyses are required for comparison")

        tx_counts = [a.summary.total_transactions for a in analyses]
        gas_used = [a.summary.total_gas_used for a in analyses]
        averages = ComparisonAverages(
            transaction_count=mean(tx_counts),
            gas_used=mean(gas_used),
            success_rate=mean(a.summary.success_rate for a in analyses),
            token_activity=mean(a.summary.token_transactions for a in analyses),
        )

        insights: list[str] = []
        if max(tx_counts) > COMPARE_VARIANCE_RATIO * min(tx_counts):
            insights.append(
                f"Transaction count varies significantly ({min(tx_counts)} to {max(tx_counts)})"
            )

        high_gas = [
            a.block_identifier
            for a in analyses
            if a.summary.total_gas_used > averages.gas_used * COMPARE_HIGH_GAS_RATIO
        ]
        if high_gas:
            insights.append(f"{len(high_gas)} block(s) with unusually high gas usage")

        token_blocks = sum(1 for a in analyses if a.summary.token_transactions > 0)
        if token_blocks:
            insights.append(f"Token activity found in {token_blocks} of {len(analyses)} blocks")

        recommendations: list[str] = []
        if mean(a.performance_metrics.execution_time_ms for a in analyses) > SLOW_EXECUTION_MS:
            recommendations.append("Consider caching results for frequently analyzed blocks")
        if averages.success_rate < COMPARE_SUCCESS_RATE_FLOOR:
            recommendations.append("Investigate failed transactions across the compared blocks")

        return BlockComparison(
            block_count=len(analyses),
            blocks=[a.block_identifier for a in analyses],
            averages=averages,
            insights=insights,
            recommendations=recommendations,
        )

    async def export_analysis(
        self,
        analysis: BlockAnalysis,
        export_format: str,
        exporter: AnalysisExporter,
    ) -> bytes | str:
        """Compile export data and hand it to an exporter."""
        data = ExportData(
            metadata=ExportMetadata(
                exported_at=datetime.now(UTC),
                block_number=analysis.metadata.number,
                block_hash=analysis.metadata.hash,
                network=analysis.network,
                analysis_version=ANALYSIS_VERSION,
                export_format=export_format,
            ),
            block_analysis=analysis,
            performance_metrics=analysis.performance_metrics,
        )
        log.info(
            "analysis_export_started",
            block_identifier=analysis.block_identifier,
            export_format=export_format,
        )
        return await exporter.export(data, export_format)

    def performance_stats(self) -> dict[str, CacheMetrics | list[PerformanceMetrics] | float]:
        """Cache metrics, recent run metrics and average execution time."""
        history = list(self._history)
        average = mean(m.execution_time_ms for m in history) if history else 0.0
        return {
            "cache": self.cache.stats(),
            "history": history,
            "average_execution_time_ms": average,
        }

    async def clear_cache(self) -> None:
        await self.cache.clear()
        log.info("analysis_cache_cleared")

    async def close(self) -> None:
        """Release the trace source."""
        await self.service.close()


async def analyze_block(
    block_identifier: str | int,
    settings: Settings | None = None,
    on_progress: ProgressListener | None = None,
) -> BlockAnalysis:
    """Convenience function to analyze a single block.

    Creates an orchestrator, runs the analysis and closes the trace source.

    Example:
        analysis = await analyze_block("latest", on_progress=print)
    """
    orchestrator = BlockTraceOrchestrator(settings)
    try:
        return await orchestrator.analyze_block(block_identifier, on_progress=on_progress)
    finally:
        await orchestrator.close()
