"""Trace analysis pipeline: normalization, categorization, gas and token flow."""

from blocktrace.core.analysis.categorizer import TransactionCategorizer
from blocktrace.core.analysis.gas_analyzer import GasAnalyzer
from blocktrace.core.analysis.normalizer import ProcessingStats, TraceNormalizer
from blocktrace.core.analysis.orchestrator import (
    AnalysisExporter,
    BlockTraceOrchestrator,
    analyze_block,
    summarize_transactions,
)
from blocktrace.core.analysis.progress import ProgressChannel, ProgressListener
from blocktrace.core.analysis.token_flow import TokenFlowAnalyzer

__all__ = [
    "AnalysisExporter",
    "BlockTraceOrchestrator",
    "GasAnalyzer",
    "ProcessingStats",
    "ProgressChannel",
    "ProgressListener",
    "TokenFlowAnalyzer",
    "TraceNormalizer",
    "TransactionCategorizer",
    "analyze_block",
    "summarize_transactions",
]
