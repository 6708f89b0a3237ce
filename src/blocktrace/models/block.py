"""Block-level models: metadata, fetch results and the compiled analysis."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from blocktrace.models.categorization import CategorizationStatistics, CategorizedTransaction
from blocktrace.models.gas import GasAnalysis
from blocktrace.models.performance import PerformanceMetrics
from blocktrace.models.token_flow import TokenFlowAnalysis


class BlockMetadata(BaseModel):
    """Block header facts reported by the trace source."""

    number: int
    hash: str
    timestamp: int = 0
    transaction_count: int = 0
    total_gas_used: int = 0


class FetchResult(BaseModel):
    """Raw traces and metadata for one block, as returned by ingestion."""

    block_identifier: str
    network: str
    raw_traces: list[dict[str, Any]] = Field(default_factory=list)
    metadata: BlockMetadata
    performance: PerformanceMetrics = Field(default_factory=PerformanceMetrics)
    from_cache: bool = False


class BlockSummary(BaseModel):
    """Summary counts and rates over the categorized traces."""

    total_transactions: int = Field(description="Distinct transaction hashes")
    total_traces: int
    successful_transactions: int
    failed_transactions: int
    success_rate: float
    token_transactions: int
    token_percentage: float
    total_gas_used: int
    average_gas_per_transaction: float
    total_value_eth: float

    @model_validator(mode="after")
    def check_counts(self) -> "BlockSummary":
        """Successful and failed transactions must add up to the total."""
        if self.successful_transactions + self.failed_transactions != self.total_transactions:
            raise ValueError("successful + failed transactions must equal total transactions")
        return self


class BlockAnalysis(BaseModel):
    """Compiled analysis of one block. Immutable once returned."""

    model_config = ConfigDict(frozen=True)

    block_identifier: str
    network: str
    metadata: BlockMetadata
    summary: BlockSummary
    transactions: list[CategorizedTransaction] = Field(default_factory=list)
    categorization_statistics: CategorizationStatistics
    gas_analysis: GasAnalysis
    token_flow: TokenFlowAnalysis
    performance_metrics: PerformanceMetrics
    analyzed_at: datetime


class AnalysisStage(str, Enum):
    """Orchestrator state machine stages."""

    FETCHING = "fetching"
    CATEGORIZING = "categorizing"
    ANALYZING_GAS = "analyzing_gas"
    ANALYZING_FLOWS = "analyzing_flows"
    FINALIZING = "finalizing"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (AnalysisStage.COMPLETE, AnalysisStage.ERROR)


class AnalysisProgress(BaseModel):
    """Progress event published at every stage transition."""

    model_config = ConfigDict(frozen=True)

    block_identifier: str
    stage: AnalysisStage
    percent: int = Field(ge=0, le=100)
    message: str
    elapsed_ms: float = 0.0
    error: str | None = None
    failed_stage: AnalysisStage | None = None


class ComparisonAverages(BaseModel):
    transaction_count: float
    gas_used: float
    success_rate: float
    token_activity: float


class BlockComparison(BaseModel):
    """Cross-block averages with textual insights."""

    block_count: int
    blocks: list[str]
    averages: ComparisonAverages
    insights: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class ExportMetadata(BaseModel):
    exported_at: datetime
    block_number: int
    block_hash: str
    network: str
    analysis_version: str
    export_format: str


class ExportData(BaseModel):
    """Payload handed to an external exporter."""

    metadata: ExportMetadata
    block_analysis: BlockAnalysis
    performance_metrics: PerformanceMetrics
