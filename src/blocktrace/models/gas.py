"""Gas analysis models."""

from enum import Enum

from pydantic import BaseModel, Field


class Severity(str, Enum):
    """Optimization opportunity severity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"low": 1, "medium": 2, "high": 3}[self.value]


class OptimizationType(str, Enum):
    """Kind of gas optimization opportunity."""

    EXCESSIVE_GAS = "excessive_gas"
    FAILURE_WASTE = "failure_waste"
    REDUNDANT_CALLS = "redundant_calls"
    BATCHABLE = "batchable"
    TOKEN_GAS_OVERHEAD = "token_gas_overhead"


class BenchmarkRating(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    POOR = "poor"


class GasDistributionItem(BaseModel):
    """Gas usage of one primary category."""

    category: str = Field(description="Category key")
    display_name: str = Field(description="Title-cased category name")
    gas_used: int
    percentage: float = Field(ge=0.0, le=100.0)
    transaction_count: int
    average_gas: float
    color: str


class GasEfficiencyMetrics(BaseModel):
    """Block-level gas efficiency."""

    success_rate: float = Field(description="Percentage of successful traces")
    average_gas_successful: float
    average_gas_failed: float
    wasted_gas: int = Field(description="Gas used by failed traces")
    efficiency_score: float = Field(ge=0.0, le=100.0)


class PotentialSavings(BaseModel):
    gas_amount: int
    percentage: float
    estimated_cost_usd: float


class OptimizationOpportunity(BaseModel):
    """A detected gas optimization with its estimated savings."""

    type: OptimizationType
    severity: Severity
    description: str
    recommendation: str
    potential_savings: PotentialSavings


class BenchmarkComparison(BaseModel):
    """Category average gas compared to a static benchmark."""

    category: str
    actual_average: float
    benchmark: int
    efficiency: float = Field(description="benchmark / actual * 100")
    rating: BenchmarkRating


class GasAnalysis(BaseModel):
    """Full gas analysis result."""

    total_gas_used: int = 0
    average_gas_per_trace: float = 0.0
    distribution: list[GasDistributionItem] = Field(default_factory=list)
    efficiency: GasEfficiencyMetrics
    opportunities: list[OptimizationOpportunity] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    benchmarks: list[BenchmarkComparison] = Field(default_factory=list)
