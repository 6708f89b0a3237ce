"""Performance tracking models."""

from enum import Enum

from pydantic import BaseModel, Field


class StepStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class ProcessingStep(BaseModel):
    """Timing record of one processing step."""

    name: str
    started_at: float = Field(description="perf_counter seconds")
    ended_at: float | None = None
    duration_ms: float | None = None
    memory_delta: int = 0
    status: StepStatus = StepStatus.COMPLETED
    error: str | None = None


class PerformanceMetrics(BaseModel):
    """Execution profile of one fetch or analysis run."""

    execution_time_ms: float = 0.0
    memory_usage: int = Field(default=0, description="Traced memory delta in bytes")
    cache_hit_rate: float = 0.0
    rpc_call_count: int = 0
    steps: list[ProcessingStep] = Field(default_factory=list)
