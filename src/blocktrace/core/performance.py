"""Step timing and memory tracking for fetch and analysis runs."""

import time
import tracemalloc

from blocktrace.models.performance import PerformanceMetrics, ProcessingStep, StepStatus


def _traced_memory() -> int:
    # Only sample when the caller already enabled tracemalloc
    if not tracemalloc.is_tracing():
        return 0
    current, _peak = tracemalloc.get_traced_memory()
    return current


class PerformanceTracker:
    """Collect ProcessingStep records for one run.

    Example:
        tracker = PerformanceTracker()
        tracker.start_step("validation")
        ...
        tracker.end_step()
        metrics = tracker.metrics(rpc_call_count=2)
    """

    def __init__(self) -> None:
        self.started_at = time.perf_counter()
        self._memory_start = _traced_memory()
        self._steps: list[ProcessingStep] = []
        self._current: ProcessingStep | None = None
        self._current_memory = 0

    @property
    def current_step(self) -> str | None:
        return self._current.name if self._current else None

    @property
    def steps(self) -> list[ProcessingStep]:
        return list(self._steps)

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started_at) * 1000

    def start_step(self, name: str) -> None:
        """Open a step, completing any step still in flight."""
        if self._current is not None:
            self.end_step()
        self._current = ProcessingStep(name=name, started_at=time.perf_counter())
        self._current_memory = _traced_memory()

    def end_step(self, status: StepStatus = StepStatus.COMPLETED, error: str | None = None) -> None:
        step = self._current
        if step is None:
            return
        ended = time.perf_counter()
        step.ended_at = ended
        step.duration_ms = (ended - step.started_at) * 1000
        step.memory_delta = _traced_memory() - self._current_memory
        step.status = status
        step.error = error
        self._steps.append(step)
        self._current = None

    def fail_step(self, error: str) -> None:
        self.end_step(StepStatus.FAILED, error)

    def skip_step(self, name: str) -> None:
        now = time.perf_counter()
        self._steps.append(
            ProcessingStep(
                name=name,
                started_at=now,
                ended_at=now,
                duration_ms=0.0,
                status=StepStatus.SKIPPED,
            )
        )

    def metrics(self, *, cache_hit_rate: float = 0.0, rpc_call_count: int = 0) -> PerformanceMetrics:
        """Close any open step and build the run's PerformanceMetrics."""
        if self._current is not None:
            self.end_step()
        return PerformanceMetrics(
            execution_time_ms=self.elapsed_ms(),
            memory_usage=max(0, _traced_memory() - self._memory_start),
            cache_hit_rate=cache_hit_rate,
            rpc_call_count=rpc_call_count,
            steps=list(self._steps),
        )
