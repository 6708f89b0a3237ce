"""Tests for PerformanceTracker."""

from blocktrace.core.performance import PerformanceTracker
from blocktrace.models.performance import StepStatus


class TestSteps:
    """Tests for step bookkeeping."""

    def test_start_step_closes_previous(self) -> None:
        tracker = PerformanceTracker()

        tracker.start_step("validation")
        tracker.start_step("cache_check")

        assert tracker.current_step == "cache_check"
        [validation] = tracker.steps
        assert validation.name == "validation"
        assert validation.status is StepStatus.COMPLETED
        assert validation.duration_ms is not None
        assert validation.duration_ms >= 0

    def test_fail_step(self) -> None:
        tracker = PerformanceTracker()
        tracker.start_step("block_trace")

        tracker.fail_step("connection refused")

        [step] = tracker.steps
        assert step.status is StepStatus.FAILED
        assert step.error == "connection refused"
        assert tracker.current_step is None

    def test_end_step_without_open_step_is_noop(self) -> None:
        tracker = PerformanceTracker()

        tracker.end_step()

        assert tracker.steps == []

    def test_skip_step(self) -> None:
        tracker = PerformanceTracker()

        tracker.skip_step("caching")

        [step] = tracker.steps
        assert step.status is StepStatus.SKIPPED
        assert step.duration_ms == 0.0


class TestMetrics:
    """Tests for PerformanceMetrics assembly."""

    def test_metrics_closes_open_step(self) -> None:
        """
        Given: A tracker with one step still open
        When: Metrics are built
        Then: The step is completed and the counters are carried over
        """
        tracker = PerformanceTracker()
        tracker.start_step("fetching")

        metrics = tracker.metrics(cache_hit_rate=50.0, rpc_call_count=2)

        assert [step.name for step in metrics.steps] == ["fetching"]
        assert metrics.cache_hit_rate == 50.0
        assert metrics.rpc_call_count == 2
        assert metrics.execution_time_ms >= 0
        assert tracker.current_step is None

    def test_memory_is_zero_without_tracemalloc(self) -> None:
        metrics = PerformanceTracker().metrics()

        assert metrics.memory_usage == 0
