"""Analysis thresholds: risk, complexity, gas benchmarks and flow patterns."""

from typing import Final

# Risk score
RISK_FAILED: Final[int] = 30
RISK_GAS_MEDIUM_THRESHOLD: Final[int] = 200_000
RISK_GAS_HIGH_THRESHOLD: Final[int] = 500_000
RISK_GAS_MEDIUM: Final[int] = 10
RISK_GAS_HIGH: Final[int] = 20
RISK_VALUE_TIERS: Final[tuple[tuple[float, int], ...]] = ((100, 25), (10, 15), (1, 5))
RISK_CONTRACT_CREATION: Final[int] = 15
RISK_DEPTH_TIERS: Final[tuple[tuple[int, int], ...]] = ((5, 10), (3, 5))
RISK_UNKNOWN_FUNCTION: Final[int] = 10

# Complexity score
COMPLEXITY_PER_DEPTH: Final[int] = 5
COMPLEXITY_PER_SIBLING: Final[int] = 2
COMPLEXITY_SIBLING_CAP: Final[int] = 30
COMPLEXITY_GAS_TIERS: Final[tuple[tuple[int, int], ...]] = (
    (1_000_000, 25),
    (500_000, 15),
    (200_000, 10),
)
COMPLEXITY_INPUT_TIERS: Final[tuple[tuple[int, int], ...]] = ((1000, 15), (200, 10), (10, 5))
COMPLEXITY_TOKEN_OPERATION: Final[int] = 10

SCORE_CAP: Final[int] = 100

# Statistic buckets
SCORE_LOW_LIMIT: Final[int] = 30
SCORE_MEDIUM_LIMIT: Final[int] = 70

# Token amount buckets (whole token units)
TOKEN_LARGE_AMOUNT: Final[int] = 100_000
TOKEN_MEDIUM_AMOUNT: Final[int] = 10_000

# Categorization confidences
TOKEN_CONFIDENCE_FLOOR: Final[float] = 0.9
DEFI_CONFIDENCE: Final[float] = 0.8
TOKEN_TRANSFER_CONFIDENCE: Final[float] = 0.7
CONTRACT_CALL_CONFIDENCE: Final[float] = 0.6
UNKNOWN_CONFIDENCE: Final[float] = 0.1
BASE_TOKEN_TRANSFER_CONFIDENCE: Final[float] = 0.8
BASE_DEFI_CONFIDENCE: Final[float] = 0.7

# Gas optimization
EXCESSIVE_GAS_SAVINGS_PCT: Final[float] = 20.0
REDUNDANT_CALL_SAVINGS_PCT: Final[float] = 50.0
BATCH_SAVINGS_PCT: Final[float] = 30.0
FAILURE_HIGH_SEVERITY_RATIO: Final[float] = 0.1
BATCH_MIN_CALLS: Final[int] = 3
REDUNDANT_MIN_INPUT_LENGTH: Final[int] = 10
TOKEN_GAS_OVERHEAD_RATIO: Final[float] = 1.2
BATCHABLE_SELECTORS: Final[frozenset[str]] = frozenset(
    {"0xa9059cbb", "0x095ea7b3", "0x23b872dd"}
)

GAS_BENCHMARKS: Final[dict[str, int]] = {
    "eth_transfer": 21_000,
    "token_transfer": 65_000,
    "contract_call": 100_000,
    "token_transaction": 65_000,
    "contract_creation": 200_000,
    "defi_interaction": 150_000,
}
BENCHMARK_EXCELLENT: Final[float] = 90.0
BENCHMARK_GOOD: Final[float] = 75.0
BENCHMARK_POOR: Final[float] = 50.0

EFFICIENCY_EXCELLENT: Final[float] = 90.0
EFFICIENCY_GOOD: Final[float] = 70.0

# Token flow
FLOW_TOP_LIMIT: Final[int] = 5
FLOW_CENTRAL_LIMIT: Final[int] = 3
BETWEENNESS_FACTOR: Final[float] = 0.1
LARGE_TRANSFER_UNITS: Final[int] = 10_000
MICRO_TRANSFER_UNITS: Final[int] = 1
EMPTY_FLOW_DOT: Final[str] = "digraph EmptyFlow { }"
FLOW_DOT_HEADER: Final[str] = (
    "digraph TokenFlow {\n"
    "  rankdir=LR;\n"
    "  node [shape=box, style=rounded];\n"
    "  edge [fontsize=10];\n\n"
)

# Orchestration
SLOW_EXECUTION_MS: Final[int] = 15_000
MEMORY_WARNING_BYTES: Final[int] = 100 * 1024 * 1024
LOW_HIT_RATE_PCT: Final[float] = 50.0
LOW_HIT_RATE_MIN_ACCESSES: Final[int] = 5
PERFORMANCE_HISTORY_LIMIT: Final[int] = 100
COMPARE_HIGH_GAS_RATIO: Final[float] = 1.5
COMPARE_VARIANCE_RATIO: Final[float] = 2.0
COMPARE_SUCCESS_RATE_FLOOR: Final[float] = 95.0
ANALYSIS_VERSION: Final[str] = "1.0.0"
