"""Cache constants."""

from typing import Final

DEFAULT_TTL_SECONDS: Final[int] = 300  # 5 minutes
BLOCK_TRACE_TTL_SECONDS: Final[int] = 600  # 10 minutes
ANALYSIS_TTL_SECONDS: Final[int] = 900  # 15 minutes
MAX_CACHE_SIZE: Final[int] = 100
MEMORY_ONLY_CACHE_SIZE: Final[int] = 50

# Fraction of entries removed per eviction pass
EVICTION_FRACTION: Final[float] = 0.2

# Structural size estimates (bytes)
BOOL_SIZE: Final[int] = 4
NUMBER_SIZE: Final[int] = 8
CHAR_SIZE: Final[int] = 2
REFERENCE_SIZE: Final[int] = 8

# Key prefixes
BLOCK_TRACE_PREFIX: Final[str] = "block_trace"
FULL_ANALYSIS_PREFIX: Final[str] = "full_analysis"
GAS_ANALYSIS_PREFIX: Final[str] = "gas_analysis"
TOKEN_FLOW_PREFIX: Final[str] = "token_flow"
