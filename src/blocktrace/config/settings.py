"""Application settings using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from eth_utils import is_hex_address
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from blocktrace.constants.cache import (
    ANALYSIS_TTL_SECONDS,
    BLOCK_TRACE_TTL_SECONDS,
    DEFAULT_TTL_SECONDS,
    MAX_CACHE_SIZE,
)
from blocktrace.constants.trace import (
    DEFAULT_TOKEN_CONTRACT,
    DEFAULT_TOKEN_DECIMALS,
    DEFAULT_TOKEN_SYMBOL,
    HIGH_GAS_THRESHOLD,
)
from blocktrace.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """BlockTrace configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="BLOCKTRACE_",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Application
    app_name: str = Field(default="BlockTrace", description="Application name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )

    # RPC
    network: str = Field(default="mainnet", description="Network name used in cache keys")
    rpc_url: str = Field(
        default="http://localhost:8545",
        description="JSON-RPC endpoint exposing trace_block",
    )
    rpc_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Per-request HTTP timeout"
    )
    rpc_max_retries: int = Field(
        default=2, ge=1, description="Transport-level retries on 429/5xx/connection errors"
    )

    # Circuit Breaker
    circuit_breaker_threshold: int = Field(
        default=5, ge=1, description="Failures before circuit opens"
    )
    circuit_breaker_cooldown: int = Field(
        default=30, ge=1, description="Seconds before half-open"
    )

    # Fetch
    fetch_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Overall deadline for fetching one block"
    )
    retry_attempts: int = Field(default=3, ge=1, description="Fetch attempts per block")
    retry_base_delay_seconds: float = Field(
        default=1.0, ge=0, description="First retry delay, doubled on each attempt"
    )

    # Cache
    cache_max_size: int = Field(default=MAX_CACHE_SIZE, ge=1, description="Max cache entries")
    cache_default_ttl_seconds: int = Field(default=DEFAULT_TTL_SECONDS, ge=1)
    block_trace_ttl_seconds: int = Field(default=BLOCK_TRACE_TTL_SECONDS, ge=1)
    analysis_ttl_seconds: int = Field(default=ANALYSIS_TTL_SECONDS, ge=1)
    cache_persistence_path: str | None = Field(
        default=None, description="JSON file for cache persistence; memory-only when unset"
    )

    # Token
    token_contracts: list[str] = Field(
        default_factory=lambda: [DEFAULT_TOKEN_CONTRACT],
        description="Token contracts whose calls are decoded",
    )
    token_symbol: str = Field(default=DEFAULT_TOKEN_SYMBOL)
    token_decimals: int = Field(default=DEFAULT_TOKEN_DECIMALS, ge=0, le=36)

    # Gas analysis
    high_gas_threshold: int = Field(default=HIGH_GAS_THRESHOLD, ge=1)
    gas_price_gwei: float = Field(default=20.0, ge=0, description="Gas price for cost estimates")
    eth_price_usd: float = Field(default=2000.0, ge=0, description="ETH price for cost estimates")

    # Token flow
    flow_diagram_limit: int = Field(default=10, ge=1, description="Transfers drawn in flow diagram")

    @field_validator("rpc_url")
    @classmethod
    def validate_rpc_url(cls, v: str) -> str:
        """Validate RPC URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("RPC URL must start with http:// or https://")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept log levels in any case."""
        return v.upper() if isinstance(v, str) else v

    @field_validator("token_contracts")
    @classmethod
    def validate_token_contracts(cls, v: list[str]) -> list[str]:
        """Validate every token contract is a 20-byte hex address."""
        for address in v:
            if not is_hex_address(address):
                raise ValueError(f"Invalid token contract address: {address}")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Raises:
        ConfigurationError: If environment values fail validation.
    """
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid BlockTrace settings: {e}") from e
