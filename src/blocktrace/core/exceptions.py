"""BlockTrace exception hierarchy.

This module defines the base exception class and specialized exceptions
for the different failure categories of the trace analysis pipeline.
"""

from typing import Self


class BlockTraceError(Exception):
    """Base exception for all BlockTrace errors.

    All custom exceptions in BlockTrace should inherit from this class
    to enable consistent error handling and logging. The optional block
    identifier and network describe where the failure happened.

    Attributes:
        block_identifier: Block being processed when the error occurred.
        network: Network name the block belongs to.
    """

    def __init__(
        self,
        message: str,
        *,
        block_identifier: str | None = None,
        network: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.block_identifier = block_identifier
        self.network = network

    def with_context(self, block_identifier: str, network: str) -> Self:
        """Build a copy of this error carrying block and network context.

        The message is prefixed with the block and network so callers can
        tell which run failed without inspecting attributes.

        Args:
            block_identifier: Block identifier of the failed run.
            network: Network of the failed run.

        Returns:
            New exception of the same type with the enhanced message.

        Example:
            raise err.with_context("18500000", "mainnet") from err
        """
        enhanced = type(self).__new__(type(self))
        enhanced.__dict__.update(self.__dict__)
        message = f"Block trace failed for {block_identifier} on {network}: {self.message}"
        BlockTraceError.__init__(
            enhanced,
            message,
            block_identifier=block_identifier,
            network=network,
        )
        return enhanced


class ConfigurationError(BlockTraceError):
    """Raised when configuration is invalid or missing.

    Example:
        raise ConfigurationError("Token contract address is not a valid hex address")
    """

    pass


class ValidationError(BlockTraceError):
    """Raised when input validation fails.

    Use this for malformed block identifiers or analysis inputs. Validation
    errors are fatal and never retried.

    Example:
        raise ValidationError("Block identifier cannot be empty")
    """

    pass


class IngestionError(BlockTraceError):
    """Raised when fetching raw traces or block metadata fails.

    Ingestion errors are retried with exponential backoff before being
    surfaced to the caller.

    Example:
        raise IngestionError("trace_block returned no result")
    """

    pass


class AnalysisTimeoutError(BlockTraceError, TimeoutError):
    """Raised when the overall fetch deadline is exceeded.

    Timeouts are fatal for the run and are not retried further.

    Example:
        raise AnalysisTimeoutError("Fetch exceeded 30.0s")
    """

    pass


class ProcessingError(BlockTraceError):
    """Raised when a pipeline stage fails for a reason not otherwise categorized.

    Example:
        raise ProcessingError("Gas analysis failed: division by zero")
    """

    pass


class CacheError(BlockTraceError):
    """Raised by cache stores when persistence fails.

    Cache errors are non-fatal: the cache catches them, logs them and
    keeps operating from memory.

    Example:
        raise CacheError("Cannot write cache file: permission denied")
    """

    pass


class ExternalServiceError(BlockTraceError):
    """Raised when an external HTTP service call fails.

    Attributes:
        service: Name or base URL of the external service that failed.
        status_code: HTTP status code if available, None otherwise.

    Example:
        raise ExternalServiceError(service="https://rpc.example", message="Rate limited", status_code=429)
    """

    def __init__(
        self,
        service: str,
        message: str,
        status_code: int | None = None,
    ) -> None:
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service}: {message}")


class CircuitBreakerOpenError(BlockTraceError):
    """Raised when circuit breaker is open.

    Use this when an API client's circuit breaker has tripped due to
    consecutive failures and requests are being blocked.

    Example:
        raise CircuitBreakerOpenError("Circuit is open for RPC endpoint")
    """

    pass
