"""Tests for BlockTrace exception hierarchy."""

import pytest


class TestBlockTraceError:
    """Tests for base BlockTraceError exception."""

    def test_blocktrace_error_is_exception(self) -> None:
        """
        Given: BlockTraceError class
        When: Checking inheritance
        Then: It inherits from Exception
        """
        from blocktrace.core.exceptions import BlockTraceError

        assert issubclass(BlockTraceError, Exception)

    def test_blocktrace_error_str_representation(self) -> None:
        """
        Given: BlockTraceError with message
        When: Converting to string
        Then: Returns the message
        """
        from blocktrace.core.exceptions import BlockTraceError

        error = BlockTraceError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.block_identifier is None
        assert error.network is None

    def test_with_context_prefixes_message(self) -> None:
        """
        Given: An IngestionError without context
        When: with_context() is called
        Then: A new error of the same type carries block and network
        """
        from blocktrace.core.exceptions import IngestionError

        error = IngestionError("upstream down")
        enhanced = error.with_context("18500000", "mainnet")

        assert type(enhanced) is IngestionError
        assert str(enhanced) == "Block trace failed for 18500000 on mainnet: upstream down"
        assert enhanced.block_identifier == "18500000"
        assert enhanced.network == "mainnet"
        # Original is untouched
        assert str(error) == "upstream down"

    def test_with_context_keeps_subclass_attributes(self) -> None:
        """
        Given: An ExternalServiceError with a status code
        When: with_context() is called
        Then: service and status_code survive the copy
        """
        from blocktrace.core.exceptions import ExternalServiceError

        error = ExternalServiceError(service="rpc", message="Rate limited", status_code=429)
        enhanced = error.with_context("latest", "sepolia")

        assert enhanced.status_code == 429
        assert enhanced.service == "rpc"
        assert "latest on sepolia" in str(enhanced)


class TestExceptionTaxonomy:
    """Tests for the specialized exception classes."""

    @pytest.mark.parametrize(
        "name",
        [
            "ConfigurationError",
            "ValidationError",
            "IngestionError",
            "AnalysisTimeoutError",
            "ProcessingError",
            "CacheError",
            "ExternalServiceError",
            "CircuitBreakerOpenError",
        ],
    )
    def test_inherits_from_blocktrace_error(self, name: str) -> None:
        """
        Given: A specialized exception class
        When: Checking inheritance
        Then: It inherits from BlockTraceError
        """
        from blocktrace.core import exceptions

        assert issubclass(getattr(exceptions, name), exceptions.BlockTraceError)

    def test_timeout_error_is_builtin_timeout(self) -> None:
        """
        Given: AnalysisTimeoutError raised
        When: Catching as builtin TimeoutError
        Then: Exception is caught
        """
        from blocktrace.core.exceptions import AnalysisTimeoutError

        with pytest.raises(TimeoutError):
            raise AnalysisTimeoutError("Fetch exceeded 30.0s")

    def test_external_service_error_message(self) -> None:
        """
        Given: ExternalServiceError with service and message
        When: Converting to string
        Then: Message is prefixed with the service
        """
        from blocktrace.core.exceptions import ExternalServiceError

        error = ExternalServiceError(service="https://rpc.example", message="Bad gateway", status_code=502)
        assert str(error) == "https://rpc.example: Bad gateway"
        assert error.status_code == 502
