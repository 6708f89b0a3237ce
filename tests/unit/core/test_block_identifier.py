"""Tests for block identifier validation, formatting and parsing."""

import pytest

from blocktrace.core.block_identifier import (
    BlockIdentifierKind,
    format_block_identifier,
    parse_block_identifier,
    require_valid_block_identifier,
    validate_block_identifier,
)
from blocktrace.core.exceptions import ValidationError

BLOCK_HASH = "0x" + "ab" * 32


class TestValidateBlockIdentifier:
    """Tests for validate_block_identifier."""

    @pytest.mark.parametrize("tag", ["latest", "LATEST", "Pending", "earliest", "finalized", "safe"])
    def test_tags_are_case_insensitive(self, tag: str) -> None:
        """
        Given: A block tag in any case
        When: Validated
        Then: It is a valid tag, normalized to lowercase
        """
        result = validate_block_identifier(tag)

        assert result.is_valid
        assert result.kind is BlockIdentifierKind.TAG
        assert result.normalized == tag.lower()

    def test_block_hash(self) -> None:
        """
        Given: 0x followed by 64 hex digits
        When: Validated
        Then: It is classified as a hash
        """
        result = validate_block_identifier(BLOCK_HASH)

        assert result.is_valid
        assert result.kind is BlockIdentifierKind.HASH

    @pytest.mark.parametrize("value", ["18500000", "0x11a49a0", 18500000])
    def test_block_numbers(self, value: str | int) -> None:
        """
        Given: Decimal, hex or integer block numbers
        When: Validated
        Then: They are classified as numbers without warning
        """
        result = validate_block_identifier(value)

        assert result.is_valid
        assert result.kind is BlockIdentifierKind.NUMBER
        assert result.warning is None

    def test_unusually_high_number_warns(self) -> None:
        """
        Given: A block number above 50,000,000
        When: Validated
        Then: It is valid but carries a warning
        """
        result = validate_block_identifier("60000000")

        assert result.is_valid
        assert result.warning is not None

    @pytest.mark.parametrize(
        ("value", "error"),
        [
            ("", "empty"),
            ("   ", "empty"),
            (None, "required"),
            ("-5", "negative"),
            ("9" * 5000, "too large"),
            ("-" + "9" * 5000, "negative"),
            ("0x1" + "0" * 16, "too large"),
            (2**64, "too large"),
            ("0xzz", "invalid characters"),
            ("yesterday", "Invalid block identifier"),
            (True, "string or integer"),
        ],
    )
    def test_rejected_identifiers(self, value: object, error: str) -> None:
        """
        Given: A malformed block identifier
        When: Validated
        Then: It is rejected with a reason and no exception is raised
        """
        result = validate_block_identifier(value)  # type: ignore[arg-type]

        assert not result.is_valid
        assert error in (result.error or "")

    @pytest.mark.parametrize("value", ["123", "0x7b", "0x7B", 123, " 00123 "])
    def test_numbers_normalize_to_decimal(self, value: str | int) -> None:
        """
        Given: The same block number written in different forms
        When: Validated
        Then: Every form normalizes to the same decimal string
        """
        assert validate_block_identifier(value).normalized == "123"

    def test_hash_normalizes_to_lowercase(self) -> None:
        mixed_case = BLOCK_HASH.upper().replace("0X", "0x")

        assert validate_block_identifier(mixed_case).normalized == BLOCK_HASH


class TestRequireValidBlockIdentifier:
    """Tests for require_valid_block_identifier."""

    def test_raises_validation_error(self) -> None:
        """
        Given: An empty identifier
        When: require_valid_block_identifier() is called
        Then: ValidationError is raised
        """
        with pytest.raises(ValidationError, match="empty"):
            require_valid_block_identifier("")

    def test_oversized_decimal_raises_validation_error(self) -> None:
        """
        Given: A decimal string longer than any block number
        When: require_valid_block_identifier() is called
        Then: ValidationError is raised instead of an integer conversion error
        """
        with pytest.raises(ValidationError, match="too large"):
            require_valid_block_identifier("9" * 5000)

    def test_returns_result_for_valid_identifier(self) -> None:
        """
        Given: A valid tag
        When: require_valid_block_identifier() is called
        Then: The validation result is returned
        """
        assert require_valid_block_identifier("latest").normalized == "latest"


class TestFormatAndParse:
    """Tests for format_block_identifier and parse_block_identifier."""

    def test_format_decimal_as_hex_quantity(self) -> None:
        assert format_block_identifier("18500000") == "0x11a49a0"

    def test_format_int_as_hex_quantity(self) -> None:
        assert format_block_identifier(255) == "0xff"

    def test_format_lowercases_hash_and_tag(self) -> None:
        assert format_block_identifier("LATEST") == "latest"
        assert format_block_identifier(BLOCK_HASH.upper().replace("0X", "0x")) == BLOCK_HASH

    def test_parse_numbers(self) -> None:
        """
        Given: Decimal and hex block numbers
        When: Parsed
        Then: Both become the same integer
        """
        assert parse_block_identifier("18500000") == 18500000
        assert parse_block_identifier("0x11a49a0") == 18500000

    def test_parse_tag_and_hash_stay_strings(self) -> None:
        assert parse_block_identifier("Finalized") == "finalized"
        assert parse_block_identifier(BLOCK_HASH) == BLOCK_HASH

    def test_parse_invalid_raises(self) -> None:
        with pytest.raises(ValidationError):
            parse_block_identifier("not-a-block")
