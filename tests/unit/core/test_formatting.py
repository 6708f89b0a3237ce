"""Tests for display formatting helpers."""

import pytest

from blocktrace.core.formatting import (
    format_address,
    format_duration,
    format_gas,
    format_percentage,
    format_token_amount,
    title_case,
)


class TestFormatAddress:
    def test_shortens_long_address(self) -> None:
        assert format_address("0x6c3ea9036406852006290770BEdFcAbA0e23A0e8") == "0x6c3e...A0e8"

    def test_empty_address(self) -> None:
        assert format_address(None) == "N/A"
        assert format_address("") == "N/A"

    def test_short_value_unchanged(self) -> None:
        assert format_address("0x1234") == "0x1234"


class TestFormatNumbers:
    @pytest.mark.parametrize(
        ("gas", "expected"),
        [(500, "500"), (21_000, "21.0K"), (1_500_000, "1.50M")],
    )
    def test_format_gas(self, gas: int, expected: str) -> None:
        assert format_gas(gas) == expected

    def test_format_percentage(self) -> None:
        assert format_percentage(94.2029) == "94.2%"
        assert format_percentage(50, decimals=2) == "50.00%"

    @pytest.mark.parametrize(
        ("ms", "expected"),
        [(250.4, "250ms"), (1500, "1.5s"), (125_000, "2m 5s")],
    )
    def test_format_duration(self, ms: float, expected: str) -> None:
        assert format_duration(ms) == expected


class TestFormatTokenAmount:
    def test_trims_trailing_zeros(self) -> None:
        """
        Given: 1.5 tokens with 6 decimals
        When: Formatted
        Then: Trailing zeros are trimmed
        """
        assert format_token_amount(1_500_000, 6, "PYUSD") == "1.5 PYUSD"

    def test_whole_amount(self) -> None:
        assert format_token_amount(100_000_000, 6, "PYUSD") == "100 PYUSD"

    def test_zero_amount(self) -> None:
        assert format_token_amount(0, 6, "PYUSD") == "0 PYUSD"

    def test_smallest_unit(self) -> None:
        assert format_token_amount(1, 6, "PYUSD") == "0.000001 PYUSD"

    def test_zero_decimals(self) -> None:
        assert format_token_amount(42, 0, "NFT") == "42 NFT"


def test_title_case() -> None:
    assert title_case("token_transaction") == "Token Transaction"
    assert title_case("eth_transfer") == "Eth Transfer"
