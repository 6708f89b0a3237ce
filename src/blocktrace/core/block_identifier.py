"""Block identifier validation, formatting and parsing.

A block can be addressed four ways:
- a decimal block number ("18500000")
- a 0x-prefixed hex block number ("0x11a49a0")
- a 0x-prefixed 32-byte block hash (66 characters)
- a well-known tag ("latest", "pending", "earliest", "finalized", "safe")

Validation must run before any fetch so malformed identifiers never
reach the trace source.
"""

import re
from enum import Enum
from typing import Final

import structlog
from pydantic import BaseModel, Field

from blocktrace.core.exceptions import ValidationError

log = structlog.get_logger(__name__)

BLOCK_TAGS: Final[frozenset[str]] = frozenset(
    {"latest", "pending", "earliest", "finalized", "safe"}
)
MAX_REASONABLE_BLOCK_NUMBER: Final[int] = 50_000_000
# Block numbers are uint64 quantities
MAX_BLOCK_NUMBER: Final[int] = 2**64 - 1
MAX_BLOCK_NUMBER_DIGITS: Final[int] = len(str(MAX_BLOCK_NUMBER))

_HASH_PATTERN: Final[re.Pattern[str]] = re.compile(r"^0x[0-9a-fA-F]{64}$")
_HEX_PATTERN: Final[re.Pattern[str]] = re.compile(r"^0x[0-9a-fA-F]+$")
_DECIMAL_PATTERN: Final[re.Pattern[str]] = re.compile(r"^-?\d+$")


class BlockIdentifierKind(str, Enum):
    """How a block identifier addresses its block."""

    NUMBER = "number"
    HASH = "hash"
    TAG = "tag"


class BlockIdentifierValidation(BaseModel):
    """Result of validating a block identifier."""

    is_valid: bool = Field(description="Whether the identifier can be fetched")
    kind: BlockIdentifierKind | None = Field(default=None, description="Classification")
    normalized: str | None = Field(
        default=None, description="Canonical form: decimal number, lowercase hash or tag"
    )
    error: str | None = Field(default=None, description="Reason for rejection")
    warning: str | None = Field(default=None, description="Non-fatal concern")


def _validate_number(value: int) -> BlockIdentifierValidation:
    if value < 0:
        return BlockIdentifierValidation(
            is_valid=False, error="Block number cannot be negative"
        )
    if value > MAX_BLOCK_NUMBER:
        return BlockIdentifierValidation(is_valid=False, error="Block number is too large")
    warning = None
    if value > MAX_REASONABLE_BLOCK_NUMBER:
        warning = f"Block number {value} seems unusually high"
    return BlockIdentifierValidation(
        is_valid=True,
        kind=BlockIdentifierKind.NUMBER,
        normalized=str(value),
        warning=warning,
    )


def validate_block_identifier(value: str | int | None) -> BlockIdentifierValidation:
    """Classify and validate a block identifier.

    Args:
        value: Raw identifier from the caller.

    Returns:
        BlockIdentifierValidation describing the outcome. Never raises.

    Example:
        >>> validate_block_identifier("LATEST").kind
        <BlockIdentifierKind.TAG: 'tag'>
    """
    if value is None:
        return BlockIdentifierValidation(is_valid=False, error="Block identifier is required")

    if isinstance(value, bool):
        return BlockIdentifierValidation(
            is_valid=False, error="Block identifier must be a string or integer"
        )

    if isinstance(value, int):
        return _validate_number(value)

    trimmed = value.strip()
    if not trimmed:
        return BlockIdentifierValidation(is_valid=False, error="Block identifier cannot be empty")

    if trimmed.lower() in BLOCK_TAGS:
        return BlockIdentifierValidation(
            is_valid=True, kind=BlockIdentifierKind.TAG, normalized=trimmed.lower()
        )

    if trimmed[:2].lower() == "0x":
        if _HASH_PATTERN.match(trimmed):
            return BlockIdentifierValidation(
                is_valid=True, kind=BlockIdentifierKind.HASH, normalized=trimmed.lower()
            )
        if not _HEX_PATTERN.match(trimmed):
            return BlockIdentifierValidation(
                is_valid=False, error="Hex block identifier contains invalid characters"
            )
        return _validate_number(int(trimmed, 16))

    if _DECIMAL_PATTERN.match(trimmed):
        if len(trimmed.lstrip("-").lstrip("0")) > MAX_BLOCK_NUMBER_DIGITS:
            error = (
                "Block number cannot be negative"
                if trimmed.startswith("-")
                else "Block number is too large"
            )
            return BlockIdentifierValidation(is_valid=False, error=error)
        return _validate_number(int(trimmed))

    return BlockIdentifierValidation(
        is_valid=False,
        error=(
            "Invalid block identifier. Use a block number, hex number, "
            "block hash, or tag (latest, pending, earliest, finalized, safe)"
        ),
    )


def require_valid_block_identifier(value: str | int | None) -> BlockIdentifierValidation:
    """Validate a block identifier, raising on rejection.

    Raises:
        ValidationError: If the identifier is rejected.
    """
    result = validate_block_identifier(value)
    if not result.is_valid:
        raise ValidationError(result.error or "Invalid block identifier")
    if result.warning:
        log.warning("block_identifier_warning", block_identifier=str(value), warning=result.warning)
    return result


def format_block_identifier(value: str | int) -> str:
    """Render a block identifier in the form expected by JSON-RPC.

    Numbers become 0x-prefixed hex quantities, tags are lowercased and
    hashes are returned lowercased.

    Raises:
        ValidationError: If the identifier is rejected.
    """
    parsed = parse_block_identifier(value)
    if isinstance(parsed, int):
        return hex(parsed)
    return parsed


def parse_block_identifier(value: str | int) -> int | str:
    """Parse a block identifier into a block number, hash or tag.

    Returns:
        int for block numbers (decimal or hex), otherwise the lowercased
        hash or tag string.

    Raises:
        ValidationError: If the identifier is rejected.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        require_valid_block_identifier(value)
        return value

    result = require_valid_block_identifier(value)
    normalized = result.normalized or ""

    if result.kind is BlockIdentifierKind.NUMBER:
        if normalized[:2].lower() == "0x":
            return int(normalized, 16)
        return int(normalized)
    return normalized.lower()
