"""Trace models: raw records from the trace source and normalized traces.

Raw records follow the common ``trace_block`` JSON shape (nested ``action``
and ``result`` objects, camelCase keys). Quantities arrive as hex strings,
decimal strings or ints and are parsed into Python ints.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def parse_quantity(value: Any) -> int:
    """Parse a hex string, decimal string or int quantity into an int.

    Raises:
        ValueError: If the value cannot be interpreted as a quantity.
    """
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValueError("Boolean is not a quantity")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text[:2].lower() == "0x":
            return int(text, 16) if len(text) > 2 else 0
        return int(text)
    raise ValueError(f"Unsupported quantity type: {type(value).__name__}")


class TraceKind(str, Enum):
    """Resolved kind of a trace."""

    CALL = "call"
    CREATE = "create"
    DESTROY = "destroy"
    REWARD = "reward"

    @classmethod
    def from_tag(cls, tag: str | None, has_callee: bool) -> "TraceKind":
        """Resolve a raw type tag, inferring the kind when the tag is absent."""
        if not tag:
            return cls.CALL if has_callee else cls.CREATE
        normalized = tag.lower()
        if normalized in ("suicide", "selfdestruct", "destroy"):
            return cls.DESTROY
        if normalized == "create":
            return cls.CREATE
        if normalized == "reward":
            return cls.REWARD
        return cls.CALL


class TokenOperationKind(str, Enum):
    """Decoded token function."""

    TRANSFER = "transfer"
    TRANSFER_FROM = "transferFrom"
    APPROVE = "approve"
    MINT = "mint"
    BURN = "burn"
    OTHER = "other"


class CategoryType(str, Enum):
    """Primary transaction category."""

    ETH_TRANSFER = "eth_transfer"
    CONTRACT_CALL = "contract_call"
    CONTRACT_CREATION = "contract_creation"
    TOKEN_TRANSACTION = "token_transaction"
    TOKEN_TRANSFER = "token_transfer"
    DEFI_INTERACTION = "defi_interaction"
    OTHER = "other"


class RawTraceAction(BaseModel):
    """Call frame of a raw trace."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_address: str = Field(alias="from")
    to_address: str | None = Field(default=None, alias="to")
    value: int = 0
    gas: int = 0
    input: str = "0x"
    call_type: str | None = Field(default=None, alias="callType")

    @model_validator(mode="before")
    @classmethod
    def map_variant_fields(cls, data: Any) -> Any:
        """Map reward (author) and create (init) frames onto the call shape."""
        if isinstance(data, dict):
            if "from" not in data and "author" in data:
                data = {**data, "from": data["author"]}
            if "input" not in data and "init" in data:
                data = {**data, "input": data["init"]}
        return data

    @field_validator("value", "gas", mode="before")
    @classmethod
    def parse_quantities(cls, v: Any) -> int:
        """Parse hex/decimal quantities."""
        return parse_quantity(v)

    @field_validator("input", mode="before")
    @classmethod
    def default_input(cls, v: Any) -> str:
        """Treat missing call data as empty."""
        return v or "0x"

    @field_validator("to_address", mode="before")
    @classmethod
    def empty_callee(cls, v: Any) -> Any:
        """Treat an empty callee as absent."""
        return v or None


class RawTraceResult(BaseModel):
    """Execution result of a raw trace."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    gas_used: int = Field(default=0, alias="gasUsed")
    output: str | None = None

    @field_validator("gas_used", mode="before")
    @classmethod
    def parse_gas_used(cls, v: Any) -> int:
        """Parse hex/decimal gas used."""
        return parse_quantity(v)


class RawTraceRecord(BaseModel):
    """One execution step as returned by the trace source.

    Attributes:
        action: Caller, callee, value, gas and call data.
        result: Gas used and output; absent for failed frames.
        error: Error message when the frame failed.
        transaction_hash: Enclosing transaction hash.
        transaction_position: Index of the transaction in the block.
        trace_address: Position of the frame within the call tree.
        type: Raw type tag (call, create, suicide, reward).

    Example:
        record = RawTraceRecord.model_validate({
            "action": {"from": "0xabc...", "to": "0xdef...", "value": "0x0", "gas": "0x5208", "input": "0x"},
            "result": {"gasUsed": "0x5208"},
            "transactionHash": "0x123...",
            "transactionPosition": 0,
            "traceAddress": [],
            "type": "call",
        })
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    action: RawTraceAction
    result: RawTraceResult | None = None
    error: str | None = None
    transaction_hash: str | None = Field(default=None, alias="transactionHash")
    transaction_position: int | None = Field(default=None, alias="transactionPosition")
    block_hash: str | None = Field(default=None, alias="blockHash")
    block_number: int | None = Field(default=None, alias="blockNumber")
    type: str | None = None
    subtraces: int = 0
    trace_address: list[int] = Field(default_factory=list, alias="traceAddress")

    @field_validator("transaction_position", "block_number", mode="before")
    @classmethod
    def parse_optional_quantity(cls, v: Any) -> int | None:
        """Parse optional hex/decimal positions."""
        return None if v is None else parse_quantity(v)


class BaseCategory(BaseModel):
    """Baseline classification computed during normalization."""

    model_config = ConfigDict(frozen=True)

    type: CategoryType
    subtype: str
    description: str
    confidence: float = Field(ge=0.0, le=1.0)


class TokenOperation(BaseModel):
    """Decoded call to a configured token contract.

    Attributes:
        kind: Decoded function, OTHER for unknown selectors.
        from_address: Token sender (decoded, or the trace caller).
        to_address: Token recipient when the function has one.
        spender: Approved spender for approve calls.
        amount: Amount in base units.
        amount_formatted: Human readable amount with symbol.
        selector: Raw 4-byte selector ("0x" + 8 hex chars).
        parameters: Decoded parameters by name.
    """

    model_config = ConfigDict(frozen=True)

    kind: TokenOperationKind
    from_address: str | None = None
    to_address: str | None = None
    spender: str | None = None
    amount: int = 0
    amount_formatted: str = ""
    selector: str
    parameters: dict[str, str] = Field(default_factory=dict)
    success: bool = True
    gas_used: int = 0


class NormalizedTrace(BaseModel):
    """Canonical trace record derived 1:1 from a RawTraceRecord."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Transaction hash plus trace path")
    transaction_hash: str
    transaction_index: int
    trace_address: list[int] = Field(default_factory=list)
    kind: TraceKind
    from_address: str
    to_address: str | None = None
    value: int = Field(default=0, description="Value in wei")
    value_eth: float = 0.0
    gas: int = 0
    gas_used: int = 0
    input: str = "0x"
    output: str | None = None
    error: str | None = None
    success: bool
    call_type: str | None = None
    depth: int = 0
    base_category: BaseCategory
    token_operation: TokenOperation | None = None

    @property
    def selector(self) -> str:
        """Leading 4-byte selector of the call data, lowercased."""
        return self.input[:10].lower()

    @property
    def has_call_data(self) -> bool:
        return len(self.input) > 2
