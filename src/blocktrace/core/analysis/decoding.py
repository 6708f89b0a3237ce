"""Call data decoding for token contracts and baseline classification.

Token calls use the standard ABI layout: a 4-byte selector followed by
32-byte slots. In the hex string every slot is 64 characters and an
address occupies the last 40 characters of its slot.
"""

import structlog
from eth_utils import is_hex_address, to_checksum_address

from blocktrace.constants.analysis import (
    BASE_DEFI_CONFIDENCE,
    BASE_TOKEN_TRANSFER_CONFIDENCE,
    CONTRACT_CALL_CONFIDENCE,
    UNKNOWN_CONFIDENCE,
)
from blocktrace.constants.trace import (
    DEFI_PATTERNS,
    ERC20_FUNCTION_NAMES,
    KNOWN_SELECTORS,
    SELECTOR_HEX_LENGTH,
    SLOT_HEX_LENGTH,
    TOKEN_OPERATION_SELECTORS,
)
from blocktrace.core.formatting import format_token_amount
from blocktrace.models.trace import BaseCategory, CategoryType, TokenOperation, TokenOperationKind

log = structlog.get_logger(__name__)

# Address sits in the low 20 bytes of a slot
_ADDRESS_OFFSET = SLOT_HEX_LENGTH - 40


def detect_function_name(call_data: str | None) -> str | None:
    """Resolve the function name for call data.

    Returns:
        Known function name, the raw selector when unknown, or None when
        the call data is too short to hold a selector.
    """
    if not call_data or len(call_data) < SELECTOR_HEX_LENGTH:
        return None
    selector = call_data[:SELECTOR_HEX_LENGTH].lower()
    return KNOWN_SELECTORS.get(selector, selector)


def is_known_selector(call_data: str | None) -> bool:
    if not call_data or len(call_data) < SELECTOR_HEX_LENGTH:
        return False
    return call_data[:SELECTOR_HEX_LENGTH].lower() in KNOWN_SELECTORS


def is_defi_function(function_name: str | None) -> bool:
    if not function_name:
        return False
    lowered = function_name.lower()
    return any(pattern in lowered for pattern in DEFI_PATTERNS)


def is_erc20_function(function_name: str | None) -> bool:
    return bool(function_name) and function_name.lower() in ERC20_FUNCTION_NAMES


def _slot(params: str, index: int) -> str:
    return params[index * SLOT_HEX_LENGTH : (index + 1) * SLOT_HEX_LENGTH]


def _slot_address(params: str, index: int) -> str:
    start = index * SLOT_HEX_LENGTH + _ADDRESS_OFFSET
    return to_checksum_address("0x" + params[start : (index + 1) * SLOT_HEX_LENGTH])


def _slot_uint(params: str, index: int) -> int:
    return int(_slot(params, index), 16)


def _has_slots(params: str, count: int) -> bool:
    return len(params) >= count * SLOT_HEX_LENGTH


def decode_token_operation(
    call_data: str,
    caller: str,
    *,
    success: bool,
    gas_used: int,
    decimals: int,
    symbol: str,
) -> TokenOperation:
    """Decode a call to a token contract.

    Recognized selectors (transfer, transferFrom, approve, mint, burn) are
    decoded by slot position. Unknown selectors produce a TokenOperation
    of kind OTHER without parameters. Truncated call data leaves the
    parameters empty rather than failing.

    Args:
        call_data: 0x-prefixed call data.
        caller: Trace caller, used as the token sender unless decoded.
            Hex addresses are checksummed like decoded ones.
        success: Whether the enclosing trace succeeded.
        gas_used: Gas used by the trace.
        decimals: Token decimals for amount formatting.
        symbol: Token symbol for amount formatting.

    Returns:
        Decoded TokenOperation.

    Raises:
        ValueError: If a slot holds non-hex characters.

    Example:
        >>> op = decode_token_operation(data, "0xabc...", success=True, gas_used=52000,
        ...                             decimals=6, symbol="PYUSD")
        >>> op.kind
        <TokenOperationKind.TRANSFER: 'transfer'>
    """
    selector = call_data[:SELECTOR_HEX_LENGTH].lower()
    params = call_data[SELECTOR_HEX_LENGTH:]
    kind = TokenOperationKind(TOKEN_OPERATION_SELECTORS.get(selector, "other"))

    from_address: str | None = to_checksum_address(caller) if is_hex_address(caller) else caller
    to_address: str | None = None
    spender: str | None = None
    amount = 0
    parameters: dict[str, str] = {}

    if kind in (TokenOperationKind.TRANSFER, TokenOperationKind.MINT) and _has_slots(params, 2):
        to_address = _slot_address(params, 0)
        amount = _slot_uint(params, 1)
        parameters = {"to": to_address, "amount": str(amount)}
    elif kind is TokenOperationKind.APPROVE and _has_slots(params, 2):
        spender = _slot_address(params, 0)
        amount = _slot_uint(params, 1)
        parameters = {"spender": spender, "amount": str(amount)}
    elif kind is TokenOperationKind.TRANSFER_FROM and _has_slots(params, 3):
        from_address = _slot_address(params, 0)
        to_address = _slot_address(params, 1)
        amount = _slot_uint(params, 2)
        parameters = {"from": from_address, "to": to_address, "amount": str(amount)}
    elif kind is TokenOperationKind.BURN and _has_slots(params, 1):
        amount = _slot_uint(params, 0)
        parameters = {"amount": str(amount)}
    elif kind is not TokenOperationKind.OTHER:
        log.debug("token_call_data_truncated", selector=selector, length=len(params))

    return TokenOperation(
        kind=kind,
        from_address=from_address,
        to_address=to_address,
        spender=spender,
        amount=amount,
        amount_formatted=format_token_amount(amount, decimals, symbol),
        selector=selector,
        parameters=parameters,
        success=success,
        gas_used=gas_used,
    )


def classify_base_category(
    to_address: str | None,
    value: int,
    call_data: str,
    *,
    is_token_contract: bool,
    token_symbol: str,
) -> BaseCategory:
    """Compute the baseline category of a trace from its call shape."""
    if not to_address:
        return BaseCategory(
            type=CategoryType.CONTRACT_CREATION,
            subtype="deployment",
            description="Contract deployment",
            confidence=1.0,
        )

    function_name = detect_function_name(call_data)

    if is_token_contract:
        return BaseCategory(
            type=CategoryType.TOKEN_TRANSACTION,
            subtype=function_name or "unknown",
            description=f"{token_symbol} {function_name or 'interaction'}",
            confidence=1.0,
        )

    if value > 0 and len(call_data) <= 2:
        return BaseCategory(
            type=CategoryType.ETH_TRANSFER,
            subtype="simple",
            description="ETH transfer",
            confidence=1.0,
        )

    if is_erc20_function(function_name):
        return BaseCategory(
            type=CategoryType.TOKEN_TRANSFER,
            subtype=function_name or "unknown",
            description=f"Token {function_name}",
            confidence=BASE_TOKEN_TRANSFER_CONFIDENCE,
        )

    if is_defi_function(function_name):
        return BaseCategory(
            type=CategoryType.DEFI_INTERACTION,
            subtype=function_name or "unknown",
            description=f"DeFi {function_name}",
            confidence=BASE_DEFI_CONFIDENCE,
        )

    if len(call_data) > 2:
        return BaseCategory(
            type=CategoryType.CONTRACT_CALL,
            subtype=function_name or "unknown",
            description=f"Contract call: {function_name or 'unknown function'}",
            confidence=CONTRACT_CALL_CONFIDENCE,
        )

    return BaseCategory(
        type=CategoryType.OTHER,
        subtype="unknown",
        description="Unknown transaction",
        confidence=UNKNOWN_CONFIDENCE,
    )
