"""Test data factories using factory_boy.

These factories generate realistic raw trace records in the shape
returned by ``trace_block``.
"""

from tests.factories.trace import (
    RawActionFactory,
    RawResultFactory,
    RawTraceFactory,
    generate_address,
    generate_tx_hash,
    token_transfer_trace,
    encode_address,
    encode_uint,
    transfer_call_data,
    transfer_from_call_data,
)

__all__ = [
    "RawActionFactory",
    "RawResultFactory",
    "RawTraceFactory",
    "generate_address",
    "generate_tx_hash",
    "token_transfer_trace",
    "encode_address",
    "encode_uint",
    "transfer_call_data",
    "transfer_from_call_data",
]
