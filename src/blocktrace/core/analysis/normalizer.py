"""Normalize raw trace records into canonical NormalizedTrace objects.

The normalizer never raises for bad input: every raw record produces
exactly one NormalizedTrace, malformed records become degraded traces
with success=False and a diagnostic error string.

Example:
    normalizer = TraceNormalizer(settings)
    traces = normalizer.normalize(raw_traces)
"""

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import structlog
from pydantic import BaseModel, Field

from blocktrace.config.settings import Settings, get_settings
from blocktrace.constants.trace import WEI_PER_ETH
from blocktrace.core.analysis.decoding import classify_base_category, decode_token_operation
from blocktrace.models.trace import (
    BaseCategory,
    CategoryType,
    NormalizedTrace,
    RawTraceRecord,
    TraceKind,
)

log = structlog.get_logger(__name__)

RawTraceInput = RawTraceRecord | Mapping[str, Any]


class ProcessingStats(BaseModel):
    """Aggregate counts over a set of normalized traces."""

    total_traces: int = 0
    successful_traces: int = 0
    failed_traces: int = 0
    kind_distribution: dict[str, int] = Field(default_factory=dict)
    token_operations: int = 0
    total_gas_used: int = 0
    average_gas_used: float = 0.0
    max_depth: int = 0


class TraceNormalizer:
    """Convert raw trace records into NormalizedTrace objects.

    Calls to configured token contracts are decoded into token operations.

    Attributes:
        token_contracts: Lowercased token contract addresses to decode.
        token_decimals: Decimals used to format token amounts.
        token_symbol: Symbol used to format token amounts.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.token_contracts = frozenset(address.lower() for address in settings.token_contracts)
        self.token_decimals = settings.token_decimals
        self.token_symbol = settings.token_symbol

    def normalize(self, raw_traces: Iterable[RawTraceInput]) -> list[NormalizedTrace]:
        """Normalize a batch of raw trace records.

        Args:
            raw_traces: Raw records as dicts (trace_block shape) or RawTraceRecord.

        Returns:
            One NormalizedTrace per input record, in input order.
        """
        normalized: list[NormalizedTrace] = []
        failures = 0

        for index, raw in enumerate(raw_traces):
            try:
                record = raw if isinstance(raw, RawTraceRecord) else RawTraceRecord.model_validate(raw)
                normalized.append(self._normalize_record(record, index))
            except (KeyError, IndexError, ValueError, TypeError, AttributeError) as e:
                failures += 1
                log.warning(
                    "trace_normalization_failed",
                    index=index,
                    error=str(e).splitlines()[0] if str(e) else type(e).__name__,
                )
                normalized.append(self._degraded_trace(raw, index, e))

        log.info(
            "traces_normalized",
            total=len(normalized),
            degraded=failures,
        )
        return normalized

    def is_token_contract(self, address: str | None) -> bool:
        return bool(address) and address.lower() in self.token_contracts

    def _normalize_record(self, record: RawTraceRecord, index: int) -> NormalizedTrace:
        """Build a NormalizedTrace from a validated record.

        Args:
            record: Validated raw record.
            index: Position of the record in the batch.

        Returns:
            NormalizedTrace with kind, depth, id and token decoding resolved.
        """
        action = record.action
        tx_hash = record.transaction_hash or "unknown"
        path = record.trace_address
        trace_id = f"{tx_hash}-{'-'.join(str(p) for p in path) if path else index}"
        success = not record.error
        gas_used = record.result.gas_used if record.result else 0
        is_token = self.is_token_contract(action.to_address)

        token_operation = None
        if is_token and len(action.input) >= 10:
            token_operation = decode_token_operation(
                action.input,
                action.from_address,
                success=success,
                gas_used=gas_used,
                decimals=self.token_decimals,
                symbol=self.token_symbol,
            )

        return NormalizedTrace(
            id=trace_id,
            transaction_hash=tx_hash,
            transaction_index=(
                record.transaction_position if record.transaction_position is not None else index
            ),
            trace_address=list(path),
            kind=TraceKind.from_tag(record.type, has_callee=action.to_address is not None),
            from_address=action.from_address,
            to_address=action.to_address,
            value=action.value,
            value_eth=action.value / WEI_PER_ETH,
            gas=action.gas,
            gas_used=gas_used,
            input=action.input,
            output=record.result.output if record.result else None,
            error=record.error,
            success=success,
            call_type=action.call_type,
            depth=len(path),
            base_category=classify_base_category(
                action.to_address,
                action.value,
                action.input,
                is_token_contract=is_token,
                token_symbol=self.token_symbol,
            ),
            token_operation=token_operation,
        )

    def _degraded_trace(self, raw: Any, index: int, error: Exception) -> NormalizedTrace:
        """Build the placeholder trace for a record that could not be normalized."""
        tx_hash = "unknown"
        from_address = "unknown"
        position = index

        if isinstance(raw, Mapping):
            if isinstance(raw.get("transactionHash"), str):
                tx_hash = raw["transactionHash"]
            if isinstance(raw.get("transactionPosition"), int):
                position = raw["transactionPosition"]
            action = raw.get("action")
            if isinstance(action, Mapping) and isinstance(action.get("from"), str):
                from_address = action["from"]

        message = str(error).splitlines()[0] if str(error) else type(error).__name__
        return NormalizedTrace(
            id=f"failed-{tx_hash}-{index}",
            transaction_hash=tx_hash,
            transaction_index=position,
            kind=TraceKind.CALL,
            from_address=from_address,
            success=False,
            error=f"Processing failed: {message}",
            base_category=BaseCategory(
                type=CategoryType.OTHER,
                subtype="failed",
                description="Failed to process trace",
                confidence=0.0,
            ),
        )

    @staticmethod
    def processing_stats(traces: Sequence[NormalizedTrace]) -> ProcessingStats:
        """Summarize a batch of normalized traces."""
        if not traces:
            return ProcessingStats()

        successful = sum(1 for trace in traces if trace.success)
        total_gas = sum(trace.gas_used for trace in traces)
        kinds = Counter(trace.kind.value for trace in traces)

        return ProcessingStats(
            total_traces=len(traces),
            successful_traces=successful,
            failed_traces=len(traces) - successful,
            kind_distribution=dict(kinds),
            token_operations=sum(1 for trace in traces if trace.token_operation),
            total_gas_used=total_gas,
            average_gas_used=total_gas / len(traces),
            max_depth=max(trace.depth for trace in traces),
        )

    @staticmethod
    def filter_traces(
        traces: Sequence[NormalizedTrace],
        *,
        kinds: Iterable[TraceKind] | None = None,
        success: bool | None = None,
        min_gas: int | None = None,
        max_gas: int | None = None,
        token_only: bool = False,
        addresses: Iterable[str] | None = None,
    ) -> list[NormalizedTrace]:
        """Select traces matching every given criterion.

        Args:
            traces: Traces to filter.
            kinds: Keep only these trace kinds.
            success: Keep only successful (True) or failed (False) traces.
            min_gas: Minimum gas used, inclusive.
            max_gas: Maximum gas used, inclusive.
            token_only: Keep only traces with a decoded token operation.
            addresses: Keep traces whose sender or receiver is listed.

        Returns:
            Matching traces in input order.
        """
        kind_set = set(kinds) if kinds is not None else None
        address_set = {a.lower() for a in addresses} if addresses is not None else None

        def matches(trace: NormalizedTrace) -> bool:
            if kind_set is not None and trace.kind not in kind_set:
                return False
            if success is not None and trace.success is not success:
                return False
            if min_gas is not None and trace.gas_used < min_gas:
                return False
            if max_gas is not None and trace.gas_used > max_gas:
                return False
            if token_only and trace.token_operation is None:
                return False
            if address_set is not None:
                participants = {trace.from_address.lower(), (trace.to_address or "").lower()}
                if not participants & address_set:
                    return False
            return True

        return [trace for trace in traces if matches(trace)]
