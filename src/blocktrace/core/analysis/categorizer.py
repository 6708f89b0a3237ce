"""Heuristic transaction categorization with risk and complexity scoring.

Category precedence:
1. Decoded token operation (confidence 0.9-1.0)
2. Call-data heuristics against DeFi and ERC-20 function names (0.6-0.8)
3. Baseline category from normalization (contract call 0.6, other 0.1)

Relationship tags are computed in a second pass over the whole batch.
"""

from collections import Counter, defaultdict
from collections.abc import Sequence

import structlog

from blocktrace.config.settings import Settings, get_settings
from blocktrace.constants.analysis import (
    COMPLEXITY_GAS_TIERS,
    COMPLEXITY_INPUT_TIERS,
    COMPLEXITY_PER_DEPTH,
    COMPLEXITY_PER_SIBLING,
    COMPLEXITY_SIBLING_CAP,
    COMPLEXITY_TOKEN_OPERATION,
    CONTRACT_CALL_CONFIDENCE,
    DEFI_CONFIDENCE,
    RISK_CONTRACT_CREATION,
    RISK_DEPTH_TIERS,
    RISK_FAILED,
    RISK_GAS_HIGH,
    RISK_GAS_HIGH_THRESHOLD,
    RISK_GAS_MEDIUM,
    RISK_GAS_MEDIUM_THRESHOLD,
    RISK_UNKNOWN_FUNCTION,
    RISK_VALUE_TIERS,
    SCORE_CAP,
    SCORE_LOW_LIMIT,
    SCORE_MEDIUM_LIMIT,
    TOKEN_CONFIDENCE_FLOOR,
    TOKEN_LARGE_AMOUNT,
    TOKEN_MEDIUM_AMOUNT,
    TOKEN_TRANSFER_CONFIDENCE,
)
from blocktrace.constants.trace import CATEGORY_COLORS, CATEGORY_PALETTE
from blocktrace.core.analysis.decoding import (
    detect_function_name,
    is_defi_function,
    is_erc20_function,
    is_known_selector,
)
from blocktrace.core.formatting import format_address
from blocktrace.models.categorization import (
    CategorizationStatistics,
    CategorizedTransaction,
    CategoryDetails,
    ScoreDistribution,
)
from blocktrace.models.trace import CategoryType, NormalizedTrace, TokenOperation, TraceKind

log = structlog.get_logger(__name__)

_ERROR_PATTERNS: tuple[tuple[str, str, str], ...] = (
    ("gas", "gas_error", "Out of gas"),
    ("revert", "revert", "Transaction reverted"),
    ("insufficient", "insufficient_funds", "Insufficient funds"),
    ("nonce", "nonce_error", "Nonce error"),
)


def category_color(category: CategoryType | str) -> str:
    """Display color for a category, falling back to the first palette color."""
    key = category.value if isinstance(category, CategoryType) else category
    return CATEGORY_COLORS.get(key, CATEGORY_PALETTE[0])


def _bucket(score: int, distribution: ScoreDistribution) -> None:
    if score < SCORE_LOW_LIMIT:
        distribution.low += 1
    elif score < SCORE_MEDIUM_LIMIT:
        distribution.medium += 1
    else:
        distribution.high += 1


class TransactionCategorizer:
    """Classify normalized traces and score their risk and complexity.

    Example:
        categorizer = TransactionCategorizer(settings)
        transactions = categorizer.categorize(traces)
        stats = categorizer.statistics(transactions)
    """

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.token_symbol = settings.token_symbol
        self.token_unit = 10**settings.token_decimals
        self.known_contracts = {
            address.lower(): f"{settings.token_symbol} Token"
            for address in settings.token_contracts
        }

    def categorize(self, traces: Sequence[NormalizedTrace]) -> list[CategorizedTransaction]:
        """Categorize a batch of traces.

        A failure while categorizing one trace falls back to its baseline
        category with zero scores; the rest of the batch is unaffected.

        Args:
            traces: Normalized traces of one block.

        Returns:
            One CategorizedTransaction per trace, in input order, with
            relationship tags attached.
        """
        siblings = Counter(trace.transaction_hash for trace in traces)
        categorized: list[CategorizedTransaction] = []
        fallbacks = 0

        for trace in traces:
            try:
                categorized.append(
                    CategorizedTransaction(
                        **dict(trace),
                        category=self._analyze_category(trace),
                        risk_score=self.risk_score(trace),
                        complexity_score=self.complexity_score(trace, siblings[trace.transaction_hash]),
                    )
                )
            except Exception as e:
                fallbacks += 1
                log.warning(
                    "trace_categorization_failed",
                    trace_id=trace.id,
                    error=str(e),
                )
                categorized.append(self._basic_categorization(trace))

        result = self._attach_relationships(categorized)
        log.info(
            "transactions_categorized",
            total=len(result),
            fallbacks=fallbacks,
        )
        return result

    def _analyze_category(self, trace: NormalizedTrace) -> CategoryDetails:
        """Resolve category details following the precedence rules."""
        base = trace.base_category
        primary = base.type
        subcategory = base.subtype
        confidence = base.confidence
        description = base.description

        if trace.token_operation is not None:
            primary = CategoryType.TOKEN_TRANSACTION
            subcategory, description = self._analyze_token_operation(trace.token_operation)
            confidence = max(confidence, TOKEN_CONFIDENCE_FLOOR)

        if trace.to_address and trace.has_call_data:
            candidate = self._analyze_contract_interaction(trace)
            if candidate.confidence > confidence:
                primary = candidate.primary_category
                subcategory = candidate.subcategory
                confidence = candidate.confidence
                description = candidate.description

        if trace.error:
            suffix, reason = self._analyze_error(trace.error)
            subcategory = f"{subcategory}_{suffix}"
            description = f"{description} ({reason})"

        return CategoryDetails(
            primary_category=primary,
            subcategory=subcategory,
            confidence=confidence,
            description=description,
            color=category_color(primary),
        )

    def _analyze_token_operation(self, operation: TokenOperation) -> tuple[str, str]:
        """Build subcategory and description for a decoded token operation.

        The subcategory is the operation kind, suffixed with ``_failed``
        for unsuccessful calls and with a size bucket based on whole
        token units.
        """
        subcategory = operation.kind.value
        description = f"{self.token_symbol} {operation.kind.value}"

        if operation.amount > 0:
            description += f" of {operation.amount_formatted}"

        if not operation.success:
            subcategory += "_failed"
            description += " (failed)"

        units = operation.amount / self.token_unit
        if units > TOKEN_LARGE_AMOUNT:
            subcategory += "_large"
            description += " - Large amount"
        elif units > TOKEN_MEDIUM_AMOUNT:
            subcategory += "_medium"
            description += " - Medium amount"
        elif units > 0:
            subcategory += "_small"
            description += " - Small amount"

        return subcategory, description

    def _analyze_contract_interaction(self, trace: NormalizedTrace) -> CategoryDetails:
        function_name = detect_function_name(trace.input)
        contract_name = self.known_contracts.get((trace.to_address or "").lower())
        on_contract = f" on {contract_name}" if contract_name else ""

        if is_defi_function(function_name):
            primary = CategoryType.DEFI_INTERACTION
            confidence = DEFI_CONFIDENCE
            description = f"DeFi interaction: {function_name}{on_contract}"
        elif is_erc20_function(function_name):
            primary = CategoryType.TOKEN_TRANSFER
            confidence = TOKEN_TRANSFER_CONFIDENCE
            description = f"Token {function_name}{on_contract}"
        else:
            primary = CategoryType.CONTRACT_CALL
            confidence = CONTRACT_CALL_CONFIDENCE
            description = f"Contract call: {function_name or 'unknown function'}{on_contract}"

        return CategoryDetails(
            primary_category=primary,
            subcategory=function_name or "unknown",
            confidence=confidence,
            description=description,
            color=category_color(primary),
        )

    @staticmethod
    def _analyze_error(error: str) -> tuple[str, str]:
        lowered = error.lower()
        for pattern, suffix, reason in _ERROR_PATTERNS:
            if pattern in lowered:
                return suffix, reason
        return "unknown_error", "Unknown error"

    @staticmethod
    def risk_score(trace: NormalizedTrace) -> int:
        """Additive 0-100 risk score.

        Failures, heavy gas usage, high value, contract creation, deep call
        stacks and calls to unknown functions each add points.
        """
        score = 0

        if not trace.success:
            score += RISK_FAILED

        if trace.gas_used > RISK_GAS_HIGH_THRESHOLD:
            score += RISK_GAS_HIGH
        elif trace.gas_used > RISK_GAS_MEDIUM_THRESHOLD:
            score += RISK_GAS_MEDIUM

        for threshold, points in RISK_VALUE_TIERS:
            if trace.value_eth > threshold:
                score += points
                break

        if trace.kind is TraceKind.CREATE:
            score += RISK_CONTRACT_CREATION

        for threshold, points in RISK_DEPTH_TIERS:
            if trace.depth > threshold:
                score += points
                break

        if trace.has_call_data and not is_known_selector(trace.input):
            score += RISK_UNKNOWN_FUNCTION

        return min(score, SCORE_CAP)

    @staticmethod
    def complexity_score(trace: NormalizedTrace, sibling_count: int) -> int:
        """Additive 0-100 complexity score.

        Args:
            trace: Trace to score.
            sibling_count: Number of traces sharing its transaction hash,
                including itself.
        """
        score = trace.depth * COMPLEXITY_PER_DEPTH
        score += min(sibling_count * COMPLEXITY_PER_SIBLING, COMPLEXITY_SIBLING_CAP)

        for threshold, points in COMPLEXITY_GAS_TIERS:
            if trace.gas_used > threshold:
                score += points
                break

        for threshold, points in COMPLEXITY_INPUT_TIERS:
            if len(trace.input) > threshold:
                score += points
                break

        if trace.token_operation is not None:
            score += COMPLEXITY_TOKEN_OPERATION

        return min(score, SCORE_CAP)

    def _basic_categorization(self, trace: NormalizedTrace) -> CategorizedTransaction:
        base = trace.base_category
        return CategorizedTransaction(
            **dict(trace),
            category=CategoryDetails(
                primary_category=base.type,
                subcategory=base.subtype,
                confidence=base.confidence,
                description=base.description,
                color=category_color(base.type),
            ),
            risk_score=0,
            complexity_score=0,
        )

    def _attach_relationships(
        self, transactions: list[CategorizedTransaction]
    ) -> list[CategorizedTransaction]:
        """Tag transactions that share a sender, a receiver or token activity."""
        by_sender: dict[str, int] = defaultdict(int)
        by_receiver: dict[str, int] = defaultdict(int)
        for tx in transactions:
            by_sender[tx.from_address.lower()] += 1
            if tx.to_address:
                by_receiver[tx.to_address.lower()] += 1
        token_count = sum(1 for tx in transactions if tx.token_operation is not None)

        tagged: list[CategorizedTransaction] = []
        for tx in transactions:
            relationships: list[str] = []

            sender_count = by_sender[tx.from_address.lower()]
            if sender_count > 1:
                relationships.append(f"part_of_{sender_count}_tx_batch")

            if tx.to_address:
                receiver_count = by_receiver[tx.to_address.lower()]
                if receiver_count > 1:
                    relationships.append(
                        f"one_of_{receiver_count}_to_{format_address(tx.to_address)}"
                    )

            if tx.token_operation is not None and token_count > 1:
                relationships.append(f"token_batch_{token_count}")

            tagged.append(tx.model_copy(update={"relationships": relationships}) if relationships else tx)

        return tagged

    @staticmethod
    def statistics(transactions: Sequence[CategorizedTransaction]) -> CategorizationStatistics:
        """Summarize categories, score buckets and failures of a batch."""
        stats = CategorizationStatistics(total_transactions=len(transactions))

        for tx in transactions:
            category = tx.category.primary_category.value
            stats.category_distribution[category] = stats.category_distribution.get(category, 0) + 1
            _bucket(tx.risk_score, stats.risk_distribution)
            _bucket(tx.complexity_score, stats.complexity_distribution)
            if tx.token_operation is not None:
                stats.token_transactions += 1
            if not tx.success:
                stats.failed_transactions += 1

        return stats
