"""Gas usage analysis: distribution, efficiency and optimization opportunities."""

from collections import defaultdict
from collections.abc import Sequence

import structlog

from blocktrace.config.settings import Settings, get_settings
from blocktrace.constants.analysis import (
    BATCH_MIN_CALLS,
    BATCH_SAVINGS_PCT,
    BATCHABLE_SELECTORS,
    BENCHMARK_EXCELLENT,
    BENCHMARK_GOOD,
    BENCHMARK_POOR,
    EFFICIENCY_EXCELLENT,
    EFFICIENCY_GOOD,
    EXCESSIVE_GAS_SAVINGS_PCT,
    FAILURE_HIGH_SEVERITY_RATIO,
    GAS_BENCHMARKS,
    REDUNDANT_CALL_SAVINGS_PCT,
    REDUNDANT_MIN_INPUT_LENGTH,
    TOKEN_GAS_OVERHEAD_RATIO,
)
from blocktrace.constants.trace import COMPLEX_TRANSACTION_GAS, TOKEN_OPERATION_GAS_ESTIMATES
from blocktrace.core.analysis.categorizer import category_color
from blocktrace.core.formatting import format_gas, format_percentage, title_case
from blocktrace.models.categorization import CategorizedTransaction
from blocktrace.models.gas import (
    BenchmarkComparison,
    BenchmarkRating,
    GasAnalysis,
    GasDistributionItem,
    GasEfficiencyMetrics,
    OptimizationOpportunity,
    OptimizationType,
    PotentialSavings,
    Severity,
)

log = structlog.get_logger(__name__)


class GasAnalyzer:
    """Aggregate gas usage and detect optimization opportunities.

    Attributes:
        high_gas_threshold: Gas used above which a trace is excessive.
        gas_price_gwei: Gas price used for USD cost estimates.
        eth_price_usd: ETH price used for USD cost estimates.

    Example:
        analyzer = GasAnalyzer(settings)
        analysis = analyzer.analyze(transactions)
        for opportunity in analysis.opportunities:
            print(opportunity.severity, opportunity.description)
    """

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.high_gas_threshold = settings.high_gas_threshold
        self.gas_price_gwei = settings.gas_price_gwei
        self.eth_price_usd = settings.eth_price_usd
        self.token_symbol = settings.token_symbol

    def analyze(self, transactions: Sequence[CategorizedTransaction]) -> GasAnalysis:
        """Run the full gas analysis over categorized transactions.

        Args:
            transactions: Categorized traces of one block.

        Returns:
            GasAnalysis with distribution, efficiency, opportunities,
            insights, recommendations and benchmark comparisons.
        """
        total_gas = sum(tx.gas_used for tx in transactions)
        distribution = self.distribution(transactions)
        efficiency = self.efficiency(transactions)
        opportunities = self.opportunities(transactions)

        analysis = GasAnalysis(
            total_gas_used=total_gas,
            average_gas_per_trace=total_gas / len(transactions) if transactions else 0.0,
            distribution=distribution,
            efficiency=efficiency,
            opportunities=opportunities,
            insights=self._insights(transactions, distribution, efficiency),
            recommendations=self._recommendations(transactions, opportunities),
            benchmarks=self.compare_to_benchmarks(distribution),
        )

        log.info(
            "gas_analysis_completed",
            total_gas=total_gas,
            categories=len(distribution),
            opportunities=len(opportunities),
            efficiency_score=efficiency.efficiency_score,
        )
        return analysis

    @staticmethod
    def distribution(transactions: Sequence[CategorizedTransaction]) -> list[GasDistributionItem]:
        """Group gas used by primary category, largest first."""
        gas_by_category: dict[str, int] = defaultdict(int)
        count_by_category: dict[str, int] = defaultdict(int)
        for tx in transactions:
            key = tx.category.primary_category.value
            gas_by_category[key] += tx.gas_used
            count_by_category[key] += 1

        total_gas = sum(gas_by_category.values())
        items = [
            GasDistributionItem(
                category=key,
                display_name=title_case(key),
                gas_used=gas,
                percentage=gas / total_gas * 100 if total_gas > 0 else 0.0,
                transaction_count=count_by_category[key],
                average_gas=gas / count_by_category[key],
                color=category_color(key),
            )
            for key, gas in gas_by_category.items()
        ]
        return sorted(items, key=lambda item: item.gas_used, reverse=True)

    @staticmethod
    def efficiency(transactions: Sequence[CategorizedTransaction]) -> GasEfficiencyMetrics:
        """Compute success rate, average gas and the efficiency score.

        The efficiency score is the share of gas spent by successful
        traces: successful_gas / total_gas * 100.
        """
        successful = [tx for tx in transactions if tx.success]
        failed = [tx for tx in transactions if not tx.success]
        successful_gas = sum(tx.gas_used for tx in successful)
        wasted_gas = sum(tx.gas_used for tx in failed)
        total_gas = successful_gas + wasted_gas

        if not transactions:
            score = 0.0
        elif total_gas == 0:
            score = 100.0
        else:
            score = round(successful_gas / total_gas * 100, 2)

        return GasEfficiencyMetrics(
            success_rate=len(successful) / len(transactions) * 100 if transactions else 0.0,
            average_gas_successful=successful_gas / len(successful) if successful else 0.0,
            average_gas_failed=wasted_gas / len(failed) if failed else 0.0,
            wasted_gas=wasted_gas,
            efficiency_score=score,
        )

    def opportunities(
        self, transactions: Sequence[CategorizedTransaction]
    ) -> list[OptimizationOpportunity]:
        """Detect optimization opportunities, highest severity first."""
        total_gas = sum(tx.gas_used for tx in transactions)
        found: list[OptimizationOpportunity] = []

        for detector in (
            self._excessive_gas,
            self._failure_waste,
            self._token_gas_overhead,
        ):
            opportunity = detector(transactions, total_gas)
            if opportunity is not None:
                found.append(opportunity)

        found.extend(self._batchable(transactions))
        redundant = self._redundant_calls(transactions)
        if redundant is not None:
            found.append(redundant)

        # sorted() is stable, detection order is kept within a severity
        return sorted(found, key=lambda op: op.severity.rank, reverse=True)

    def _excessive_gas(
        self, transactions: Sequence[CategorizedTransaction], total_gas: int
    ) -> OptimizationOpportunity | None:
        heavy = [tx for tx in transactions if tx.gas_used > self.high_gas_threshold]
        if not heavy:
            return None

        savings = sum(tx.gas_used for tx in heavy) * EXCESSIVE_GAS_SAVINGS_PCT / 100
        return OptimizationOpportunity(
            type=OptimizationType.EXCESSIVE_GAS,
            severity=Severity.HIGH,
            description=(
                f"{len(heavy)} transactions use excessive gas "
                f"(>{format_gas(self.high_gas_threshold)})"
            ),
            recommendation=(
                "Review high-gas transactions for optimization opportunities. "
                "Consider gas-efficient alternatives or batching operations."
            ),
            potential_savings=self._savings(int(savings), EXCESSIVE_GAS_SAVINGS_PCT),
        )

    def _failure_waste(
        self, transactions: Sequence[CategorizedTransaction], total_gas: int
    ) -> OptimizationOpportunity | None:
        failed = [tx for tx in transactions if not tx.success]
        if not failed:
            return None

        wasted = sum(tx.gas_used for tx in failed)
        high = len(failed) > len(transactions) * FAILURE_HIGH_SEVERITY_RATIO
        return OptimizationOpportunity(
            type=OptimizationType.FAILURE_WASTE,
            severity=Severity.HIGH if high else Severity.MEDIUM,
            description=f"{len(failed)} failed transactions wasted {format_gas(wasted)} gas",
            recommendation=(
                "Investigate and fix causes of transaction failures. "
                "Implement better error handling and validation."
            ),
            potential_savings=self._savings(
                wasted, wasted / total_gas * 100 if total_gas > 0 else 0.0
            ),
        )

    def _token_gas_overhead(
        self, transactions: Sequence[CategorizedTransaction], total_gas: int
    ) -> OptimizationOpportunity | None:
        gas_by_kind: dict[str, list[int]] = defaultdict(list)
        for tx in transactions:
            if tx.token_operation is not None:
                gas_by_kind[tx.token_operation.kind.value].append(tx.gas_used)
        if not gas_by_kind:
            return None

        token_gas = sum(sum(values) for values in gas_by_kind.values())
        savings = 0.0
        findings: list[str] = []
        for kind, values in gas_by_kind.items():
            estimate = TOKEN_OPERATION_GAS_ESTIMATES.get(kind)
            average = sum(values) / len(values)
            if estimate and average > estimate * TOKEN_GAS_OVERHEAD_RATIO:
                savings += (average - estimate) * len(values)
                findings.append(
                    f"{kind} transactions use "
                    f"{format_percentage((average / estimate - 1) * 100)} more gas than expected"
                )

        if not findings:
            return None

        return OptimizationOpportunity(
            type=OptimizationType.TOKEN_GAS_OVERHEAD,
            severity=Severity.MEDIUM,
            description=f"{self.token_symbol} transactions show optimization potential",
            recommendation=f"{self.token_symbol} optimization opportunities: {'; '.join(findings)}",
            potential_savings=self._savings(
                int(savings), savings / token_gas * 100 if token_gas > 0 else 0.0
            ),
        )

    def _batchable(
        self, transactions: Sequence[CategorizedTransaction]
    ) -> list[OptimizationOpportunity]:
        groups: dict[tuple[str, str], list[CategorizedTransaction]] = defaultdict(list)
        for tx in transactions:
            groups[(tx.from_address, tx.selector)].append(tx)

        opportunities = []
        for (sender, selector), group in groups.items():
            if len(group) < BATCH_MIN_CALLS or selector not in BATCHABLE_SELECTORS:
                continue
            group_gas = sum(tx.gas_used for tx in group)
            savings = group_gas * BATCH_SAVINGS_PCT / 100
            opportunities.append(
                OptimizationOpportunity(
                    type=OptimizationType.BATCHABLE,
                    severity=Severity.MEDIUM,
                    description=f"{len(group)} similar transactions from {sender[:8]}... could be batched",
                    recommendation=(
                        "Consider using batch operations to reduce gas costs and improve efficiency."
                    ),
                    potential_savings=self._savings(int(savings), BATCH_SAVINGS_PCT),
                )
            )
        return opportunities

    def _redundant_calls(
        self, transactions: Sequence[CategorizedTransaction]
    ) -> OptimizationOpportunity | None:
        calls: dict[tuple[str | None, str], list[CategorizedTransaction]] = defaultdict(list)
        for tx in transactions:
            calls[(tx.to_address, tx.input)].append(tx)

        redundant = [
            tx
            for (_, call_data), group in calls.items()
            if len(group) > 1 and len(call_data) > REDUNDANT_MIN_INPUT_LENGTH
            for tx in group[1:]
        ]
        if not redundant:
            return None

        savings = sum(tx.gas_used for tx in redundant) * REDUNDANT_CALL_SAVINGS_PCT / 100
        return OptimizationOpportunity(
            type=OptimizationType.REDUNDANT_CALLS,
            severity=Severity.MEDIUM,
            description=f"{len(redundant)} potentially redundant calls detected",
            recommendation=(
                "Review call patterns for redundancy. Consider caching results or combining operations."
            ),
            potential_savings=self._savings(int(savings), REDUNDANT_CALL_SAVINGS_PCT),
        )

    def _savings(self, gas_amount: int, percentage: float) -> PotentialSavings:
        return PotentialSavings(
            gas_amount=gas_amount,
            percentage=percentage,
            estimated_cost_usd=self.estimate_cost_usd(gas_amount),
        )

    def estimate_cost_usd(self, gas: float) -> float:
        """Convert gas to USD at the configured gas and ETH prices."""
        return gas * self.gas_price_gwei / 1e9 * self.eth_price_usd

    def _insights(
        self,
        transactions: Sequence[CategorizedTransaction],
        distribution: list[GasDistributionItem],
        efficiency: GasEfficiencyMetrics,
    ) -> list[str]:
        if not transactions:
            return []

        insights: list[str] = []
        if efficiency.efficiency_score >= EFFICIENCY_EXCELLENT:
            insights.append("Excellent gas efficiency - most transactions completed successfully")
        elif efficiency.efficiency_score >= EFFICIENCY_GOOD:
            insights.append("Good gas efficiency with room for improvement")
        else:
            insights.append("Poor gas efficiency - significant optimization needed")

        if distribution:
            top = distribution[0]
            insights.append(
                f"{top.display_name} transactions consume the most gas "
                f"({format_percentage(top.percentage)})"
            )

        token_item = next(
            (item for item in distribution if item.category == "token_transaction"), None
        )
        if token_item is not None:
            insights.append(
                f"{self.token_symbol} transactions account for "
                f"{format_percentage(token_item.percentage)} of total gas usage"
            )

        total_gas = sum(tx.gas_used for tx in transactions)
        if efficiency.wasted_gas > 0 and total_gas > 0:
            insights.append(
                f"{format_percentage(efficiency.wasted_gas / total_gas * 100)} "
                "of gas was wasted on failed transactions"
            )

        heavy = sum(1 for tx in transactions if tx.gas_used > self.high_gas_threshold)
        if heavy:
            insights.append(
                f"{heavy} transactions used more than {format_gas(self.high_gas_threshold)} gas"
            )

        return insights

    def _recommendations(
        self,
        transactions: Sequence[CategorizedTransaction],
        opportunities: list[OptimizationOpportunity],
    ) -> list[str]:
        recommendations: list[str] = []
        kinds = {op.type for op in opportunities}

        if any(op.severity is Severity.HIGH for op in opportunities):
            recommendations.append("Address high-priority gas optimization opportunities first")
        if OptimizationType.FAILURE_WASTE in kinds:
            recommendations.append("Implement better error handling to reduce failed transactions")
        if OptimizationType.BATCHABLE in kinds:
            recommendations.append("Consider implementing batch operations for similar transactions")

        if transactions:
            average = sum(tx.gas_used for tx in transactions) / len(transactions)
            if average > COMPLEX_TRANSACTION_GAS:
                recommendations.append(
                    "Review transaction complexity and consider breaking down complex operations"
                )

        if any(tx.token_operation is not None for tx in transactions):
            recommendations.append(
                f"Monitor {self.token_symbol} transaction gas usage against benchmarks"
            )

        return recommendations

    @staticmethod
    def compare_to_benchmarks(
        distribution: Sequence[GasDistributionItem],
    ) -> list[BenchmarkComparison]:
        """Rate each category's average gas against the static benchmark table.

        Efficiency is benchmark / actual * 100: at or above 90 is excellent,
        75 good, below 50 poor and anything else average.
        """
        comparisons = []
        for item in distribution:
            benchmark = GAS_BENCHMARKS.get(item.category)
            if benchmark is None or item.average_gas <= 0:
                continue

            efficiency = benchmark / item.average_gas * 100
            if efficiency >= BENCHMARK_EXCELLENT:
                rating = BenchmarkRating.EXCELLENT
            elif efficiency >= BENCHMARK_GOOD:
                rating = BenchmarkRating.GOOD
            elif efficiency < BENCHMARK_POOR:
                rating = BenchmarkRating.POOR
            else:
                rating = BenchmarkRating.AVERAGE

            comparisons.append(
                BenchmarkComparison(
                    category=item.category,
                    actual_average=item.average_gas,
                    benchmark=benchmark,
                    efficiency=round(efficiency, 2),
                    rating=rating,
                )
            )
        return comparisons
