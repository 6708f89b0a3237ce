"""Tests for TokenFlowAnalyzer."""

import pytest

from blocktrace.constants.trace import COLOR_ERROR, COLOR_PRIMARY, DEFAULT_TOKEN_CONTRACT
from blocktrace.core.analysis.categorizer import TransactionCategorizer
from blocktrace.core.analysis.normalizer import TraceNormalizer
from blocktrace.core.analysis.token_flow import TokenFlowAnalyzer
from blocktrace.models.token_flow import NodeRole
from tests.factories.trace import (
    RawTraceFactory,
    encode_address,
    encode_uint,
    token_transfer_trace,
)

ALICE = "0x" + "1" * 40
BOB = "0x" + "2" * 40
CAROL = "0x" + "3" * 40
UNIT = 10**6


@pytest.fixture
def categorize(settings):
    normalizer = TraceNormalizer(settings)
    categorizer = TransactionCategorizer(settings)

    def _categorize(raws):
        return categorizer.categorize(normalizer.normalize(raws))

    return _categorize


@pytest.fixture
def triangle(categorize):
    """ALICE -> BOB -> CAROL -> ALICE with one large and one micro transfer."""
    return categorize(
        [
            token_transfer_trace(BOB, 100 * UNIT, sender=ALICE),
            token_transfer_trace(CAROL, 20_000 * UNIT, sender=BOB),
            token_transfer_trace(ALICE, UNIT // 2, sender=CAROL),
        ]
    )


def mint_trace(recipient: str, amount: int) -> dict:
    return RawTraceFactory(
        action__to=DEFAULT_TOKEN_CONTRACT,
        action__input="0x40c10f19" + encode_address(recipient) + encode_uint(amount),
    )


class TestNetwork:
    """Tests for graph construction and network metrics."""

    def test_triangle(self, settings, triangle) -> None:
        """
        Given: Three addresses sending to each other in a cycle
        When: The flow is analyzed
        Then: The graph is complete, fully clustered and every node has degree 2
        """
        flow = TokenFlowAnalyzer(settings).analyze_flow(triangle)

        assert len(flow.nodes) == 3
        assert len(flow.edges) == 3
        assert flow.network_density == 1.0
        assert flow.clustering_coefficient == 1.0
        assert flow.centrality.degree == {ALICE: 2.0, BOB: 2.0, CAROL: 2.0}
        assert flow.centrality.closeness[ALICE] == 1.0
        assert flow.centrality.betweenness[ALICE] == pytest.approx(0.2)
        assert all(node.role is NodeRole.BOTH for node in flow.nodes)
        assert flow.insights.isolated_nodes == []

    def test_metrics(self, settings, triangle) -> None:
        flow = TokenFlowAnalyzer(settings).analyze_flow(triangle)

        total = 100 * UNIT + 20_000 * UNIT + UNIT // 2
        assert flow.metrics.total_transfers == 3
        assert flow.metrics.total_volume == total
        assert flow.metrics.unique_senders == 3
        assert flow.metrics.unique_receivers == 3
        assert flow.metrics.average_transfer_amount == total // 3
        assert flow.metrics.largest_transfer == 20_000 * UNIT

    def test_repeated_pair_accumulates_on_one_edge(self, settings, categorize) -> None:
        transactions = categorize(
            [
                token_transfer_trace(BOB, 3 * UNIT, sender=ALICE),
                token_transfer_trace(BOB, 2 * UNIT, sender=ALICE),
            ]
        )

        flow = TokenFlowAnalyzer(settings).analyze_flow(transactions)

        [edge] = flow.edges
        assert edge.volume == 5 * UNIT
        assert edge.transaction_count == 2
        assert edge.weight == 5.0
        assert flow.network_density == 1.0
        assert flow.clustering_coefficient == 0.0

    def test_self_transfer_counts_as_edge_but_not_neighbor(self, settings, categorize) -> None:
        """
        Given: ALICE sending to its own address, to BOB and to CAROL
        When: The flow is analyzed
        Then: The self-transfer is an edge for density but adds no degree
        """
        transactions = categorize(
            [
                token_transfer_trace(ALICE, UNIT, sender=ALICE),
                token_transfer_trace(BOB, UNIT, sender=ALICE),
                token_transfer_trace(CAROL, UNIT, sender=ALICE),
            ]
        )

        flow = TokenFlowAnalyzer(settings).analyze_flow(transactions)

        assert len(flow.edges) == 3
        assert flow.network_density == 1.0
        assert flow.centrality.degree == {ALICE: 2.0, BOB: 1.0, CAROL: 1.0}
        assert flow.clustering_coefficient == 0.0
        assert flow.insights.central_nodes[0] == ALICE

    def test_build_graph_attaches_models(self, settings, triangle) -> None:
        analyzer = TokenFlowAnalyzer(settings)

        graph = analyzer.build_graph(triangle)

        assert graph.is_directed()
        assert set(graph.nodes) == {ALICE, BOB, CAROL}
        assert graph.has_edge(ALICE, BOB)
        assert not graph.has_edge(BOB, ALICE)
        assert graph.nodes[BOB]["node"].total_volume == 100 * UNIT + 20_000 * UNIT
        assert graph.edges[BOB, CAROL]["edge"].weight == 20_000.0
        assert analyzer.network_density(graph) == 1.0

    def test_mint_adds_receiver_without_edge(self, settings, categorize) -> None:
        """
        Given: A single mint
        When: The flow is analyzed
        Then: Only the recipient node exists and minting activity is reported
        """
        flow = TokenFlowAnalyzer(settings).analyze_flow(categorize([mint_trace(BOB, 50 * UNIT)]))

        [node] = flow.nodes
        assert node.address == BOB
        assert node.role is NodeRole.RECEIVER
        assert flow.edges == []
        assert flow.network_density == 0.0
        assert flow.metrics.unique_senders == 0
        assert [p.type for p in flow.insights.patterns] == ["minting_activity"]
        assert flow.insights.isolated_nodes == [BOB]

    def test_no_transfers(self, settings, categorize) -> None:
        flow = TokenFlowAnalyzer(settings).analyze_flow(categorize([RawTraceFactory()]))

        assert flow.nodes == []
        assert flow.metrics.total_transfers == 0
        assert flow.diagram.dot == "digraph EmptyFlow { }"


class TestInsights:
    """Tests for rankings and pattern detection."""

    def test_patterns(self, settings, triangle) -> None:
        flow = TokenFlowAnalyzer(settings).analyze_flow(triangle)

        patterns = {p.type: p for p in flow.insights.patterns}
        assert set(patterns) == {"large_transfers", "micro_transfers"}
        assert patterns["large_transfers"].total_volume == 20_000 * UNIT
        assert patterns["micro_transfers"].count == 1

    def test_top_senders_ordered_by_volume(self, settings, triangle) -> None:
        flow = TokenFlowAnalyzer(settings).analyze_flow(triangle)

        senders = flow.insights.top_senders
        assert [s.address for s in senders] == [BOB, ALICE, CAROL]
        assert senders[0].volume_formatted == "20000 PYUSD"
        assert senders[0].label == "0x2222...2222"
        assert flow.insights.largest_transfers[0].amount == 20_000 * UNIT
        assert len(flow.insights.central_nodes) == 3

    def test_failed_transfer_pattern(self, settings, categorize) -> None:
        transactions = categorize(
            [token_transfer_trace(BOB, 5 * UNIT, sender=ALICE, error="Reverted")]
        )

        flow = TokenFlowAnalyzer(settings).analyze_flow(transactions)

        assert [p.type for p in flow.insights.patterns] == ["failed_transfers"]


class TestFlowDiagram:
    """Tests for the drawable flow diagram."""

    def test_triangle_diagram(self, settings, triangle) -> None:
        flow = TokenFlowAnalyzer(settings).analyze_flow(triangle)

        diagram = flow.diagram
        assert len(diagram.nodes) == 3
        assert len(diagram.edges) == 3
        assert all(node.type is NodeRole.BOTH for node in diagram.nodes)
        assert all(node.style.color == COLOR_PRIMARY for node in diagram.nodes)
        assert diagram.dot.startswith("digraph TokenFlow {")
        assert f'"{BOB}" -> "{CAROL}" [label="20000 PYUSD"' in diagram.dot
        assert diagram.dot.endswith("}\n")

    def test_failed_edge_is_dashed(self, settings, categorize) -> None:
        transactions = categorize(
            [token_transfer_trace(BOB, 5 * UNIT, sender=ALICE, error="Reverted")]
        )

        [edge] = TokenFlowAnalyzer(settings).analyze_flow(transactions).diagram.edges

        assert edge.style.color == COLOR_ERROR
        assert edge.style.style == "dashed"
        assert edge.style.width == 1

    def test_diagram_is_limited_to_largest_transfers(self, settings, triangle) -> None:
        limited = settings.model_copy(update={"flow_diagram_limit": 1})

        diagram = TokenFlowAnalyzer(limited).analyze_flow(triangle).diagram

        [edge] = diagram.edges
        assert (edge.from_id, edge.to_id) == (BOB, CAROL)
        assert {node.id for node in diagram.nodes} == {BOB, CAROL}
