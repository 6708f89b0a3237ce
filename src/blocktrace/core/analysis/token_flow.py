"""Token transfer network analysis.

Builds a directed, weighted graph of token transfers (transfer,
transferFrom and mint) and derives network metrics from it.

Betweenness and closeness centrality are degree-proportional
approximations, not shortest-path computations. Downstream rankings
(central and isolated nodes) rely on this ordering.
"""

from collections import defaultdict
from collections.abc import Sequence

import networkx as nx
import structlog

from blocktrace.config.settings import Settings, get_settings
from blocktrace.constants.analysis import (
    BETWEENNESS_FACTOR,
    EMPTY_FLOW_DOT,
    FLOW_CENTRAL_LIMIT,
    FLOW_DOT_HEADER,
    FLOW_TOP_LIMIT,
    LARGE_TRANSFER_UNITS,
    MICRO_TRANSFER_UNITS,
)
from blocktrace.constants.trace import COLOR_ERROR, COLOR_PRIMARY, COLOR_SUCCESS
from blocktrace.core.formatting import format_address, format_token_amount
from blocktrace.models.categorization import CategorizedTransaction
from blocktrace.models.token_flow import (
    AddressVolume,
    CentralityMetrics,
    FlowDiagram,
    FlowEdge,
    FlowEdgeStyle,
    FlowNode,
    FlowNodeStyle,
    FlowPattern,
    NetworkEdge,
    NetworkNode,
    NodeRole,
    TokenFlowAnalysis,
    TokenFlowInsights,
    TokenFlowMetrics,
    TransferSummary,
)
from blocktrace.models.trace import TokenOperationKind

log = structlog.get_logger(__name__)

FLOW_KINDS = frozenset(
    {TokenOperationKind.TRANSFER, TokenOperationKind.TRANSFER_FROM, TokenOperationKind.MINT}
)


class TokenFlowAnalyzer:
    """Analyze token transfers as a network of addresses.

    Example:
        analyzer = TokenFlowAnalyzer(settings)
        flow = analyzer.analyze_flow(transactions)
        print(flow.network_density, flow.diagram.dot)
    """

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.token_symbol = settings.token_symbol
        self.token_decimals = settings.token_decimals
        self.token_unit = 10**settings.token_decimals
        self.diagram_limit = settings.flow_diagram_limit

    def analyze_flow(self, transactions: Sequence[CategorizedTransaction]) -> TokenFlowAnalysis:
        """Build the transfer graph and compute its metrics and insights.

        Args:
            transactions: Categorized traces of one block.

        Returns:
            TokenFlowAnalysis. With no token transfers the result has zero
            metrics, an empty graph and an empty diagram.
        """
        transfers = [
            tx
            for tx in transactions
            if tx.token_operation is not None and tx.token_operation.kind in FLOW_KINDS
        ]
        if not transfers:
            log.debug("token_flow_empty", transactions=len(transactions))
            return TokenFlowAnalysis(diagram=FlowDiagram(dot=EMPTY_FLOW_DOT))

        graph = self.build_graph(transfers)
        nodes: list[NetworkNode] = [data["node"] for _, data in graph.nodes(data=True)]
        edges: list[NetworkEdge] = [data["edge"] for _, _, data in graph.edges(data=True)]
        centrality = self.centrality(graph)
        for node in nodes:
            node.centrality = centrality.degree.get(node.address, 0.0)

        analysis = TokenFlowAnalysis(
            metrics=self.metrics(transfers),
            nodes=nodes,
            edges=edges,
            centrality=centrality,
            clustering_coefficient=self.clustering_coefficient(graph),
            network_density=self.network_density(graph),
            insights=self._insights(transfers, nodes),
            diagram=self.flow_diagram(transfers, nodes),
        )

        log.info(
            "token_flow_analyzed",
            transfers=len(transfers),
            nodes=len(nodes),
            edges=len(edges),
            density=round(analysis.network_density, 4),
        )
        return analysis

    @staticmethod
    def metrics(transfers: Sequence[CategorizedTransaction]) -> TokenFlowMetrics:
        """Count transfers and participants and measure transferred volume."""
        amounts = [tx.token_operation.amount for tx in transfers if tx.token_operation]
        senders = {
            tx.token_operation.from_address
            for tx in transfers
            if tx.token_operation
            and tx.token_operation.kind is not TokenOperationKind.MINT
            and tx.token_operation.from_address
        }
        receivers = {
            tx.token_operation.to_address
            for tx in transfers
            if tx.token_operation and tx.token_operation.to_address
        }
        total = sum(amounts)

        return TokenFlowMetrics(
            total_transfers=len(transfers),
            total_volume=total,
            unique_senders=len(senders),
            unique_receivers=len(receivers),
            average_transfer_amount=total // len(amounts) if amounts else 0,
            largest_transfer=max(amounts, default=0),
        )

    def build_graph(self, transfers: Sequence[CategorizedTransaction]) -> nx.DiGraph:
        """Create one node per address and one edge per (sender, receiver) pair.

        Each graph node carries its NetworkNode under the ``node`` attribute
        and each edge its NetworkEdge under ``edge``. Mints have no sender,
        so they add a receiver node but no edge.
        """
        graph = nx.DiGraph()

        def touch(address: str, role: NodeRole, amount: int) -> None:
            if address not in graph:
                graph.add_node(
                    address,
                    node=NetworkNode(address=address, label=format_address(address), role=role),
                )
            node: NetworkNode = graph.nodes[address]["node"]
            if node.role is not role:
                node.role = NodeRole.BOTH
            node.transaction_count += 1
            node.total_volume += amount

        for tx in transfers:
            operation = tx.token_operation
            if operation is None:
                continue
            sender = None if operation.kind is TokenOperationKind.MINT else operation.from_address
            receiver = operation.to_address

            if sender:
                touch(sender, NodeRole.SENDER, operation.amount)
            if receiver:
                touch(receiver, NodeRole.RECEIVER, operation.amount)

            if sender and receiver:
                if not graph.has_edge(sender, receiver):
                    graph.add_edge(
                        sender, receiver, edge=NetworkEdge(from_address=sender, to_address=receiver)
                    )
                edge: NetworkEdge = graph.edges[sender, receiver]["edge"]
                edge.volume += operation.amount
                edge.transaction_count += 1
                edge.weight = edge.volume / self.token_unit

        return graph

    @staticmethod
    def _undirected(graph: nx.DiGraph) -> nx.Graph:
        """Undirected view without self-transfers, so degree counts distinct neighbors."""
        undirected = graph.to_undirected()
        undirected.remove_edges_from(list(nx.selfloop_edges(undirected)))
        return undirected

    def centrality(self, graph: nx.DiGraph) -> CentralityMetrics:
        """Degree centrality plus degree-proportional betweenness and closeness.

        Degree is the number of distinct neighbors in either direction.
        Betweenness is degree * 0.1 and closeness is degree / (n - 1).
        """
        undirected = self._undirected(graph)
        n = undirected.number_of_nodes()
        metrics = CentralityMetrics()
        for address, neighbors in undirected.degree:
            degree = float(neighbors)
            metrics.degree[address] = degree
            metrics.betweenness[address] = degree * BETWEENNESS_FACTOR
            metrics.closeness[address] = degree / (n - 1) if n > 1 else 0.0
        return metrics

    def clustering_coefficient(self, graph: nx.DiGraph) -> float:
        """Mean local clustering coefficient over nodes with two or more neighbors.

        Returns 0 for graphs with fewer than three nodes or when no node
        qualifies.
        """
        if graph.number_of_nodes() < 3:
            return 0.0

        undirected = self._undirected(graph)
        qualifying = [address for address, degree in undirected.degree if degree >= 2]
        if not qualifying:
            return 0.0

        coefficients = nx.clustering(undirected, qualifying)
        return sum(coefficients.values()) / len(qualifying)

    @staticmethod
    def network_density(graph: nx.DiGraph) -> float:
        """Edge count over the maximum for an undirected simple graph."""
        n = graph.number_of_nodes()
        if n < 2:
            return 0.0
        return graph.number_of_edges() / (n * (n - 1) / 2)

    def _format(self, amount: int) -> str:
        return format_token_amount(amount, self.token_decimals, self.token_symbol)

    def _insights(
        self, transfers: Sequence[CategorizedTransaction], nodes: Sequence[NetworkNode]
    ) -> TokenFlowInsights:
        sent: dict[str, int] = defaultdict(int)
        received: dict[str, int] = defaultdict(int)
        for tx in transfers:
            operation = tx.token_operation
            if operation is None:
                continue
            if operation.kind is not TokenOperationKind.MINT and operation.from_address:
                sent[operation.from_address] += operation.amount
            if operation.to_address:
                received[operation.to_address] += operation.amount

        def top(volumes: dict[str, int]) -> list[AddressVolume]:
            ranked = sorted(volumes.items(), key=lambda item: item[1], reverse=True)
            return [
                AddressVolume(
                    address=address,
                    label=format_address(address),
                    volume=volume,
                    volume_formatted=self._format(volume),
                )
                for address, volume in ranked[:FLOW_TOP_LIMIT]
            ]

        largest = sorted(
            transfers,
            key=lambda tx: tx.token_operation.amount if tx.token_operation else 0,
            reverse=True,
        )[:FLOW_TOP_LIMIT]

        ranked_nodes = sorted(nodes, key=lambda node: node.centrality, reverse=True)

        return TokenFlowInsights(
            top_senders=top(sent),
            top_receivers=top(received),
            largest_transfers=[
                TransferSummary(
                    transaction_hash=tx.transaction_hash,
                    from_address=tx.token_operation.from_address,
                    to_address=tx.token_operation.to_address,
                    amount=tx.token_operation.amount,
                    amount_formatted=tx.token_operation.amount_formatted,
                )
                for tx in largest
                if tx.token_operation is not None
            ],
            patterns=self._patterns(transfers),
            central_nodes=[node.address for node in ranked_nodes[:FLOW_CENTRAL_LIMIT]],
            isolated_nodes=[node.address for node in nodes if node.centrality == 0],
        )

    def _patterns(self, transfers: Sequence[CategorizedTransaction]) -> list[FlowPattern]:
        operations = [tx.token_operation for tx in transfers if tx.token_operation is not None]
        large_threshold = LARGE_TRANSFER_UNITS * self.token_unit
        micro_threshold = MICRO_TRANSFER_UNITS * self.token_unit

        candidates = (
            (
                "large_transfers",
                f"Transfers larger than {LARGE_TRANSFER_UNITS:,} {self.token_symbol}",
                [op for op in operations if op.amount > large_threshold],
            ),
            (
                "micro_transfers",
                f"Transfers smaller than {MICRO_TRANSFER_UNITS} {self.token_symbol}",
                [op for op in operations if op.amount < micro_threshold],
            ),
            (
                "failed_transfers",
                f"Failed {self.token_symbol} transfers",
                [op for op in operations if not op.success],
            ),
            (
                "minting_activity",
                f"{self.token_symbol} minting transactions",
                [op for op in operations if op.kind is TokenOperationKind.MINT],
            ),
        )

        return [
            FlowPattern(
                type=pattern_type,
                description=description,
                count=len(matched),
                total_volume=sum(op.amount for op in matched),
            )
            for pattern_type, description, matched in candidates
            if matched
        ]

    def flow_diagram(
        self, transfers: Sequence[CategorizedTransaction], nodes: Sequence[NetworkNode]
    ) -> FlowDiagram:
        """Describe the top transfers by amount as a drawable graph.

        Returns:
            FlowDiagram with styled nodes and edges plus Graphviz DOT text.
        """
        centrality = {node.address: node.centrality for node in nodes}
        top_transfers = sorted(
            (tx for tx in transfers if tx.token_operation is not None),
            key=lambda tx: tx.token_operation.amount if tx.token_operation else 0,
            reverse=True,
        )[: self.diagram_limit]

        flow_nodes: dict[str, FlowNode] = {}
        flow_edges: list[FlowEdge] = []

        def add_node(address: str, role: NodeRole) -> None:
            existing = flow_nodes.get(address)
            if existing is not None:
                if existing.type is not role:
                    existing.type = NodeRole.BOTH
                    existing.style.color = COLOR_PRIMARY
                return
            flow_nodes[address] = FlowNode(
                id=address,
                label=format_address(address),
                type=role,
                style=FlowNodeStyle(
                    color=COLOR_SUCCESS if role is NodeRole.RECEIVER else COLOR_PRIMARY,
                    size=10 + centrality.get(address, 0.0) * 2,
                ),
            )

        for tx in top_transfers:
            operation = tx.token_operation
            if operation is None:
                continue
            sender = None if operation.kind is TokenOperationKind.MINT else operation.from_address
            receiver = operation.to_address
            if sender:
                add_node(sender, NodeRole.SENDER)
            if receiver:
                add_node(receiver, NodeRole.RECEIVER)
            if sender and receiver:
                flow_edges.append(
                    FlowEdge(
                        from_id=sender,
                        to_id=receiver,
                        label=operation.amount_formatted,
                        amount=operation.amount,
                        style=FlowEdgeStyle(
                            color=COLOR_SUCCESS if operation.success else COLOR_ERROR,
                            width=2 if operation.success else 1,
                            style="solid" if operation.success else "dashed",
                        ),
                    )
                )

        return FlowDiagram(
            nodes=list(flow_nodes.values()),
            edges=flow_edges,
            dot=self._render_dot(list(flow_nodes.values()), flow_edges),
        )

    @staticmethod
    def _render_dot(nodes: Sequence[FlowNode], edges: Sequence[FlowEdge]) -> str:
        lines = [FLOW_DOT_HEADER]
        for node in nodes:
            lines.append(
                f'  "{node.id}" [label="{node.label}", color="{node.style.color}"];\n'
            )
        lines.append("\n")
        for edge in edges:
            lines.append(
                f'  "{edge.from_id}" -> "{edge.to_id}" [label="{edge.label}", '
                f'color="{edge.style.color}", penwidth={edge.style.width}, '
                f"style={edge.style.style}];\n"
            )
        lines.append("}\n")
        return "".join(lines)
