"""Token flow network models."""

from enum import Enum

from pydantic import BaseModel, Field


class NodeRole(str, Enum):
    SENDER = "sender"
    RECEIVER = "receiver"
    BOTH = "both"


class NetworkNode(BaseModel):
    """Address vertex of the token flow graph."""

    address: str
    label: str
    role: NodeRole
    transaction_count: int = 0
    total_volume: int = 0
    centrality: float = 0.0


class NetworkEdge(BaseModel):
    """Directed, weighted edge between two addresses."""

    from_address: str
    to_address: str
    volume: int = 0
    transaction_count: int = 0
    weight: float = Field(default=0.0, description="Volume in whole token units")


class CentralityMetrics(BaseModel):
    """Per-address centrality values.

    Betweenness and closeness are degree-proportional approximations.
    """

    degree: dict[str, float] = Field(default_factory=dict)
    betweenness: dict[str, float] = Field(default_factory=dict)
    closeness: dict[str, float] = Field(default_factory=dict)


class TokenFlowMetrics(BaseModel):
    total_transfers: int = 0
    total_volume: int = 0
    unique_senders: int = 0
    unique_receivers: int = 0
    average_transfer_amount: int = 0
    largest_transfer: int = 0


class AddressVolume(BaseModel):
    address: str
    label: str
    volume: int
    volume_formatted: str


class TransferSummary(BaseModel):
    transaction_hash: str
    from_address: str | None
    to_address: str | None
    amount: int
    amount_formatted: str


class FlowPattern(BaseModel):
    """A detected transfer pattern (large, micro, failed, minting)."""

    type: str
    description: str
    count: int
    total_volume: int


class TokenFlowInsights(BaseModel):
    top_senders: list[AddressVolume] = Field(default_factory=list)
    top_receivers: list[AddressVolume] = Field(default_factory=list)
    largest_transfers: list[TransferSummary] = Field(default_factory=list)
    patterns: list[FlowPattern] = Field(default_factory=list)
    central_nodes: list[str] = Field(default_factory=list)
    isolated_nodes: list[str] = Field(default_factory=list)


class FlowNodeStyle(BaseModel):
    color: str
    size: float


class FlowEdgeStyle(BaseModel):
    color: str
    width: int
    style: str


class FlowNode(BaseModel):
    id: str
    label: str
    type: NodeRole
    style: FlowNodeStyle


class FlowEdge(BaseModel):
    from_id: str
    to_id: str
    label: str
    amount: int
    style: FlowEdgeStyle


class FlowDiagram(BaseModel):
    """Bounded graph rendering description plus its Graphviz DOT text."""

    nodes: list[FlowNode] = Field(default_factory=list)
    edges: list[FlowEdge] = Field(default_factory=list)
    dot: str


class TokenFlowAnalysis(BaseModel):
    """Full token flow analysis result."""

    metrics: TokenFlowMetrics = Field(default_factory=TokenFlowMetrics)
    nodes: list[NetworkNode] = Field(default_factory=list)
    edges: list[NetworkEdge] = Field(default_factory=list)
    centrality: CentralityMetrics = Field(default_factory=CentralityMetrics)
    clustering_coefficient: float = 0.0
    network_density: float = 0.0
    insights: TokenFlowInsights = Field(default_factory=TokenFlowInsights)
    diagram: FlowDiagram
