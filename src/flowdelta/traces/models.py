"""Data models for captured request-flow graphs and their indices.

Identity levels:
  GlobalId: dense 1..N across both snapshots, snapshot 0 first
  RequestLocation: (local id, snapshot) inside one snapshot file
  TraceIndex: local id -> byte offset of the record header
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

# Column 1 holds the request latency; edge columns start after it.
FIRST_EDGE_COLUMN = 2


def edge_key(src_name: str, dest_name: str) -> str:
    """Canonical edge name used as feature column and latency key."""
    return f"{src_name}->{dest_name}"


@dataclass(frozen=True)
class RequestLocation:
    """Where a request lives: its local id and snapshot (0 or 1)."""

    local_id: int
    snapshot: int


@dataclass
class TraceIndex:
    """Byte offsets of every request record in one snapshot file."""

    snapshot: int
    offsets: dict[int, int] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.offsets)

    def offset_of(self, local_id: int) -> Optional[int]:
        return self.offsets.get(local_id)


@dataclass(frozen=True)
class EdgeSample:
    """One edge latency observed while scanning a request."""

    src_name: str
    dest_name: str
    latency: float
    snapshot: int

    @property
    def name(self) -> str:
        return edge_key(self.src_name, self.dest_name)


@dataclass(frozen=True)
class DecodedEdge:
    """An edge line of a record, by node id."""

    src_id: str
    dest_id: str
    latency: Optional[float]


@dataclass
class DecodedRequest:
    """Everything the decoder extracts from one textual request record."""

    local_id: Optional[int]
    latency: Optional[float]
    nodes: dict[str, str] = field(default_factory=dict)
    edges: list[DecodedEdge] = field(default_factory=list)

    def node_name(self, node_id: str) -> str:
        return self.nodes.get(node_id, node_id)

    def edge_samples(self, snapshot: int) -> list[EdgeSample]:
        return [
            EdgeSample(self.node_name(e.src_id), self.node_name(e.dest_id), e.latency, snapshot)
            for e in self.edges
            if e.latency is not None
        ]


@dataclass
class GraphNode:
    """A node of a request graph; children are node ids sorted by node name."""

    node_id: str
    name: str
    children: list[str] = field(default_factory=list)


@dataclass
class RequestGraph:
    """Tree view of a request: root node id plus all nodes keyed by id."""

    root: str
    nodes: dict[str, GraphNode] = field(default_factory=dict)

    @property
    def root_node(self) -> GraphNode:
        return self.nodes[self.root]

    def edge_names(self) -> list[str]:
        """Edge names in depth-first order from the root."""
        names: list[str] = []
        seen: set[str] = set()
        stack = [self.root]
        while stack:
            node_id = stack.pop()
            if node_id in seen:
                continue
            seen.add(node_id)
            node = self.nodes[node_id]
            for child in node.children:
                names.append(edge_key(node.name, self.nodes[child].name))
            stack.extend(reversed(node.children))
        return names


@dataclass
class FeatureRow:
    """Feature row of one request: latency plus (avg latency, count) per column.

    ``cells`` covers columns 2..k contiguously; columns the request never
    touched hold ``(0.0, 0)``.
    """

    request_latency: float
    cells: list[tuple[float, int]] = field(default_factory=list)

    def format(self) -> str:
        parts = [f"{self.request_latency:.4f}"]
        parts.extend(f"{latency:.4f} {count:d}" for latency, count in self.cells)
        return " ".join(parts)


@dataclass
class EdgeAggregate:
    """Per-snapshot average latency and occurrence count of one edge name."""

    avg_latency: list[float] = field(default_factory=lambda: [0.0, 0.0])
    count: list[int] = field(default_factory=lambda: [0, 0])

    def add(self, latency: float, snapshot: int) -> None:
        n = self.count[snapshot]
        self.avg_latency[snapshot] = (self.avg_latency[snapshot] * n + latency) / (n + 1)
        self.count[snapshot] = n + 1


@dataclass
class ResponseTimes:
    """Response times of a batch of requests split by snapshot."""

    s0: list[float] = field(default_factory=list)
    s1: list[float] = field(default_factory=list)

    def for_snapshot(self, snapshot: int) -> list[float]:
        return self.s0 if snapshot == 0 else self.s1
