"""Random access to request records by global id.

Every query resolves the global id through the ``TraceStore``, seeks to the
indexed offset in the owning snapshot file and reads up to the record
terminator. Snapshot files are opened per read, so one accessor can be used
from several threads at once.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Optional

from ..exceptions import IdentityMismatchError, MalformedRequestError, SnapshotAccessError
from ..logging_config import get_logger
from . import overlay
from .decoder import RECORD_TERMINATOR, DotRequestDecoder, RequestDecoder, match_header
from .models import (
    DecodedRequest,
    GraphNode,
    RequestGraph,
    RequestLocation,
    ResponseTimes,
    edge_key,
)
from .store import TraceStore

logger = get_logger(__name__)


class GraphAccessor:
    """Reads raw records, structures, edge latencies and response times."""

    def __init__(self, store: TraceStore, decoder: Optional[RequestDecoder] = None):
        self.store = store
        self.decoder = decoder or DotRequestDecoder()

    # ── Raw records ─────────────────────────────────────────────────────

    def get_local_request(self, local_id: int, snapshot: int) -> str:
        """Raw text of a record addressed by (local id, snapshot)."""
        location = RequestLocation(local_id, snapshot)
        return self._read_record(location)

    def get_raw(self, global_id: int) -> str:
        """Raw text of a record, checked against the identity index.

        Raises:
            IdentityMismatchError: If the record header declares another local id
        """
        location = self.store.resolve(global_id)
        text = self._read_record(location)
        header = match_header(text.split("\n", 1)[0])
        found = header[0] if header is not None else None
        if found != location.local_id:
            raise IdentityMismatchError(global_id, location.local_id, found)
        return text

    def _read_record(self, location: RequestLocation) -> str:
        offset = self.store.offset_of(location)
        path = self.store.snapshot_file(location.snapshot)
        lines: list[str] = []
        try:
            with open(path, "rb") as fh:
                fh.seek(offset)
                for raw in fh:
                    line = raw.decode("utf-8", errors="replace")
                    lines.append(line)
                    if RECORD_TERMINATOR in line:
                        break
        except OSError as e:
            raise SnapshotAccessError(path, str(e))
        return "".join(lines)

    def _decode(self, global_id: int, include_semantic_labels: bool) -> DecodedRequest:
        return self.decoder.decode(self.get_raw(global_id), include_semantic_labels)

    # ── Structure ───────────────────────────────────────────────────────

    def get_by_id(self, global_id: int) -> RequestGraph:
        """Tree structure of a request using node names only.

        The source of the first edge is the root; children of every node
        are sorted by name, then by node id.

        Raises:
            MalformedRequestError: If the record has no edges
        """
        decoded = self._decode(global_id, include_semantic_labels=False)
        if not decoded.edges:
            raise MalformedRequestError(global_id, "record has no edges")

        nodes: dict[str, GraphNode] = {}
        for edge in decoded.edges:
            for node_id in (edge.dest_id, edge.src_id):
                if node_id not in nodes:
                    nodes[node_id] = GraphNode(node_id, decoded.node_name(node_id))
            nodes[edge.src_id].children.append(edge.dest_id)

        for node in nodes.values():
            node.children.sort(key=lambda child: (nodes[child].name, child))

        return RequestGraph(root=decoded.edges[0].src_id, nodes=nodes)

    get_structure = get_by_id

    def get_root_node(self, global_id: int) -> GraphNode:
        return self.get_by_id(global_id).root_node

    def get_edge_names(self, global_id: int) -> list[str]:
        """Edge names in record order, semantic labels included."""
        decoded = self._decode(global_id, include_semantic_labels=True)
        return [
            edge_key(decoded.node_name(e.src_id), decoded.node_name(e.dest_id)) for e in decoded.edges
        ]

    def get_edge_latencies(self, global_id: int) -> dict[str, list[float]]:
        """Latencies of every edge, grouped by "src->dest" name (labels included)."""
        decoded = self._decode(global_id, include_semantic_labels=True)
        latencies: dict[str, list[float]] = {}
        for edge in decoded.edges:
            if edge.latency is None:
                continue
            name = edge_key(decoded.node_name(edge.src_id), decoded.node_name(edge.dest_id))
            latencies.setdefault(name, []).append(edge.latency)
        return latencies

    # ── Batch queries ───────────────────────────────────────────────────

    def get_snapshots(self, global_ids: Iterable[int]) -> list[int]:
        return [self.store.resolve(gid).snapshot for gid in global_ids]

    def get_snapshot_frequencies(self, global_ids: Iterable[int]) -> tuple[int, int]:
        counts = [0, 0]
        for snapshot in self.get_snapshots(global_ids):
            counts[snapshot] += 1
        return counts[0], counts[1]

    def get_snapshot_totals(self) -> tuple[int, int]:
        return self.store.snapshot_totals()

    def get_response_time(self, global_id: int) -> float:
        location = self.store.resolve(global_id)
        path = self.store.snapshot_file(location.snapshot)
        try:
            with open(path, "rb") as fh:
                fh.seek(self.store.offset_of(location))
                line = fh.readline().decode("utf-8", errors="replace")
        except OSError as e:
            raise SnapshotAccessError(path, str(e))
        header = match_header(line)
        if header is None or header[0] != location.local_id:
            raise IdentityMismatchError(
                global_id, location.local_id, header[0] if header is not None else None
            )
        return header[1]

    def get_response_times(self, global_ids: Iterable[int]) -> ResponseTimes:
        times = ResponseTimes()
        for gid in global_ids:
            snapshot = self.store.resolve(gid).snapshot
            times.for_snapshot(snapshot).append(self.get_response_time(gid))
        return times

    # ── Overlays ────────────────────────────────────────────────────────

    def overlay_annotations(
        self,
        raw_text: str,
        edge_info: Mapping[str, overlay.EdgeAnnotation],
        summary: Optional[str] = None,
    ) -> str:
        return overlay.overlay_annotations(raw_text, edge_info, summary)

    def render_request(
        self,
        global_id: int,
        edge_info: Optional[Mapping[str, overlay.EdgeAnnotation]] = None,
        summary: Optional[str] = None,
    ) -> str:
        """Raw record with optional overlays, ready to append to a DOT dump."""
        text = self.get_raw(global_id)
        if edge_info or summary is not None:
            text = self.overlay_annotations(text, edge_info or {}, summary)
        return text.rstrip("\n") + "\n"
