"""Request record decoding.

A snapshot file holds one DOT-like record per request::

    # 7  R: 123.45
    Begin Digraph {
    1.1 [label="A\\nDEFAULT"]
    1.2 [label="B\\nDEFAULT"]
    1.1 -> 1.2 [label="R: 10.5 us"]
    }

The header carries the local id and the authoritative response time. Node
labels are ``\\n``-separated: the first segment is the node name, the rest
are semantic labels. Anything that matches none of the patterns is ignored.
"""

from __future__ import annotations

import re
from typing import Optional, Protocol

from .models import DecodedEdge, DecodedRequest

RECORD_TERMINATOR = "}"

HEADER_RE = re.compile(r"^\s*#\s*(\d+)\s+R:\s*([0-9.]+)")
NODE_RE = re.compile(r'^\s*(\d+\.\d+)\s*\[\s*label\s*=\s*"((?:[^"\\]|\\.)*)"')
EDGE_RE = re.compile(
    r'^\s*(\d+\.\d+)\s*->\s*(\d+\.\d+)(?:\s*\[\s*label\s*=\s*"R:\s*([0-9.]+)\s*us")?'
)
EDGE_LABEL_RE = re.compile(r"\[.*\]")

SEMANTIC_SEPARATOR = "\\n"


def match_header(line: str) -> Optional[tuple[int, float]]:
    """Return (local id, response time) if ``line`` is a record header."""
    m = HEADER_RE.match(line)
    if m is None:
        return None
    try:
        return int(m.group(1)), float(m.group(2))
    except ValueError:
        return None


def node_name_from_label(label: str, include_semantic_labels: bool) -> str:
    if include_semantic_labels:
        return label
    return label.split(SEMANTIC_SEPARATOR, 1)[0]


class RequestDecoder(Protocol):
    """Extracts node names and ordered edges from one textual record."""

    def decode(self, record: str, include_semantic_labels: bool = True) -> DecodedRequest: ...


class DotRequestDecoder:
    """Regex decoder for the DOT-like record format above."""

    def decode(self, record: str, include_semantic_labels: bool = True) -> DecodedRequest:
        decoded = DecodedRequest(local_id=None, latency=None)
        for line in record.splitlines():
            if decoded.local_id is None:
                header = match_header(line)
                if header is not None:
                    decoded.local_id, decoded.latency = header
                    continue

            edge = EDGE_RE.match(line)
            if edge is not None:
                latency = float(edge.group(3)) if edge.group(3) is not None else None
                decoded.edges.append(DecodedEdge(edge.group(1), edge.group(2), latency))
                continue

            node = NODE_RE.match(line)
            if node is not None:
                decoded.nodes[node.group(1)] = node_name_from_label(
                    node.group(2), include_semantic_labels
                )
        return decoded
