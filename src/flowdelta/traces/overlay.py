"""Annotation overlays for request graphs written to the ranked DOT dumps.

Edge overlays replace the ``[...]`` attribute list of an edge line with the
comparison outcome for that edge; a summary node describing the cluster is
inserted right after the line that opens the graph body.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Optional, Protocol

from ..exceptions import OverlayError
from .decoder import EDGE_LABEL_RE, EDGE_RE, NODE_RE, node_name_from_label
from .models import edge_key


class EdgeAnnotation(Protocol):
    """What an overlay needs to know about one compared edge."""

    reject_null: bool
    p_value: float
    means: Sequence[float]
    stddevs: Sequence[float]


def _rounded(value: float) -> int:
    return int(value + 0.5)


def format_edge_overlay(annotation: EdgeAnnotation) -> str:
    """Attribute list for an annotated edge; averages and stddevs rounded to us."""
    color = "red" if annotation.reject_null else "black"
    return (
        f'[color="{color}" label="p:{annotation.p_value:3.2f}\\n'
        f"   a: {_rounded(annotation.means[0])}us / {_rounded(annotation.means[1])}us\\n"
        f'   s: {_rounded(annotation.stddevs[0])}us / {_rounded(annotation.stddevs[1])}us"]'
    )


@dataclass
class SummaryNode:
    """Cluster summary drawn as an extra box node in the rendered graph."""

    cluster_id: int
    specific_mutation_type: str
    overall_mutation_type: str
    cost: float
    frequencies: tuple[int, int]
    likelihoods: tuple[float, float]
    avg_response_times: tuple[float, float]
    response_time_p_value: Optional[float] = None
    originators: list[int] = field(default_factory=list)

    def render(self) -> str:
        lines = [
            f"Cluster ID: {self.cluster_id}",
            f"Specific Mutation Type: {self.specific_mutation_type}",
            f"Cost: {self.cost:.2f}",
            f"Overall Mutation Type: {self.overall_mutation_type}",
        ]
        if self.originators:
            lines.append("Originating Clusters: " + ", ".join(str(c) for c in self.originators))
        lines.append(
            f"Avg. response times: {_rounded(self.avg_response_times[0])} us ; "
            f"{_rounded(self.avg_response_times[1])} us"
        )
        if self.response_time_p_value is not None:
            lines.append(f"Response-time p-value: {self.response_time_p_value:3.2f}")
        lines.append(f"requests: {self.frequencies[0]} ; {self.frequencies[1]}")
        lines.append(f"Likelihood: {self.likelihoods[0]:.4f} ; {self.likelihoods[1]:.4f}")
        label = "\\n".join(lines)
        return f'summary [shape=box fontsize=10 label="{label}"]'


def create_summary_node(
    cluster_id: int,
    specific_mutation_type: str,
    overall_mutation_type: str,
    cost: float,
    frequencies: Sequence[int],
    likelihoods: Sequence[float],
    avg_response_times: Sequence[float],
    response_time_p_value: Optional[float] = None,
    originators: Sequence[int] = (),
) -> str:
    return SummaryNode(
        cluster_id=cluster_id,
        specific_mutation_type=specific_mutation_type,
        overall_mutation_type=overall_mutation_type,
        cost=cost,
        frequencies=(frequencies[0], frequencies[1]),
        likelihoods=(likelihoods[0], likelihoods[1]),
        avg_response_times=(avg_response_times[0], avg_response_times[1]),
        response_time_p_value=response_time_p_value,
        originators=list(originators),
    ).render()


def _node_names(lines: list[str]) -> dict[str, str]:
    names: dict[str, str] = {}
    for line in lines:
        if EDGE_RE.match(line):
            continue
        m = NODE_RE.match(line)
        if m is not None:
            names[m.group(1)] = node_name_from_label(m.group(2), include_semantic_labels=True)
    return names


def overlay_annotations(
    raw_text: str,
    edge_info: Mapping[str, EdgeAnnotation],
    summary: Optional[str] = None,
) -> str:
    """Overlay edge annotations (and optionally a summary node) on a raw record.

    Each annotated edge name replaces the attributes of the first edge line
    with that name.

    Raises:
        OverlayError: If an annotated edge does not occur in the record
    """
    lines = raw_text.split("\n")
    names = _node_names(lines)

    for edge_name, annotation in edge_info.items():
        replacement = format_edge_overlay(annotation)
        for i, line in enumerate(lines):
            m = EDGE_RE.match(line)
            if m is None:
                continue
            name = edge_key(names.get(m.group(1), m.group(1)), names.get(m.group(2), m.group(2)))
            if name != edge_name:
                continue
            if EDGE_LABEL_RE.search(line):
                lines[i] = EDGE_LABEL_RE.sub(lambda _m: replacement, line, count=1)
            else:
                lines[i] = f"{line.rstrip()} {replacement}"
            break
        else:
            raise OverlayError(edge_name)

    if summary is not None:
        for i, line in enumerate(lines):
            if "{" in line:
                lines.insert(i + 1, summary)
                break
        else:
            lines.insert(0, summary)

    return "\n".join(lines)
