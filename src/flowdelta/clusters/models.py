"""Data models for per-cluster statistics and mutation classification."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..traces.models import GraphNode


class MutationType(Enum):
    """How a cluster's behavior changed between the two periods."""

    STRUCTURAL_MUTATION = "structural_mutation"
    RESPONSE_TIME_CHANGE = "response_time_change"
    ORIGINATING_CLUSTER = "originating_cluster"
    NOT_INTERESTING = "not_interesting"


_DISPLAY = {
    MutationType.STRUCTURAL_MUTATION: "Structural mutation",
    MutationType.RESPONSE_TIME_CHANGE: "Response time change",
    MutationType.ORIGINATING_CLUSTER: "Originating cluster",
    MutationType.NOT_INTERESTING: "None",
}

# Order used when several types apply to one cluster
_DISPLAY_ORDER = (
    MutationType.STRUCTURAL_MUTATION,
    MutationType.ORIGINATING_CLUSTER,
    MutationType.RESPONSE_TIME_CHANGE,
)


def describe_mutation_type(mutation_type: MutationType) -> str:
    return _DISPLAY[mutation_type]


def describe_mutation_types(mutation_types: frozenset[MutationType]) -> str:
    """Combined label, e.g. "Structural mutation and Response time change"."""
    present = [t for t in _DISPLAY_ORDER if t in mutation_types]
    if not present:
        return describe_mutation_type(MutationType.NOT_INTERESTING)
    return " and ".join(describe_mutation_type(t) for t in present)


@dataclass(frozen=True)
class ComparisonResult:
    """Outcome of comparing one sample between the baseline and problem period.

    ``test_run`` is False when the samples were too small for the test; in
    that case ``reject_null`` is False and ``p_value`` is 1.0.
    """

    comparison_id: str
    label: str
    test_run: bool
    reject_null: bool
    p_value: float
    means: tuple[float, float]
    stddevs: tuple[float, float]
    sample_sizes: tuple[int, int]

    @property
    def mean_delta(self) -> float:
        return self.means[1] - self.means[0]


@dataclass
class ClusterInfo:
    """Statistics and classification of one cluster."""

    cluster_id: int
    representative: int
    frequencies: tuple[int, int]
    likelihoods: tuple[float, float]
    avg_response_times: tuple[float, float]
    stddevs: tuple[float, float]
    root: Optional[GraphNode] = None
    edge_names: list[str] = field(default_factory=list)

    # Filled in after a comparison run
    response_time_stats: Optional[ComparisonResult] = None
    edge_latency_stats: dict[str, ComparisonResult] = field(default_factory=dict)

    # Filled in by classification
    mutation_types: frozenset[MutationType] = frozenset()
    originators: list[int] = field(default_factory=list)
    novel_edges: frozenset[str] = frozenset()

    @property
    def total_requests(self) -> int:
        return self.frequencies[0] + self.frequencies[1]

    @property
    def is_structural_mutation(self) -> bool:
        return MutationType.STRUCTURAL_MUTATION in self.mutation_types

    @property
    def is_response_time_change(self) -> bool:
        return MutationType.RESPONSE_TIME_CHANGE in self.mutation_types

    @property
    def is_originating(self) -> bool:
        return MutationType.ORIGINATING_CLUSTER in self.mutation_types

    @property
    def is_interesting(self) -> bool:
        return bool(self.mutation_types - {MutationType.NOT_INTERESTING})

    @property
    def mutation_type_label(self) -> str:
        return describe_mutation_types(self.mutation_types)


@dataclass(frozen=True)
class MutationRecord:
    """One rankable mutation derived from a ClusterInfo."""

    cluster_id: int
    mutation_type: MutationType
    cost: float
    originators: tuple[int, ...] = ()

    @property
    def unrolled_id(self) -> str:
        suffix = "s" if self.mutation_type is MutationType.STRUCTURAL_MUTATION else "r"
        return f"{self.cluster_id}_{suffix}"

    @property
    def label(self) -> str:
        return describe_mutation_type(self.mutation_type)
