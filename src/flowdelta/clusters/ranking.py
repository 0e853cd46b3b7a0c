"""Ranked views over classified clusters.

Cost-ranked views sort by descending cost, then ascending cluster id, then
structural mutations before response-time changes. Informational views
(originating and not-interesting clusters) are listed by ascending id.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .models import ClusterInfo, MutationRecord, MutationType, describe_mutation_type
from .mutations import derive_mutation_records

_TYPE_ORDER = {
    MutationType.STRUCTURAL_MUTATION: 0,
    MutationType.RESPONSE_TIME_CHANGE: 1,
}


def ranking_key(record: MutationRecord) -> tuple[float, int, int]:
    return (-record.cost, record.cluster_id, _TYPE_ORDER.get(record.mutation_type, 2))


def rank_records(records: Iterable[MutationRecord]) -> list[MutationRecord]:
    return sorted(records, key=ranking_key)


def mutation_records(infos: Mapping[int, ClusterInfo], weighted: bool) -> list[MutationRecord]:
    records: list[MutationRecord] = []
    for cluster_id in sorted(infos):
        records.extend(derive_mutation_records(infos[cluster_id], weighted))
    return records


def response_time_changes(infos: Mapping[int, ClusterInfo]) -> list[MutationRecord]:
    return rank_records(
        r
        for r in mutation_records(infos, weighted=False)
        if r.mutation_type is MutationType.RESPONSE_TIME_CHANGE
    )


def structural_mutations(infos: Mapping[int, ClusterInfo], weighted: bool) -> list[MutationRecord]:
    return rank_records(
        r
        for r in mutation_records(infos, weighted)
        if r.mutation_type is MutationType.STRUCTURAL_MUTATION
    )


def combined_mutations(infos: Mapping[int, ClusterInfo], weighted: bool) -> list[MutationRecord]:
    return rank_records(mutation_records(infos, weighted))


def originating_clusters(infos: Mapping[int, ClusterInfo]) -> list[int]:
    return sorted(cid for cid, info in infos.items() if info.is_originating)


def not_interesting_clusters(infos: Mapping[int, ClusterInfo]) -> list[int]:
    return sorted(cid for cid, info in infos.items() if not info.is_interesting)


class ViewName(str, Enum):
    """Every ranked view written by a comparison run, named by output file stem."""

    ORIGINATING = "originating_clusters"
    NOT_INTERESTING = "not_interesting_clusters"
    RESPONSE_TIME = "response_time_changes"
    UNWEIGHTED_STRUCTURAL = "unweighted_structural_mutations"
    WEIGHTED_STRUCTURAL = "weighted_structural_mutations"
    UNWEIGHTED_COMBINED = "unweighted_combined_ranked_graphs"
    WEIGHTED_COMBINED = "weighted_combined_ranked_graphs"

    @property
    def filename(self) -> str:
        return f"{self.value}.dot"


@dataclass(frozen=True)
class ViewEntry:
    """One graph to render: a cluster, optionally as a specific mutation."""

    cluster_id: int
    record: Optional[MutationRecord] = None
    mutation_type: MutationType = MutationType.NOT_INTERESTING

    @property
    def specific_label(self) -> str:
        if self.record is not None:
            return self.record.label
        return describe_mutation_type(self.mutation_type)

    @property
    def cost(self) -> float:
        return self.record.cost if self.record is not None else 0.0

    @property
    def originators(self) -> tuple[int, ...]:
        return self.record.originators if self.record is not None else ()


def build_views(infos: Mapping[int, ClusterInfo]) -> dict[ViewName, list[ViewEntry]]:
    def entries(records: list[MutationRecord]) -> list[ViewEntry]:
        return [ViewEntry(r.cluster_id, r) for r in records]

    return {
        ViewName.ORIGINATING: [
            ViewEntry(cid, mutation_type=MutationType.ORIGINATING_CLUSTER)
            for cid in originating_clusters(infos)
        ],
        ViewName.NOT_INTERESTING: [ViewEntry(cid) for cid in not_interesting_clusters(infos)],
        ViewName.RESPONSE_TIME: entries(response_time_changes(infos)),
        ViewName.UNWEIGHTED_STRUCTURAL: entries(structural_mutations(infos, weighted=False)),
        ViewName.WEIGHTED_STRUCTURAL: entries(structural_mutations(infos, weighted=True)),
        ViewName.UNWEIGHTED_COMBINED: entries(combined_mutations(infos, weighted=False)),
        ViewName.WEIGHTED_COMBINED: entries(combined_mutations(infos, weighted=True)),
    }
