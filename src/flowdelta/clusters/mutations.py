"""Mutation classification, cost estimation and record derivation.

Classification of one cluster with frequencies (s0, s1):

  Response-time change   the response-time comparison ran and rejected the
                         null hypothesis
  Structural mutation    s1 > 0 and either the representative holds an edge
                         never observed in the baseline period, or
                         (s1 - s0) / s1 * 100 >= mutation_threshold
  Originating cluster    s1 * 100 >= mutation_threshold * total_s1

Each structural mutation is assigned the other clusters with baseline requests
as originators, nearest first. Unless one-to-N is disabled a mutation keeps
only its nearest originator.

Costs:

  structural      sum over differing edges of |mean_s1 - mean_s0|; the
                  weighted variant multiplies each term by the edge's
                  problem-period occurrence count in the cluster
  response time   |mean_rt_s1 - mean_rt_s0| * s1

An edge differs when it was never observed globally in one of the periods or
when its within-cluster latency comparison rejected the null hypothesis.
"""

from __future__ import annotations

from collections.abc import Mapping

from ..config import AnalysisConfig
from ..logging_config import get_logger
from ..traces.models import EdgeAggregate
from .distance import DistanceOracle
from .models import ClusterInfo, MutationRecord, MutationType

logger = get_logger(__name__)


def _seen(aggregates: Mapping[str, EdgeAggregate], edge: str, snapshot: int) -> bool:
    agg = aggregates.get(edge)
    return agg is not None and agg.count[snapshot] > 0


def novel_edges(info: ClusterInfo, aggregates: Mapping[str, EdgeAggregate]) -> frozenset[str]:
    """Edges of the cluster that one of the periods never saw anywhere."""
    edges = set(info.edge_names) | set(info.edge_latency_stats)
    return frozenset(e for e in edges if not (_seen(aggregates, e, 0) and _seen(aggregates, e, 1)))


def is_structural_mutation(
    info: ClusterInfo, aggregates: Mapping[str, EdgeAggregate], threshold: float
) -> bool:
    s0, s1 = info.frequencies
    if s1 == 0:
        return False
    if any(not _seen(aggregates, edge, 0) for edge in info.edge_names):
        return True
    return (s1 - s0) / s1 * 100.0 >= threshold


def is_response_time_change(info: ClusterInfo) -> bool:
    stats = info.response_time_stats
    return stats is not None and stats.test_run and stats.reject_null


def exceeds_originating_threshold(info: ClusterInfo, total_s1: int, threshold: float) -> bool:
    if total_s1 == 0:
        return False
    return info.frequencies[1] * 100.0 >= threshold * total_s1


def candidate_originators(
    cluster_id: int, infos: Mapping[int, ClusterInfo], oracle: DistanceOracle
) -> list[int]:
    """Other clusters with baseline requests, nearest first (ties by id)."""
    candidates = [
        other for other, info in infos.items() if other != cluster_id and info.frequencies[0] > 0
    ]
    return sorted(candidates, key=lambda other: (oracle.distance(cluster_id, other), other))


def classify_clusters(
    infos: Mapping[int, ClusterInfo],
    aggregates: Mapping[str, EdgeAggregate],
    oracle: DistanceOracle,
    config: AnalysisConfig,
    total_s1: int,
) -> None:
    """Set mutation types, originators and novel edges on every ClusterInfo."""
    threshold = config.mutation_threshold
    enforce = not config.dont_enforce_one_to_n

    for cluster_id in sorted(infos):
        info = infos[cluster_id]
        types: set[MutationType] = set()
        info.novel_edges = novel_edges(info, aggregates)
        info.originators = []

        if is_structural_mutation(info, aggregates, threshold):
            types.add(MutationType.STRUCTURAL_MUTATION)
            originators = candidate_originators(cluster_id, infos, oracle)
            if enforce:
                originators = originators[:1]
            info.originators = originators

        if is_response_time_change(info):
            types.add(MutationType.RESPONSE_TIME_CHANGE)

        if exceeds_originating_threshold(info, total_s1, threshold):
            types.add(MutationType.ORIGINATING_CLUSTER)

        info.mutation_types = frozenset(types or {MutationType.NOT_INTERESTING})

    counts = {t: sum(1 for i in infos.values() if t in i.mutation_types) for t in MutationType}
    logger.info(
        "Classified %d clusters: %d structural, %d response-time, %d originating",
        len(infos),
        counts[MutationType.STRUCTURAL_MUTATION],
        counts[MutationType.RESPONSE_TIME_CHANGE],
        counts[MutationType.ORIGINATING_CLUSTER],
    )


def differing_edges(info: ClusterInfo) -> list[str]:
    return sorted(
        name
        for name, stats in info.edge_latency_stats.items()
        if name in info.novel_edges or (stats.test_run and stats.reject_null)
    )


def structural_mutation_cost(info: ClusterInfo, weighted: bool = False) -> float:
    cost = 0.0
    for name in differing_edges(info):
        stats = info.edge_latency_stats[name]
        term = abs(stats.mean_delta)
        if weighted:
            term *= stats.sample_sizes[1]
        cost += term
    return cost


def response_time_change_cost(info: ClusterInfo) -> float:
    delta = info.avg_response_times[1] - info.avg_response_times[0]
    return abs(delta) * info.frequencies[1]


def derive_mutation_records(info: ClusterInfo, weighted: bool = False) -> list[MutationRecord]:
    """Unroll a cluster into zero, one or two rankable mutation records."""
    records: list[MutationRecord] = []
    if info.is_structural_mutation:
        records.append(
            MutationRecord(
                cluster_id=info.cluster_id,
                mutation_type=MutationType.STRUCTURAL_MUTATION,
                cost=structural_mutation_cost(info, weighted),
                originators=tuple(info.originators),
            )
        )
    if info.is_response_time_change:
        records.append(
            MutationRecord(
                cluster_id=info.cluster_id,
                mutation_type=MutationType.RESPONSE_TIME_CHANGE,
                cost=response_time_change_cost(info),
            )
        )
    return records
