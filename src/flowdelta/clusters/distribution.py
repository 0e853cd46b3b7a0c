"""Cluster membership export and request distribution within a latency range.

``write_cluster_membership`` writes ``<global id> <cluster id> <latency>``
for every clustered request; ``latency_distribution`` reads it back and
counts, per cluster, the requests whose latency lies in ``[min, max]``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

from ..exceptions import InvalidConfigError
from ..file_ops import atomic_write, require_readable
from ..logging_config import get_logger
from ..traces.accessor import GraphAccessor
from .assignment import ClusterAssignment

logger = get_logger(__name__)

DISTRIBUTION_FILE = "cluster_distribution.dat"
RANK_BY_LATENCY_FILE = "cluster_rank_by_latency.dat"
RANK_BY_FREQUENCY_FILE = "cluster_rank_by_frequency.dat"

_MEMBERSHIP_RE = re.compile(r"(\d+) (\d+) ([0-9.]+)")


def write_cluster_membership(
    assignment: ClusterAssignment, accessor: GraphAccessor, path: Path
) -> int:
    """Export cluster membership with request latencies; returns rows written."""
    rows = 0
    with atomic_write(path) as fh:
        for cluster_id in assignment.cluster_ids():
            for global_id in assignment.iter_cluster_requests(cluster_id):
                fh.write(f"{global_id} {cluster_id} {accessor.get_response_time(global_id):f}\n")
                rows += 1
    logger.info("Wrote membership of %d requests to %s", rows, path)
    return rows


@dataclass
class LatencyDistribution:
    """Requests per cluster within one latency range."""

    min_latency: float
    max_latency: float
    frequencies: dict[int, int] = field(default_factory=dict)
    total_latency: dict[int, float] = field(default_factory=dict)

    def add(self, cluster_id: int, latency: float) -> None:
        self.frequencies[cluster_id] = self.frequencies.get(cluster_id, 0) + 1
        self.total_latency[cluster_id] = self.total_latency.get(cluster_id, 0.0) + latency

    def average_latency(self, cluster_id: int) -> float:
        return self.total_latency[cluster_id] / self.frequencies[cluster_id]

    def by_cluster(self) -> list[tuple[int, int]]:
        return sorted(self.frequencies.items())

    def ranked_by_latency(self) -> list[tuple[int, float]]:
        """Ascending average latency, ties by cluster id."""
        averages = [(cid, self.average_latency(cid)) for cid in self.frequencies]
        return sorted(averages, key=lambda item: (item[1], item[0]))

    def ranked_by_frequency(self) -> list[tuple[int, int]]:
        """Ascending request count, ties by cluster id."""
        return sorted(self.frequencies.items(), key=lambda item: (item[1], item[0]))


def latency_distribution(
    membership_file: Path, min_latency: float = 0.0, max_latency: float = 100000.0
) -> LatencyDistribution:
    if min_latency > max_latency:
        raise InvalidConfigError("min_latency", min_latency, f"must not exceed max ({max_latency})")

    distribution = LatencyDistribution(min_latency, max_latency)
    with open(require_readable(membership_file), encoding="utf-8") as fh:
        for line in fh:
            m = _MEMBERSHIP_RE.match(line)
            if m is None:
                continue
            latency = float(m.group(3))
            if min_latency <= latency <= max_latency:
                distribution.add(int(m.group(2)), latency)
    return distribution


def write_distribution(distribution: LatencyDistribution, output_dir: Path) -> list[Path]:
    output_dir = Path(output_dir)
    paths = [
        output_dir / DISTRIBUTION_FILE,
        output_dir / RANK_BY_LATENCY_FILE,
        output_dir / RANK_BY_FREQUENCY_FILE,
    ]
    with atomic_write(paths[0]) as fh:
        for cluster_id, count in distribution.by_cluster():
            fh.write(f"{cluster_id} {count}\n")
    with atomic_write(paths[1]) as fh:
        for cluster_id, latency in distribution.ranked_by_latency():
            fh.write(f"{cluster_id} {latency:f}\n")
    with atomic_write(paths[2]) as fh:
        for cluster_id, count in distribution.ranked_by_frequency():
            fh.write(f"{cluster_id} {count}\n")
    return paths
