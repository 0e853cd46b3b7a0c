"""Public API for flowdelta.

Example:
    >>> from flowdelta import index_snapshots, compare
    >>>
    >>> index_snapshots("s0.dot", "s1.dot", "out")
    >>> # ... run the clusterer on out/convert_data/global_req_edge_latencies.dat
    >>> report = compare("s0.dot", "s1.dot", "out", mutation_threshold=25)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .clusters.assignment import ClusterAssignment
from .clusters.distance import DistanceOracle, MatrixDistanceOracle
from .clusters.distribution import (
    LatencyDistribution,
    latency_distribution,
    write_cluster_membership,
    write_distribution,
)
from .clusters.report import ClusterReporter, ComparisonReport
from .clusters.statistics import ClusterStatisticsEngine
from .config import AnalysisConfig, load_config
from .logging_config import get_logger
from .traces.accessor import GraphAccessor
from .traces.index import IndexSummary, TraceIndexBuilder
from .traces.layout import IndexPaths
from .traces.store import open_store

logger = get_logger(__name__)

PathLike = Union[str, Path]


def index_snapshots(
    snapshot0: PathLike,
    snapshot1: Optional[PathLike],
    output_dir: PathLike,
    reconvert: bool = False,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[IndexSummary]:
    """Index the snapshot files unless a previous run's artifacts exist.

    Returns:
        The indexing summary, or None if existing artifacts were reused
    """
    paths = IndexPaths.for_output_dir(Path(output_dir))
    builder = TraceIndexBuilder(
        Path(snapshot0),
        Path(snapshot1) if snapshot1 is not None else None,
        paths,
        cancel_event=cancel_event,
    )
    if not reconvert and builder.outputs_exist():
        logger.info("Reusing existing index in %s", paths.root)
        return None
    return builder.parse_requests()


@dataclass
class Workspace:
    """Everything needed to analyze one indexed and clustered output dir."""

    paths: IndexPaths
    accessor: GraphAccessor
    assignment: ClusterAssignment
    engine: ClusterStatisticsEngine

    @classmethod
    def open(
        cls,
        snapshot0: PathLike,
        snapshot1: Optional[PathLike],
        output_dir: PathLike,
        config: AnalysisConfig,
        cancel_event: Optional[threading.Event] = None,
    ) -> "Workspace":
        paths = IndexPaths.for_output_dir(Path(output_dir))
        store = open_store(
            paths, Path(snapshot0), Path(snapshot1) if snapshot1 is not None else None
        )
        accessor = GraphAccessor(store)
        assignment = ClusterAssignment.from_paths(paths)
        engine = ClusterStatisticsEngine(assignment, accessor, config, cancel_event=cancel_event)
        return cls(paths, accessor, assignment, engine)

    def export_membership(self) -> Path:
        write_cluster_membership(self.assignment, self.accessor, self.paths.cluster_membership)
        return self.paths.cluster_membership


def _distance_oracle(
    paths: IndexPaths, distance_matrix: Optional[PathLike]
) -> Optional[DistanceOracle]:
    if distance_matrix is not None:
        return MatrixDistanceOracle.from_file(Path(distance_matrix))
    if paths.cluster_distance_matrix.exists():
        return MatrixDistanceOracle.from_file(paths.cluster_distance_matrix)
    return None


def compare(
    snapshot0: PathLike,
    snapshot1: PathLike,
    output_dir: PathLike,
    config: Optional[AnalysisConfig] = None,
    distance_matrix: Optional[PathLike] = None,
    cancel_event: Optional[threading.Event] = None,
    **overrides,
) -> ComparisonReport:
    """Compare clusters between the two periods and write ranked reports.

    Without a distance matrix (explicit, or ``cluster_distance_matrix.dat``
    in the converted-data directory) originators are chosen by the edge-set
    distance between cluster representatives.
    """
    config = config or load_config(**overrides)
    workspace = Workspace.open(snapshot0, snapshot1, output_dir, config, cancel_event)
    oracle = _distance_oracle(workspace.paths, distance_matrix)
    reporter = ClusterReporter(workspace.engine, Path(output_dir), oracle, cancel_event)
    report = reporter.compare_clusters()
    workspace.export_membership()
    return report


def print_clusters(
    snapshot0: PathLike,
    snapshot1: Optional[PathLike],
    output_dir: PathLike,
    config: Optional[AnalysisConfig] = None,
    **overrides,
) -> list[Path]:
    """Write cluster statistics and representatives without comparing."""
    config = config or load_config(**overrides)
    workspace = Workspace.open(snapshot0, snapshot1, output_dir, config)
    files = ClusterReporter(workspace.engine, Path(output_dir)).print_clusters()
    files.append(workspace.export_membership())
    return files


def cluster_distribution(
    output_dir: PathLike, min_latency: float = 0.0, max_latency: float = 100000.0
) -> LatencyDistribution:
    """Per-cluster request counts within a latency range, written beside the reports."""
    paths = IndexPaths.for_output_dir(Path(output_dir))
    distribution = latency_distribution(paths.cluster_membership, min_latency, max_latency)
    write_distribution(distribution, Path(output_dir))
    return distribution
