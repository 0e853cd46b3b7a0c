"""Comparison and print-mode reports written to the output directory.

A comparison run writes:

  cluster_info.dat                  one row per cluster with its mutation type
  statistical_tests_run_info.dat    how many clusters/requests could not be tested
  <view>.dot                        one file per ranked view (see ``ViewName``)

Print mode writes ``cluster_info.dat`` without mutation types and
``all_clusters.dot`` with every cluster representative.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ..config import AnalysisConfig
from ..exceptions import AnalysisCancelled
from ..file_ops import atomic_write
from ..logging_config import get_logger
from ..traces.accessor import GraphAccessor
from ..traces.overlay import create_summary_node
from .distance import DistanceOracle, EdgeSetDistanceOracle
from .hypothesis import effective_sample_size
from .models import ClusterInfo, ComparisonResult
from .mutations import classify_clusters
from .ranking import ViewEntry, ViewName, build_views
from .statistics import ClusterStatisticsEngine

logger = get_logger(__name__)

CLUSTER_INFO_FILE = "cluster_info.dat"
TESTS_RUN_INFO_FILE = "statistical_tests_run_info.dat"
ALL_CLUSTERS_FILE = "all_clusters.dot"


@dataclass
class ComparisonReport:
    """What a comparison run produced."""

    infos: dict[int, ClusterInfo]
    views: dict[ViewName, list[ViewEntry]]
    files: list[Path] = field(default_factory=list)


@dataclass
class CoverageSummary:
    """Clusters and requests for which the response-time test could not run."""

    num_clusters: int = 0
    total_requests: int = 0
    clusters_not_tested: int = 0
    requests_not_tested: int = 0
    small_clusters: int = 0
    requests_in_small_clusters: int = 0

    @staticmethod
    def _share(part: int, whole: int) -> float:
        return part / whole if whole else 0.0

    def format(self, large_cluster_min_requests: int) -> str:
        n = large_cluster_min_requests
        return (
            "Number of clusters for which response-time mutations could not be identified: "
            f"{self.clusters_not_tested} ({self._share(self.clusters_not_tested, self.num_clusters):3.2f})\n"
            "Number of requests for which response-time mutation tests could not be run: "
            f"{self.requests_not_tested} ({self._share(self.requests_not_tested, self.total_requests):3.2f})\n\n"
            f"Number of small clusters (with less than {n} requests): "
            f"{self.small_clusters} ({self._share(self.small_clusters, self.num_clusters):3.2f})\n"
            f"Number of reqs in small clusters (with less than {n} requests): "
            f"{self.requests_in_small_clusters} "
            f"({self._share(self.requests_in_small_clusters, self.total_requests):3.2f})\n"
        )


def summarize_coverage(infos: Mapping[int, ClusterInfo], config: AnalysisConfig) -> CoverageSummary:
    coverage = CoverageSummary(num_clusters=len(infos))
    for info in infos.values():
        s0, s1 = info.frequencies
        coverage.total_requests += s0 + s1
        if effective_sample_size(s0, s1) < config.min_effective_samples:
            coverage.clusters_not_tested += 1
            coverage.requests_not_tested += s0 + s1
        if s0 < config.large_cluster_min_requests or s1 < config.large_cluster_min_requests:
            coverage.small_clusters += 1
            coverage.requests_in_small_clusters += s0 + s1
    return coverage


def format_cluster_info(infos: Mapping[int, ClusterInfo], with_mutation_types: bool) -> str:
    headers = ["cluster_id"]
    if with_mutation_types:
        headers.append("mutation_type")
    headers += [
        "s0_likelh",
        "s1_likelh",
        "s0_avg_lat",
        "s1_avg_lat",
        "s0_stddev",
        "s1_stddev",
        "s0_freq",
        "s1_freq",
    ]
    widths = {"cluster_id": 15, "mutation_type": 40, "s0_likelh": 20, "s1_likelh": 20}
    lines = ["\t".join(f"{h:<{widths.get(h, 15)}}" for h in headers)]

    for cluster_id in sorted(infos):
        info = infos[cluster_id]
        cells = [f"{cluster_id:<15d}"]
        if with_mutation_types:
            cells.append(f"{info.mutation_type_label:<40}")
        cells += [f"{info.likelihoods[0]:<1.14f}", f"{info.likelihoods[1]:<1.14f}"]
        cells += [f"{v:<12.3f}" for v in info.avg_response_times]
        cells += [f"{v:<12.3f}" for v in info.stddevs]
        cells += [f"{v:<12d}" for v in info.frequencies]
        lines.append("\t".join(cells))
    return "\n".join(lines) + "\n"


def _overlay_stats(info: ClusterInfo) -> dict[str, ComparisonResult]:
    present = set(info.edge_names)
    return {name: stats for name, stats in info.edge_latency_stats.items() if name in present}


def render_entry(accessor: GraphAccessor, info: ClusterInfo, entry: ViewEntry) -> str:
    rt = info.response_time_stats
    summary = create_summary_node(
        cluster_id=info.cluster_id,
        specific_mutation_type=entry.specific_label,
        overall_mutation_type=info.mutation_type_label,
        cost=entry.cost,
        frequencies=info.frequencies,
        likelihoods=info.likelihoods,
        avg_response_times=info.avg_response_times,
        response_time_p_value=rt.p_value if rt is not None and rt.test_run else None,
        originators=entry.originators,
    )
    return accessor.render_request(info.representative, _overlay_stats(info), summary)


class ClusterReporter:
    """Runs a comparison or print pass and writes its reports."""

    def __init__(
        self,
        engine: ClusterStatisticsEngine,
        output_dir: Path,
        oracle: Optional[DistanceOracle] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.engine = engine
        self.output_dir = Path(output_dir)
        self.oracle = oracle
        self._cancel_event = cancel_event

    @property
    def accessor(self) -> GraphAccessor:
        return self.engine.accessor

    @property
    def config(self) -> AnalysisConfig:
        return self.engine.config

    def _checkpoint(self, where: str) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise AnalysisCancelled(where)

    def compare_clusters(self) -> ComparisonReport:
        """Classify every cluster and write the ranked views and tables."""
        infos = self.engine.cluster_info(compare=True)
        oracle = self.oracle or EdgeSetDistanceOracle(
            {cid: info.edge_names for cid, info in infos.items()}
        )
        _total_s0, total_s1 = self.accessor.get_snapshot_totals()
        classify_clusters(infos, self.accessor.store.edge_aggregates, oracle, self.config, total_s1)

        report = ComparisonReport(infos=infos, views=build_views(infos))
        self.output_dir.mkdir(parents=True, exist_ok=True)

        info_path = self.output_dir / CLUSTER_INFO_FILE
        with atomic_write(info_path) as fh:
            fh.write(format_cluster_info(infos, with_mutation_types=True))
        report.files.append(info_path)

        coverage = summarize_coverage(infos, self.config)
        coverage_path = self.output_dir / TESTS_RUN_INFO_FILE
        with atomic_write(coverage_path) as fh:
            fh.write(coverage.format(self.config.large_cluster_min_requests))
        report.files.append(coverage_path)
        if coverage.clusters_not_tested:
            logger.warning(
                "Response-time test could not run for %d of %d clusters",
                coverage.clusters_not_tested,
                coverage.num_clusters,
            )

        report.files.extend(self._render_views(infos, report.views))
        logger.info("Wrote %d report files to %s", len(report.files), self.output_dir)
        return report

    def _render_view(
        self, name: ViewName, entries: list[ViewEntry], infos: Mapping[int, ClusterInfo]
    ) -> Path:
        self._checkpoint(f"view {name.value}")
        path = self.output_dir / name.filename
        with atomic_write(path) as fh:
            for entry in entries:
                fh.write(render_entry(self.accessor, infos[entry.cluster_id], entry))
        logger.debug("Wrote %d graphs to %s", len(entries), path)
        return path

    def _render_views(
        self, infos: Mapping[int, ClusterInfo], views: Mapping[ViewName, list[ViewEntry]]
    ) -> list[Path]:
        workers = min(self.config.workers or len(views), len(views)) or 1
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(self._render_view, name, entries, infos)
                for name, entries in views.items()
            ]
            return [future.result() for future in futures]

    def print_clusters(self) -> list[Path]:
        """Write cluster statistics and every representative, without comparing."""
        infos = self.engine.cluster_info(compare=False)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        info_path = self.output_dir / CLUSTER_INFO_FILE
        with atomic_write(info_path) as fh:
            fh.write(format_cluster_info(infos, with_mutation_types=False))

        graphs_path = self.output_dir / ALL_CLUSTERS_FILE
        with atomic_write(graphs_path) as fh:
            for cluster_id in sorted(infos):
                fh.write(self.accessor.render_request(infos[cluster_id].representative))

        logger.info("Wrote statistics for %d clusters to %s", len(infos), self.output_dir)
        return [info_path, graphs_path]
