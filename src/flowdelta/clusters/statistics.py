"""Per-cluster statistics across the baseline and problem period.

For every cluster (ascending id) the engine gathers member response times
and edge latencies, computes frequencies, likelihoods, means and population
standard deviations and, when comparing, queues response-time and per-edge
comparisons with the hypothesis test. Tests run once, after every cluster
has been submitted, and results are attached to each ``ClusterInfo``.

Gathering is fanned out over a thread pool; submission to the hypothesis
test and the batch run stay sequential.
"""

from __future__ import annotations

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..config import AnalysisConfig, DEFAULT_CONFIG
from ..exceptions import AnalysisCancelled
from ..logging_config import get_logger
from ..traces.accessor import GraphAccessor
from ..traces.models import GraphNode, ResponseTimes
from .assignment import ClusterAssignment
from .hypothesis import (
    RESPONSE_TIME_LABEL,
    HypothesisTest,
    KolmogorovSmirnovTest,
    comparison_id_for,
    describe_sample,
)
from .models import ClusterInfo

logger = get_logger(__name__)

# Default worker count: use CPU count, capped at 8 to avoid overwhelming I/O
_DEFAULT_WORKERS = min(os.cpu_count() or 4, 8)


@dataclass
class _ClusterSample:
    cluster_id: int
    representative: int
    response_times: ResponseTimes
    edge_latencies: dict[str, tuple[list[float], list[float]]] = field(default_factory=dict)
    root: Optional[GraphNode] = None
    edge_names: list[str] = field(default_factory=list)


def _likelihood(part: int, whole: int) -> float:
    return 0.0 if whole == 0 else part / whole


def hypothesis_test_from_config(config: AnalysisConfig) -> HypothesisTest:
    return KolmogorovSmirnovTest(
        significance_level=config.significance_level,
        min_effective_samples=config.min_effective_samples,
        bonferroni_correction=config.bonferroni_correction,
    )


class ClusterStatisticsEngine:
    """Computes ``ClusterInfo`` for every cluster, lazily and once per mode."""

    def __init__(
        self,
        assignment: ClusterAssignment,
        accessor: GraphAccessor,
        config: AnalysisConfig = DEFAULT_CONFIG,
        test_factory: Optional[Callable[[AnalysisConfig], HypothesisTest]] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.assignment = assignment
        self.accessor = accessor
        self.config = config
        self._test_factory = test_factory or hypothesis_test_from_config
        self._cancel_event = cancel_event
        self._lock = threading.Lock()
        self._cache: dict[bool, dict[int, ClusterInfo]] = {}

    def cluster_info(self, compare: bool = True) -> dict[int, ClusterInfo]:
        """ClusterInfo keyed by cluster id, computed on first access."""
        with self._lock:
            if compare not in self._cache:
                self._cache[compare] = self._compute(compare)
            return self._cache[compare]

    def clear(self) -> None:
        """Drop computed statistics and reload the assignment on next access."""
        with self._lock:
            self._cache.clear()
            self.assignment.clear()

    # ── Internals ───────────────────────────────────────────────────────

    def _checkpoint(self, where: str) -> None:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise AnalysisCancelled(where)

    def _gather(self, cluster_id: int, compare: bool) -> _ClusterSample:
        self._checkpoint(f"cluster {cluster_id}")
        logger.debug("Processing statistics for cluster %d", cluster_id)

        members = self.assignment.members(cluster_id)
        representative = self.assignment.representative(cluster_id)
        sample = _ClusterSample(
            cluster_id=cluster_id,
            representative=representative,
            response_times=self.accessor.get_response_times(members),
            root=self.accessor.get_root_node(representative),
            edge_names=self.accessor.get_edge_names(representative),
        )

        if compare:
            for global_id in members:
                snapshot = self.accessor.store.resolve(global_id).snapshot
                for name, latencies in self.accessor.get_edge_latencies(global_id).items():
                    per_snapshot = sample.edge_latencies.setdefault(name, ([], []))
                    per_snapshot[snapshot].extend(latencies)
        return sample

    def _build_info(self, sample: _ClusterSample, totals: tuple[int, int]) -> ClusterInfo:
        rt = sample.response_times
        freqs = (len(rt.s0), len(rt.s1))
        s0_mean, s0_std = describe_sample(rt.s0)
        s1_mean, s1_std = describe_sample(rt.s1)
        return ClusterInfo(
            cluster_id=sample.cluster_id,
            representative=sample.representative,
            frequencies=freqs,
            likelihoods=(_likelihood(freqs[0], totals[0]), _likelihood(freqs[1], totals[1])),
            avg_response_times=(s0_mean, s1_mean),
            stddevs=(s0_std, s1_std),
            root=sample.root,
            edge_names=sample.edge_names,
        )

    def _compute(self, compare: bool) -> dict[int, ClusterInfo]:
        cluster_ids = list(self.assignment.cluster_ids())
        totals = self.accessor.get_snapshot_totals()
        workers = self.config.workers or _DEFAULT_WORKERS

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self._gather, cid, compare) for cid in cluster_ids]
            # Collected in submission order so clusters stay in ascending id order
            samples = [future.result() for future in futures]

        infos: dict[int, ClusterInfo] = {}
        test = self._test_factory(self.config) if compare else None
        for sample in samples:
            infos[sample.cluster_id] = self._build_info(sample, totals)
            if test is not None:
                comparison_id = comparison_id_for(sample.cluster_id)
                rt = sample.response_times
                test.add_comparison(comparison_id, RESPONSE_TIME_LABEL, rt.s0, rt.s1)
                for name, (s0, s1) in sample.edge_latencies.items():
                    test.add_comparison(comparison_id, name, s0, s1)

        if test is not None:
            self._checkpoint("hypothesis tests")
            test.run()
            for cluster_id, info in infos.items():
                results = test.results(comparison_id_for(cluster_id))
                info.response_time_stats = results.pop(RESPONSE_TIME_LABEL, None)
                info.edge_latency_stats = results

        logger.info("Computed statistics for %d clusters", len(infos))
        return infos
