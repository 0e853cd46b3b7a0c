"""Batched two-sample hypothesis tests between the baseline and problem period.

Comparisons are queued with ``add_comparison`` while clusters are being
processed and executed together by ``run()``; results are only available
afterwards. Keeping execution behind a single barrier lets the Bonferroni
correction see the final number of tests.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

import numpy as np
from scipy import stats as sp_stats

from ..exceptions import HypothesisTestError
from ..logging_config import get_logger
from .models import ComparisonResult

logger = get_logger(__name__)

RESPONSE_TIME_LABEL = "response_time"


def comparison_id_for(cluster_id: int) -> str:
    return f"cluster-{cluster_id}"


def describe_sample(values: Sequence[float]) -> tuple[float, float]:
    """Mean and population standard deviation; (0, 0) for an empty sample."""
    if len(values) == 0:
        return 0.0, 0.0
    arr = np.asarray(values, dtype=float)
    return float(np.mean(arr)), float(np.std(arr, ddof=0))


def effective_sample_size(n0: int, n1: int) -> float:
    if n0 == 0 or n1 == 0:
        return 0.0
    return n0 * n1 / (n0 + n1)


class HypothesisTest(Protocol):
    """Queue, run and read back two-sample comparisons."""

    def add_comparison(
        self, comparison_id: str, label: str, s0: Sequence[float], s1: Sequence[float]
    ) -> None: ...

    def run(self) -> None: ...

    def results(self, comparison_id: str) -> dict[str, ComparisonResult]: ...


@dataclass
class _Queued:
    comparison_id: str
    label: str
    s0: np.ndarray
    s1: np.ndarray


class KolmogorovSmirnovTest:
    """Two-sample Kolmogorov-Smirnov test (``scipy.stats.ks_2samp``).

    Samples whose effective size ``n0*n1/(n0+n1)`` is below
    ``min_effective_samples`` (or with an empty side) are not tested; they
    come back with ``test_run=False``.
    """

    def __init__(
        self,
        significance_level: float = 0.05,
        min_effective_samples: float = 4.0,
        bonferroni_correction: bool = False,
    ):
        self.significance_level = significance_level
        self.min_effective_samples = min_effective_samples
        self.bonferroni_correction = bonferroni_correction
        self._queue: list[_Queued] = []
        self._results: dict[str, dict[str, ComparisonResult]] = {}
        self._has_run = False

    def add_comparison(
        self, comparison_id: str, label: str, s0: Sequence[float], s1: Sequence[float]
    ) -> None:
        if self._has_run:
            raise HypothesisTestError("comparisons cannot be added after run()", comparison_id)
        self._queue.append(
            _Queued(comparison_id, label, np.asarray(s0, dtype=float), np.asarray(s1, dtype=float))
        )

    def _runnable(self, item: _Queued) -> bool:
        return effective_sample_size(len(item.s0), len(item.s1)) >= self.min_effective_samples

    def run(self) -> None:
        """Execute every queued comparison."""
        if self._has_run:
            return

        runnable = sum(1 for item in self._queue if self._runnable(item))
        alpha = self.significance_level
        if self.bonferroni_correction and runnable > 0:
            alpha = alpha / runnable

        skipped = 0
        for item in self._queue:
            means = describe_sample(item.s0)[0], describe_sample(item.s1)[0]
            stddevs = describe_sample(item.s0)[1], describe_sample(item.s1)[1]
            sizes = len(item.s0), len(item.s1)

            if self._runnable(item):
                try:
                    outcome = sp_stats.ks_2samp(item.s0, item.s1)
                except ValueError as e:
                    raise HypothesisTestError(str(e), item.comparison_id)
                p_value = float(outcome.pvalue)
                if np.isnan(p_value):
                    raise HypothesisTestError(f"p-value is NaN for {item.label}", item.comparison_id)
                result = ComparisonResult(
                    comparison_id=item.comparison_id,
                    label=item.label,
                    test_run=True,
                    reject_null=p_value < alpha,
                    p_value=p_value,
                    means=means,
                    stddevs=stddevs,
                    sample_sizes=sizes,
                )
            else:
                skipped += 1
                logger.debug(
                    "Test not run for %s/%s (n0=%d, n1=%d)",
                    item.comparison_id,
                    item.label,
                    sizes[0],
                    sizes[1],
                )
                result = ComparisonResult(
                    comparison_id=item.comparison_id,
                    label=item.label,
                    test_run=False,
                    reject_null=False,
                    p_value=1.0,
                    means=means,
                    stddevs=stddevs,
                    sample_sizes=sizes,
                )
            self._results.setdefault(item.comparison_id, {})[item.label] = result

        if skipped:
            logger.warning("%d of %d comparisons had too few samples to test", skipped, len(self._queue))
        logger.debug("Ran %d comparisons at alpha=%.4g", runnable, alpha)

        self._queue = []
        self._has_run = True

    def results(self, comparison_id: str) -> dict[str, ComparisonResult]:
        if not self._has_run:
            raise HypothesisTestError("results requested before run()", comparison_id)
        return dict(self._results.get(comparison_id, {}))
