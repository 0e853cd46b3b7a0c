"""Distances between cluster representatives, used to pick originators.

Two oracles are provided:

  MatrixDistanceOracle   precomputed N x N matrix (cluster_distance_matrix.dat),
                         row/column i is cluster i+1
  EdgeSetDistanceOracle  size of the symmetric difference between the edge
                         multisets of two representatives:
                         d(A,B) = sum_e |count_A(e) - count_B(e)|
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Protocol

import numpy as np

from ..exceptions import ClusterResolutionError, InvalidConfigError, SnapshotAccessError
from ..file_ops import require_readable


class DistanceOracle(Protocol):
    """Distance between the representatives of two clusters."""

    def distance(self, cluster_a: int, cluster_b: int) -> float: ...


class MatrixDistanceOracle:
    def __init__(self, matrix: np.ndarray):
        if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
            raise InvalidConfigError("distance_matrix", matrix.shape, "must be a square matrix")
        self.matrix = matrix

    @classmethod
    def from_file(cls, path: Path) -> "MatrixDistanceOracle":
        require_readable(path)
        try:
            matrix = np.loadtxt(path, dtype=float, ndmin=2)
        except ValueError as e:
            raise SnapshotAccessError(path, f"Invalid distance matrix: {e}")
        return cls(matrix)

    def distance(self, cluster_a: int, cluster_b: int) -> float:
        size = self.matrix.shape[0]
        for cluster_id in (cluster_a, cluster_b):
            if not 1 <= cluster_id <= size:
                raise ClusterResolutionError(cluster_id, f"distance matrix covers clusters 1..{size}")
        return float(self.matrix[cluster_a - 1, cluster_b - 1])


class EdgeSetDistanceOracle:
    def __init__(self, edges_by_cluster: Mapping[int, Iterable[str]]):
        self._edges = {cid: Counter(edges) for cid, edges in edges_by_cluster.items()}

    def distance(self, cluster_a: int, cluster_b: int) -> float:
        for cluster_id in (cluster_a, cluster_b):
            if cluster_id not in self._edges:
                raise ClusterResolutionError(cluster_id, "no representative edges recorded")
        a = self._edges[cluster_a]
        b = self._edges[cluster_b]
        return float(sum(abs(a[e] - b[e]) for e in set(a) | set(b)))
