"""Cluster assignments produced by the external clusterer.

Two files describe the assignment, both 1-indexed by line number:

  clusters.dat                  line i: input vector ids assigned to cluster i
  input_vec_to_global_ids.dat   line j: global ids that map to input vector j

Cluster members are the union of the global ids of its input vectors, in
file order. The representative is the first global id of the first input
vector.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Optional

from ..exceptions import ClusterResolutionError
from ..file_ops import require_readable
from ..logging_config import get_logger
from ..traces.layout import IndexPaths

logger = get_logger(__name__)


def _read_id_lines(path: Path) -> list[list[int]]:
    rows: list[list[int]] = []
    with open(require_readable(path), encoding="utf-8") as fh:
        for line in fh:
            rows.append([int(token) for token in line.split()])
    return rows


class ClusterAssignment:
    """Resolves cluster ids to input vectors and global ids."""

    def __init__(self, clusters_file: Path, input_vec_file: Path):
        self.clusters_file = Path(clusters_file)
        self.input_vec_file = Path(input_vec_file)
        self._lock = threading.Lock()
        self._clusters: Optional[list[list[int]]] = None
        self._input_vecs: list[list[int]] = []

    @classmethod
    def from_paths(cls, paths: IndexPaths) -> "ClusterAssignment":
        return cls(paths.clusters, paths.input_vec_to_global_ids)

    def ensure_loaded(self) -> None:
        if self._clusters is not None:
            return
        with self._lock:
            if self._clusters is not None:
                return
            input_vecs = _read_id_lines(self.input_vec_file)
            clusters = _read_id_lines(self.clusters_file)
            self._input_vecs = input_vecs
            self._clusters = clusters
            logger.debug(
                "Loaded %d clusters over %d input vectors", len(clusters), len(input_vecs)
            )

    def clear(self) -> None:
        with self._lock:
            self._clusters = None
            self._input_vecs = []

    @property
    def num_clusters(self) -> int:
        self.ensure_loaded()
        assert self._clusters is not None
        return len(self._clusters)

    def cluster_ids(self) -> range:
        return range(1, self.num_clusters + 1)

    def _input_vectors_of(self, cluster_id: int) -> list[int]:
        self.ensure_loaded()
        assert self._clusters is not None
        if not 1 <= cluster_id <= len(self._clusters):
            raise ClusterResolutionError(cluster_id, f"known clusters are 1..{len(self._clusters)}")
        vectors = self._clusters[cluster_id - 1]
        if not vectors:
            raise ClusterResolutionError(cluster_id, "cluster has no input vectors")
        return vectors

    def _global_ids_of(self, cluster_id: int, input_vec: int) -> list[int]:
        if not 1 <= input_vec <= len(self._input_vecs):
            raise ClusterResolutionError(cluster_id, f"unknown input vector {input_vec}")
        global_ids = self._input_vecs[input_vec - 1]
        if not global_ids:
            raise ClusterResolutionError(cluster_id, f"input vector {input_vec} maps to no requests")
        return global_ids

    def members(self, cluster_id: int) -> list[int]:
        """Global ids of every request assigned to the cluster."""
        global_ids: list[int] = []
        for input_vec in self._input_vectors_of(cluster_id):
            global_ids.extend(self._global_ids_of(cluster_id, input_vec))
        return global_ids

    def representative(self, cluster_id: int) -> int:
        first_vec = self._input_vectors_of(cluster_id)[0]
        return self._global_ids_of(cluster_id, first_vec)[0]

    def num_requests_in_cluster(self, cluster_id: int) -> int:
        return len(self.members(cluster_id))

    def iter_cluster_requests(self, cluster_id: int) -> Iterator[int]:
        yield from self.members(cluster_id)

    def cluster_of(self) -> dict[int, int]:
        """Map every assigned global id to its cluster id."""
        owners: dict[int, int] = {}
        for cluster_id in self.cluster_ids():
            for global_id in self.members(cluster_id):
                owners[global_id] = cluster_id
        return owners
