"""File layout of the converted-data directory shared by every component."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

CONVERT_DATA_DIRNAME = "convert_data"


@dataclass(frozen=True)
class IndexPaths:
    """Locations of index artifacts and clusterer inputs under one directory."""

    root: Path

    @classmethod
    def for_output_dir(cls, output_dir: Path) -> "IndexPaths":
        return cls(Path(output_dir) / CONVERT_DATA_DIRNAME)

    def request_index(self, snapshot: int) -> Path:
        return self.root / f"s{snapshot}_request_index.dat"

    def indiv_latencies(self, snapshot: int) -> Path:
        return self.root / f"s{snapshot}_edge_based_indiv_latencies.dat"

    @property
    def identity(self) -> Path:
        return self.root / "global_ids_to_local_ids.dat"

    @property
    def feature_rows(self) -> Path:
        return self.root / "global_req_edge_latencies.dat"

    @property
    def feature_rows_temp(self) -> Path:
        return self.root / "global_req_temp_latencies.dat"

    @property
    def edge_columns(self) -> Path:
        return self.root / "global_req_edge_columns.dat"

    @property
    def edge_aggregates(self) -> Path:
        return self.root / "global_edge_based_avg_latencies.dat"

    # Clusterer hand-off
    @property
    def clusters(self) -> Path:
        return self.root / "clusters.dat"

    @property
    def input_vec_to_global_ids(self) -> Path:
        return self.root / "input_vec_to_global_ids.dat"

    @property
    def cluster_distance_matrix(self) -> Path:
        return self.root / "cluster_distance_matrix.dat"

    @property
    def cluster_membership(self) -> Path:
        return self.root / "global_ids_to_cluster_ids.dat"

    def index_artifacts(self, snapshots: tuple[int, ...]) -> list[Path]:
        paths = [self.identity, self.feature_rows, self.edge_columns, self.edge_aggregates]
        for snapshot in snapshots:
            paths.append(self.request_index(snapshot))
            paths.append(self.indiv_latencies(snapshot))
        return paths
