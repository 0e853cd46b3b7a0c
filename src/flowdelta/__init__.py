"""
flowdelta - request-flow comparison for diagnosing performance regressions

Indexes request-flow graphs captured in a baseline and a problem period,
encodes them as edge-latency feature rows for an external clusterer, and
ranks the clusters whose structure or response time changed by their
contribution to the regression.
"""

__version__ = "0.1.0"

from .api import Workspace, cluster_distribution, compare, index_snapshots, print_clusters
from .config import AnalysisConfig, load_config
from .exceptions import FlowDeltaError

__all__ = [
    "index_snapshots",  # Step 1: build indices and the feature matrix
    "compare",  # Step 2: classify and rank clusters
    "print_clusters",
    "cluster_distribution",
    "Workspace",
    "AnalysisConfig",
    "load_config",
    "FlowDeltaError",
]
