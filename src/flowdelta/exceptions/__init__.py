"""Exception hierarchy for flowdelta."""

from .analysis import (
    AnalysisCancelled,
    AnalysisError,
    ClusterResolutionError,
    HypothesisTestError,
    OverlayError,
)
from .base import FlowDeltaError
from .config import ConfigurationError, InvalidConfigError
from .indexing import (
    IdentityMismatchError,
    IndexingError,
    MalformedRequestError,
    SnapshotAccessError,
)

__all__ = [
    "FlowDeltaError",
    "IndexingError",
    "SnapshotAccessError",
    "IdentityMismatchError",
    "MalformedRequestError",
    "AnalysisError",
    "ClusterResolutionError",
    "OverlayError",
    "HypothesisTestError",
    "AnalysisCancelled",
    "ConfigurationError",
    "InvalidConfigError",
]
