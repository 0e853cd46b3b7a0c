"""Analysis-related exceptions: cluster resolution, overlays, hypothesis tests."""

from typing import Optional

from .base import FlowDeltaError


class AnalysisError(FlowDeltaError):
    """Base class for analysis-related errors."""

    pass


class ClusterResolutionError(AnalysisError):
    """Raised when a cluster or input vector cannot be resolved to global ids."""

    def __init__(self, cluster_id: int, reason: str):
        super().__init__(
            f"Cannot resolve cluster {cluster_id}",
            details={"cluster_id": cluster_id, "reason": reason},
        )
        self.cluster_id = cluster_id
        self.reason = reason


class OverlayError(AnalysisError):
    """Raised when an annotated edge cannot be located in a request graph."""

    def __init__(self, edge_name: str):
        super().__init__(
            f"Edge not found in request graph: {edge_name}",
            details={"edge": edge_name},
        )
        self.edge_name = edge_name


class HypothesisTestError(AnalysisError):
    """Raised when the batched hypothesis tests cannot be executed."""

    def __init__(self, reason: str, comparison_id: Optional[str] = None):
        details = {"reason": reason}
        if comparison_id is not None:
            details["comparison_id"] = comparison_id
        super().__init__("Hypothesis test execution failed", details=details)
        self.reason = reason
        self.comparison_id = comparison_id


class AnalysisCancelled(AnalysisError):
    """Raised at a checkpoint when the caller requested cancellation."""

    def __init__(self, checkpoint: str):
        super().__init__("Analysis cancelled", details={"checkpoint": checkpoint})
        self.checkpoint = checkpoint
