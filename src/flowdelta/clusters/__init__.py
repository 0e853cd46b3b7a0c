"""Cluster statistics, mutation classification and ranked reports."""

from .assignment import ClusterAssignment
from .distance import DistanceOracle, EdgeSetDistanceOracle, MatrixDistanceOracle
from .hypothesis import HypothesisTest, KolmogorovSmirnovTest
from .models import (
    ClusterInfo,
    ComparisonResult,
    MutationRecord,
    MutationType,
    describe_mutation_type,
    describe_mutation_types,
)
from .mutations import classify_clusters, derive_mutation_records
from .ranking import ViewEntry, ViewName, build_views
from .report import ClusterReporter, ComparisonReport
from .statistics import ClusterStatisticsEngine

__all__ = [
    "ClusterAssignment",
    "DistanceOracle",
    "EdgeSetDistanceOracle",
    "MatrixDistanceOracle",
    "HypothesisTest",
    "KolmogorovSmirnovTest",
    "ClusterInfo",
    "ComparisonResult",
    "MutationRecord",
    "MutationType",
    "describe_mutation_type",
    "describe_mutation_types",
    "classify_clusters",
    "derive_mutation_records",
    "ViewEntry",
    "ViewName",
    "build_views",
    "ClusterReporter",
    "ComparisonReport",
    "ClusterStatisticsEngine",
]
