"""Trace store, identity index and graph access for captured request flows."""

from .accessor import GraphAccessor
from .decoder import DotRequestDecoder, RequestDecoder
from .index import IndexSummary, TraceIndexBuilder
from .layout import IndexPaths
from .models import (
    DecodedRequest,
    EdgeSample,
    FeatureRow,
    GraphNode,
    RequestGraph,
    RequestLocation,
    ResponseTimes,
    TraceIndex,
)
from .store import TraceStore, open_store

__all__ = [
    "GraphAccessor",
    "DotRequestDecoder",
    "RequestDecoder",
    "IndexSummary",
    "TraceIndexBuilder",
    "IndexPaths",
    "DecodedRequest",
    "EdgeSample",
    "FeatureRow",
    "GraphNode",
    "RequestGraph",
    "RequestLocation",
    "ResponseTimes",
    "TraceIndex",
    "TraceStore",
    "open_store",
]
