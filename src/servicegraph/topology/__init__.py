"""Service-call topology aggregation and serialization.

Collapses the raw call graph into visual connections and projects it into
the JSON schemas consumed by visualization front ends.
"""

from servicegraph.topology.aggregator import (
    Aggregation,
    ConnectionMetrics,
    EdgeAggregator,
    MetricAnomaly,
)
from servicegraph.topology.renderer import GraphRenderer
from servicegraph.topology.serializers import GraphFormat, VizLayout, get_serializer

__all__ = [
    "Aggregation",
    "ConnectionMetrics",
    "EdgeAggregator",
    "GraphFormat",
    "GraphRenderer",
    "MetricAnomaly",
    "VizLayout",
    "get_serializer",
]
