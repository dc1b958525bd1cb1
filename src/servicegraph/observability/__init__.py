"""Graph sources backed by monitoring systems, files or memory."""

from servicegraph.observability.base import GraphSource, parse_time_window
from servicegraph.observability.fixture import InMemoryGraphSource, JsonFileGraphSource
from servicegraph.observability.prometheus import PrometheusGraphSource

__all__ = [
    "GraphSource",
    "InMemoryGraphSource",
    "JsonFileGraphSource",
    "PrometheusGraphSource",
    "parse_time_window",
]
