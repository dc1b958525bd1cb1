"""Graph data models shared across all servicegraph components."""

from servicegraph.models.graph import (
    DynamicGraph,
    Edge,
    GraphBuilder,
    NodeRegistry,
    validate_dynamic,
)

__all__ = [
    "DynamicGraph",
    "Edge",
    "GraphBuilder",
    "NodeRegistry",
    "validate_dynamic",
]
