"""Graph sources that do not need a monitoring backend.

``JsonFileGraphSource`` replays a capture written in the raw ``json``
format, which makes recorded topologies usable for demos and offline
rendering. ``InMemoryGraphSource`` serves a fixed graph.
"""

import asyncio
from pathlib import Path

import structlog
from pydantic import BaseModel

from servicegraph.errors import BackendQueryError
from servicegraph.models.graph import DynamicGraph, Edge
from servicegraph.observability.base import GraphSource, is_zero_value

logger = structlog.get_logger()


class GraphCapture(BaseModel):
    """On-disk capture: ``{"nodes": [...], "edges": [{source, target, labels}]}``."""

    nodes: list[str] | None = None
    edges: list[Edge] | None = None

    def to_graph(self) -> DynamicGraph:
        return DynamicGraph(nodes=frozenset(self.nodes or ()), edges=tuple(self.edges or ()))


class JsonFileGraphSource(GraphSource):
    """Read a graph capture from disk on every query."""

    source_name = "file"

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self.address = str(self._path)

    async def query(self, time_window: str, *, filter_empty: bool = False) -> DynamicGraph:
        try:
            text = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
            graph = GraphCapture.model_validate_json(text).to_graph()
        except (OSError, ValueError) as exc:
            logger.error("graph_file_unreadable", path=self.address, error=str(exc))
            raise BackendQueryError(f"Cannot load graph from {self.address}: {exc}") from exc

        if filter_empty:
            kept = [e for e in graph.edges if not is_zero_value(e.labels.get("reqs/sec", ""))]
            graph = DynamicGraph(nodes=graph.nodes, edges=tuple(kept))
        return graph


class InMemoryGraphSource(GraphSource):
    """Serve a fixed graph; ``graph`` may be replaced between queries."""

    source_name = "memory"
    address = "memory://"

    def __init__(self, graph: DynamicGraph | None = None) -> None:
        self.graph = graph or DynamicGraph()
        self.queries: list[str] = []

    async def query(self, time_window: str, *, filter_empty: bool = False) -> DynamicGraph:
        self.queries.append(time_window)
        return self.graph
