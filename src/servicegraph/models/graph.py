"""Graph data model: the Static node registry and the per-query Dynamic graph.

The Static registry is a process-wide, append-only set of node names that
operators register by hand. The Dynamic graph is an immutable snapshot of
the call topology for one query window; it is rebuilt for every request or
publish tick and never mutated afterwards.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator

import structlog
from pydantic import BaseModel, ConfigDict, Field

from servicegraph.errors import InvalidGraphError

logger = structlog.get_logger()


# -- Models --------------------------------------------------------------------


class Edge(BaseModel):
    """A directed call from ``source`` to ``target``.

    ``labels`` maps metric names (``reqs/sec``, ``errs/sec``) to the value
    exactly as the backend returned it. Values may be malformed.
    """

    model_config = ConfigDict(frozen=True)

    source: str
    target: str
    labels: dict[str, str] = Field(default_factory=dict)


class DynamicGraph(BaseModel):
    """Call-topology snapshot for one query window."""

    model_config = ConfigDict(frozen=True)

    nodes: frozenset[str] = frozenset()
    edges: tuple[Edge, ...] = ()

    def with_nodes(self, names: Iterable[str]) -> DynamicGraph:
        """Return a copy whose node set also contains ``names``."""
        extra = frozenset(names)
        if extra <= self.nodes:
            return self
        return DynamicGraph(nodes=self.nodes | extra, edges=self.edges)

    def sorted_nodes(self) -> list[str]:
        return sorted(self.nodes)

    def sorted_edges(self) -> list[Edge]:
        """Edges ordered by (source, target), then by their sorted labels."""
        return sorted(self.edges, key=lambda e: (e.source, e.target, sorted(e.labels.items())))

    @property
    def is_empty(self) -> bool:
        return not self.nodes and not self.edges


class GraphBuilder:
    """Mutable helper used by graph sources to assemble a ``DynamicGraph``.

    ``add_edge`` registers both endpoints, and repeated labels for the same
    (source, target) pair are folded into one edge so that several backend
    queries (request rate, error rate) can annotate a single call.
    """

    def __init__(self) -> None:
        self._nodes: set[str] = set()
        self._edges: dict[tuple[str, str], dict[str, str]] = {}

    def add_node(self, name: str) -> None:
        self._nodes.add(name)

    def add_edge(self, source: str, target: str, labels: dict[str, str] | None = None) -> None:
        self._nodes.add(source)
        self._nodes.add(target)
        self._edges.setdefault((source, target), {}).update(labels or {})

    def build(self) -> DynamicGraph:
        return DynamicGraph(
            nodes=frozenset(self._nodes),
            edges=tuple(
                Edge(source=src, target=dst, labels=dict(labels))
                for (src, dst), labels in self._edges.items()
            ),
        )


def validate_dynamic(graph: DynamicGraph) -> None:
    """Ensure every edge endpoint exists in ``graph.nodes``.

    Raises ``InvalidGraphError`` naming the first missing node, checking
    edges in (source, target) order so the reported node is deterministic.
    """
    for edge in graph.sorted_edges():
        for endpoint in (edge.source, edge.target):
            if endpoint not in graph.nodes:
                logger.warning(
                    "invalid_graph",
                    node=endpoint,
                    source=edge.source,
                    target=edge.target,
                )
                raise InvalidGraphError(endpoint)


# -- Static registry -----------------------------------------------------------


class NodeRegistry:
    """Process-wide set of manually registered node names.

    Append-only and safe to share between concurrent requests: every read
    and write happens under a single lock, and readers receive an immutable
    snapshot.
    """

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._lock = threading.Lock()
        self._nodes: set[str] = set()
        for name in names:
            self.register(name)

    def register(self, name: str) -> bool:
        """Add ``name``. Returns ``False`` when it was already registered.

        Raises ``ValueError`` for empty or whitespace-only names.
        """
        name = name.strip()
        if not name:
            raise ValueError("node name must not be empty")
        with self._lock:
            if name in self._nodes:
                return False
            self._nodes.add(name)
        logger.info("node_registered", name=name)
        return True

    def snapshot(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._nodes)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._nodes

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.snapshot()))
