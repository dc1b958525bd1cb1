from servicegraph.api.routes import graph, stream

__all__ = ["graph", "stream"]
