"""FastAPI application entry point."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from servicegraph.api.exceptions import register_exception_handlers
from servicegraph.api.routes import graph, stream
from servicegraph.config import Settings, settings
from servicegraph.models.graph import NodeRegistry
from servicegraph.observability.base import GraphSource
from servicegraph.observability.factory import create_graph_source
from servicegraph.observability.logging import configure_logging
from servicegraph.observability.tracing import init_tracing, shutdown_tracing
from servicegraph.streaming.manager import StreamManager
from servicegraph.topology.renderer import GraphRenderer

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application startup and shutdown lifecycle."""
    cfg: Settings = app.state.settings
    if cfg.tracing_enabled:
        init_tracing(cfg)
    logger.info(
        "servicegraph_starting",
        environment=cfg.environment,
        source=app.state.renderer.source.source_name,
        address=app.state.renderer.source.address,
    )
    yield
    cancelled = app.state.streams.close_all("server_shutdown")
    try:
        await app.state.renderer.source.close()
    except Exception as exc:
        logger.warning("graph_source_close_error", error=str(exc))
    if cfg.tracing_enabled:
        shutdown_tracing()
    logger.info("servicegraph_stopped", streams_cancelled=cancelled)


def create_app(
    app_settings: Settings | None = None,
    source: GraphSource | None = None,
    registry: NodeRegistry | None = None,
) -> FastAPI:
    """Build the application with explicit, app-owned state.

    ``source`` and ``registry`` default to the configured graph source and an
    empty registry; tests pass their own.
    """
    cfg = app_settings or settings
    configure_logging(cfg.log_level, json_format=cfg.log_json)

    app = FastAPI(
        title=cfg.app_name,
        version=cfg.app_version,
        debug=cfg.debug,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    node_registry = registry if registry is not None else NodeRegistry()
    graph_source = source or create_graph_source(cfg)
    app.state.settings = cfg
    app.state.registry = node_registry
    app.state.renderer = GraphRenderer.from_settings(cfg, graph_source, node_registry)
    app.state.streams = StreamManager()

    app.include_router(graph.router)
    app.include_router(stream.router)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "healthy",
            "version": cfg.app_version,
            "source": graph_source.source_name,
            "registered_nodes": len(node_registry),
            "active_streams": app.state.streams.active_connections,
        }

    return app


app = create_app()
