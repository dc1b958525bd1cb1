"""Factory for creating the configured graph source from application settings."""

import structlog

from servicegraph.config.settings import Settings
from servicegraph.observability.base import GraphSource
from servicegraph.observability.fixture import JsonFileGraphSource
from servicegraph.observability.prometheus import PrometheusGraphSource

logger = structlog.get_logger()


def create_graph_source(settings: Settings) -> GraphSource:
    """Instantiate the source selected by ``settings.graph_source``.

    ``file`` requires ``graph_file``; ``prometheus`` requires ``prometheus_url``.
    """
    kind = settings.graph_source.lower()

    if kind == "file":
        if not settings.graph_file:
            raise ValueError("graph_source=file requires SERVICEGRAPH_GRAPH_FILE to be set")
        source: GraphSource = JsonFileGraphSource(settings.graph_file)
    elif kind == "prometheus":
        if not settings.prometheus_url:
            raise ValueError("graph_source=prometheus requires SERVICEGRAPH_PROMETHEUS_URL")
        source = PrometheusGraphSource(
            url=settings.prometheus_url,
            metric=settings.request_count_metric,
            timeout=settings.prometheus_timeout,
        )
    else:
        raise ValueError(
            f"Unknown graph source '{settings.graph_source}'. Available: prometheus, file"
        )

    logger.info("graph_source_initialized", source=source.source_name, address=source.address)
    return source
