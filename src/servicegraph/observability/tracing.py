"""OpenTelemetry tracing for the render pipeline.

``GraphRenderer`` opens ``graph.fetch`` and ``graph.render`` spans through
``get_tracer``. The API lifespan installs a real provider with
``init_tracing`` and flushes it with ``shutdown_tracing``; until then the
spans go to the no-op default provider.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

if TYPE_CHECKING:
    from servicegraph.config.settings import Settings

logger = structlog.get_logger()

_provider: TracerProvider | None = None


def _build_provider(settings: Settings) -> TracerProvider:
    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.app_name,
                "service.version": settings.app_version,
                "deployment.environment": settings.environment,
            }
        )
    )
    if settings.otel_exporter_endpoint:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        exporter = OTLPSpanExporter(endpoint=settings.otel_exporter_endpoint, insecure=True)
        provider.add_span_processor(BatchSpanProcessor(exporter))
        logger.info("otel_exporter_configured", endpoint=settings.otel_exporter_endpoint)
    return provider


def init_tracing(settings: Settings) -> trace.Tracer:
    """Install the global tracer provider and return the application tracer.

    Without ``otel_exporter_endpoint`` spans are recorded but not exported.
    """
    global _provider  # noqa: PLW0603
    _provider = _build_provider(settings)
    trace.set_tracer_provider(_provider)
    logger.info("otel_tracing_initialized", service=settings.app_name)
    return _provider.get_tracer("servicegraph")


def get_tracer(name: str = "servicegraph") -> trace.Tracer:
    return trace.get_tracer(name)


def shutdown_tracing() -> None:
    global _provider  # noqa: PLW0603
    if _provider is None:
        return
    _provider.force_flush()
    _provider.shutdown()
    _provider = None
    logger.info("otel_tracing_shutdown")
