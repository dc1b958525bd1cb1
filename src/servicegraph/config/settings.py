"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """servicegraph configuration loaded from environment variables."""

    # Application
    app_name: str = "servicegraph"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"  # development, staging, production

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # API
    api_host: str = "0.0.0.0"  # noqa: S104  # nosec B104
    api_port: int = 8088
    cors_origins: list[str] = ["*"]

    # Graph source
    graph_source: str = "prometheus"  # prometheus, file
    prometheus_url: str = "http://localhost:9090"
    prometheus_timeout: float = 10.0
    request_count_metric: str = "istio_request_count"
    graph_file: str = ""
    default_time_window: str = "5m"

    # Aggregation
    scale_factor: float = 100.0
    metric_fields: dict[str, str] = {"reqs/sec": "normal", "errs/sec": "danger"}
    ingress_node: str = "istio-ingress.istio-system (unknown)"

    # Nested (global -> region -> services) layout
    external_node: str = "INTERNET"
    region_name: str = "k8s-ist-1"
    region_max_volume: float = 1000.0

    # Streaming
    stream_interval_seconds: float = 1.0
    stream_default_format: str = "nested"
    stream_heartbeat_payload: str = '{"type":"heartbeat"}'

    # Diagnostics
    mirror_output: bool = False

    # OpenTelemetry
    tracing_enabled: bool = True
    otel_exporter_endpoint: str = ""  # e.g. http://localhost:4317

    model_config = {
        "env_prefix": "SERVICEGRAPH_",
        "env_file": ".env",
        "extra": "ignore",
    }


settings = Settings()
