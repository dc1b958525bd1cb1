"""servicegraph CLI -- serve, render and manage the node registry."""
# mypy: disable-error-code="misc,untyped-decorator"

from __future__ import annotations

import click

from servicegraph.cli.commands.node import node
from servicegraph.cli.commands.render import render
from servicegraph.cli.http import DEFAULT_API_URL
from servicegraph.config import settings
from servicegraph.observability.logging import configure_logging


@click.group()
@click.option(
    "--api-url",
    envvar="SERVICEGRAPH_API_URL",
    default=DEFAULT_API_URL,
    help="Base URL of the servicegraph API.",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format.",
)
@click.version_option(package_name="servicegraph")
@click.pass_context
def cli(ctx: click.Context, api_url: str, output_format: str) -> None:
    """servicegraph -- service-call topology for visualization clients."""
    configure_logging(settings.log_level, json_format=settings.log_json)
    ctx.ensure_object(dict)
    ctx.obj["api_url"] = api_url
    ctx.obj["format"] = output_format


cli.add_command(node)
cli.add_command(render)


@cli.command()
@click.option("--host", default=settings.api_host, show_default=True, help="Bind address.")
@click.option("--port", default=settings.api_port, type=int, show_default=True, help="Bind port.")
@click.option("--reload", is_flag=True, help="Restart on code changes (development only).")
def serve(host: str, port: int, reload: bool) -> None:
    """Run the graph API and /vizsocket stream under uvicorn."""
    import uvicorn

    uvicorn.run(
        "servicegraph.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )
