"""Offline rendering of a recorded graph capture."""
# mypy: disable-error-code="misc,untyped-decorator"

from __future__ import annotations

import asyncio
import sys

import click

from servicegraph.cli.output import print_error
from servicegraph.config import settings
from servicegraph.errors import ServiceGraphError
from servicegraph.models.graph import NodeRegistry
from servicegraph.observability.fixture import JsonFileGraphSource
from servicegraph.topology.renderer import GraphRenderer
from servicegraph.topology.serializers import GraphFormat


@click.command()
@click.argument("capture", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--format",
    "graph_format",
    type=click.Choice([f.value for f in GraphFormat]),
    default=GraphFormat.NESTED.value,
    help="Output schema.",
)
@click.option("--scale-factor", type=float, default=None, help="Override the metric scale factor.")
@click.option("--node", "extra_nodes", multiple=True, help="Extra node to include (repeatable).")
def render(
    capture: str,
    graph_format: str,
    scale_factor: float | None,
    extra_nodes: tuple[str, ...],
) -> None:
    """Render CAPTURE (a raw json graph) to stdout in the chosen format."""
    cfg = settings
    if scale_factor is not None:
        cfg = settings.model_copy(update={"scale_factor": scale_factor})
    renderer = GraphRenderer.from_settings(
        cfg, JsonFileGraphSource(capture), NodeRegistry(extra_nodes)
    )
    try:
        payload = asyncio.run(renderer.snapshot(GraphFormat(graph_format), cfg.default_time_window))
    except ServiceGraphError as exc:
        print_error(exc.detail)
        sys.exit(1)
    click.echo(payload.decode("utf-8"), nl=False)
