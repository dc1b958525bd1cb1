"""Static node registry commands."""
# mypy: disable-error-code="misc,untyped-decorator"

from __future__ import annotations

import sys

import click

from servicegraph.cli.http import api_request
from servicegraph.cli.output import print_json, print_registration, print_table


@click.group()
def node() -> None:
    """Manage manually registered nodes."""


@node.command("add")
@click.argument("name")
@click.pass_context
def add(ctx: click.Context, name: str) -> None:
    """Register NAME so it appears in every rendered graph."""
    result = api_request(ctx, "POST", "/node", params={"name": name})
    if result is None:
        sys.exit(1)
    if ctx.obj.get("format") == "json":
        print_json(result)
        return
    print_registration(result)


@node.command("list")
@click.pass_context
def list_nodes(ctx: click.Context) -> None:
    """List registered nodes."""
    result = api_request(ctx, "GET", "/nodes")
    if result is None:
        sys.exit(1)
    if ctx.obj.get("format") == "json":
        print_json(result)
        return
    print_table(["Node"], [[name] for name in result.get("nodes", [])])
