"""Terminal rendering helpers for CLI commands."""

from __future__ import annotations

import json
from typing import Any

import click


def print_table(headers: list[str], rows: list[list[str]]) -> None:
    """Echo ``rows`` under ``headers`` as a bordered table.

    Short rows are padded with blanks; cells beyond the header count are dropped.
    """
    if not headers:
        return
    cells = [[str(c) for c in row[: len(headers)]] for row in rows]
    cells = [row + [""] * (len(headers) - len(row)) for row in cells]
    widths = [max(len(col) for col in column) for column in zip(headers, *cells)]

    rule = "+" + "+".join("-" * (w + 2) for w in widths) + "+"
    click.echo(rule)
    click.echo(_table_row(headers, widths))
    click.echo(rule)
    for row in cells:
        click.echo(_table_row(row, widths))
    click.echo(rule)


def _table_row(cells: list[str], widths: list[int]) -> str:
    return "| " + " | ".join(c.ljust(w) for c, w in zip(cells, widths)) + " |"


def print_json(data: Any) -> None:
    """Echo ``data`` as indented JSON."""
    click.echo(json.dumps(data, indent=2, default=str))


def print_registration(result: dict[str, Any]) -> None:
    """Summarize a ``POST /node`` response in one line."""
    verb = "Registered" if result.get("created") else "Already registered"
    click.echo(f"{verb}: {result.get('name')} ({result.get('total', '?')} total)")


def print_error(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
