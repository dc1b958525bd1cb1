"""HTTP access to a running servicegraph API for CLI commands."""

from __future__ import annotations

from typing import Any

import click
import httpx

from servicegraph.cli.output import print_error

DEFAULT_API_URL = "http://localhost:8088"
REQUEST_TIMEOUT = 10.0


def get_client(ctx: click.Context) -> httpx.Client:
    """Synchronous client pointed at ``ctx.obj['api_url']``."""
    return httpx.Client(
        base_url=ctx.obj.get("api_url", DEFAULT_API_URL),
        headers={"Accept": "application/json"},
        timeout=REQUEST_TIMEOUT,
    )


def api_request(
    ctx: click.Context,
    method: str,
    path: str,
    *,
    params: dict[str, Any] | None = None,
) -> dict[str, Any] | None:
    """Call the API and return the decoded JSON body.

    Every failure is reported on stderr and yields ``None``, so commands only
    need to check for it and exit.
    """
    try:
        with get_client(ctx) as client:
            response = client.request(method, path, params=params)
    except httpx.HTTPError as exc:
        print_error(_transport_message(ctx, exc))
        return None

    if response.is_error:
        print_error(f"API error ({response.status_code}): {_problem_detail(response)}")
        return None
    try:
        body: dict[str, Any] = response.json()
    except ValueError:
        print_error(f"{method} {path} returned a non-JSON body.")
        return None
    return body


def _transport_message(ctx: click.Context, exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.ConnectError):
        api_url = ctx.obj.get("api_url")
        return f"Could not connect to API at {api_url}. Is `servicegraph serve` running?"
    if isinstance(exc, httpx.TimeoutException):
        return f"Request timed out after {REQUEST_TIMEOUT:.0f}s."
    return f"HTTP error: {exc}"


def _problem_detail(response: httpx.Response) -> str:
    """``detail`` from an RFC 7807 body, else the raw text."""
    try:
        detail = response.json().get("detail")
    except ValueError:
        detail = None
    return str(detail) if detail else response.text
