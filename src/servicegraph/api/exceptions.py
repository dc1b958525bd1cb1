"""FastAPI wiring for the servicegraph exception hierarchy.

``ServiceGraphError`` subclasses raised by handlers become RFC 7807
``application/problem+json`` responses.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from servicegraph.errors import ServiceGraphError

logger = structlog.get_logger()


def servicegraph_exception_handler(request: Request, exc: ServiceGraphError) -> JSONResponse:
    """FastAPI exception handler for ServiceGraphError subclasses."""
    if not exc.instance:
        exc.instance = request.url.path
    logger.warning(
        "servicegraph_error",
        error_type=exc.error_type,
        status=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_problem_detail(),
        media_type="application/problem+json",
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all servicegraph exception handlers on the FastAPI app."""
    app.add_exception_handler(
        ServiceGraphError,
        servicegraph_exception_handler,  # type: ignore[arg-type]
    )
