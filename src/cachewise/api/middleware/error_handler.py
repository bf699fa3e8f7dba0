"""Global exception handlers mapping cachewise failures to HTTP responses.

Every body carries ``type`` set to the exception's ``kind`` so callers can
branch on it without parsing messages.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cachewise.exceptions import (
    CachewiseError,
    CompositionInvariantViolation,
    InvocationTimeout,
    InvocationTransportFailure,
)


def register_error_handlers(app: FastAPI) -> None:
    """Register exception-to-HTTP-status mappings."""

    @app.exception_handler(InvocationTimeout)
    async def handle_timeout(request: Request, exc: InvocationTimeout) -> JSONResponse:
        return JSONResponse(
            status_code=504,
            content={"error": str(exc), "type": exc.kind, "incomplete": True},
        )

    @app.exception_handler(InvocationTransportFailure)
    async def handle_transport(request: Request, exc: InvocationTransportFailure) -> JSONResponse:
        return JSONResponse(
            status_code=502,
            content={"error": str(exc), "type": exc.kind, "attempts": exc.attempts},
        )

    @app.exception_handler(CompositionInvariantViolation)
    async def handle_composition(request: Request, exc: CompositionInvariantViolation) -> JSONResponse:
        return JSONResponse(status_code=500, content={"error": str(exc), "type": exc.kind})

    @app.exception_handler(CachewiseError)
    async def handle_generic_error(request: Request, exc: CachewiseError) -> JSONResponse:
        return JSONResponse(status_code=500, content={"error": str(exc), "type": exc.kind})
