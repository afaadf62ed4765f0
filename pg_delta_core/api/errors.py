"""
Custom error handlers for the API.
"""

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from pg_delta_core.lib.errors import CatalogLoadError, CycleError, PgDeltaError


async def not_found_handler(request: Request, exc):
    """Handle 404 errors"""
    return JSONResponse(
        status_code=404,
        content={"error": "Endpoint not found", "path": str(request.url.path)}
    )


async def internal_error_handler(request: Request, exc):
    """Handle 500 errors"""
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": str(exc)}
    )


def to_http_exception(exc: PgDeltaError) -> HTTPException:
    """Map an engine error onto the HTTP status a client should see."""
    if isinstance(exc, CatalogLoadError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, CycleError):
        return HTTPException(status_code=400, detail={
            "error": str(exc),
            "stable_ids": exc.stable_ids,
            "changes": exc.changes,
        })
    return HTTPException(status_code=500, detail=str(exc))
