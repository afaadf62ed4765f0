"""
Main FastAPI application for pg-delta.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .errors import internal_error_handler, not_found_handler
from pg_delta_core import __version__ as VERSION
from .health import router as health_router
from .home import router as home_router
from .plan import router as plan_router

app = FastAPI(
    title="pg-delta API",
    description="Compute ordered DDL scripts between PostgreSQL catalog snapshots",
    version=VERSION
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(home_router, tags=["system"])
app.include_router(health_router, tags=["system"])
app.include_router(plan_router, tags=["schema"])

# Add error handlers
app.add_exception_handler(404, not_found_handler)
app.add_exception_handler(500, internal_error_handler)

# To run: uvicorn pg_delta_core.api:app --reload --host 0.0.0.0 --port 8000
