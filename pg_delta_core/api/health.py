"""
Health and status endpoints.
"""

from datetime import datetime

from fastapi import APIRouter

from pg_delta_core import __version__
from pg_delta_core.api.models import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health():
    """Get API health status"""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now().isoformat(),
        version=__version__,
    )
