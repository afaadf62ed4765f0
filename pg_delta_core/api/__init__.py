"""
API module for pg-delta.
"""

from .models import PlanRequest, HealthResponse
from .api import app

__all__ = [
    "PlanRequest",
    "HealthResponse",
    "app"
]
