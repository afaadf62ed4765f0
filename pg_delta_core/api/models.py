"""
Pydantic models for API requests and responses.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class PlanRequest(BaseModel):
    """Request model for computing a migration plan."""
    main: Dict[str, Any] = Field(..., description="Catalog snapshot of the database as it is")
    branch: Dict[str, Any] = Field(..., description="Catalog snapshot of the database as it should be")
    output_format: Literal["sql", "json"] = Field("sql", description="Output format: sql or json")
    pretty: bool = Field(False, description="Pretty print statements")
    keyword_case: Literal["upper", "lower"] = Field("upper", description="Case of SQL keywords")
    mask_sensitive: bool = Field(False, description="Replace secrets with placeholders")
    env_dependent_server_keys: Optional[List[str]] = Field(
        None,
        description="Ignore changed values of these server and user mapping options; an empty list ignores all"
    )


class DiffRequest(BaseModel):
    """Request model for listing unordered changes."""
    main: Dict[str, Any] = Field(..., description="Catalog snapshot of the database as it is")
    branch: Dict[str, Any] = Field(..., description="Catalog snapshot of the database as it should be")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., examples=["healthy"])
    timestamp: str = Field(..., examples=["2024-01-01T00:00:00"])
    version: str = Field(..., examples=["0.1.0"])


class ErrorResponse(BaseModel):
    """Error response model."""
    detail: Any = Field(..., examples=["An error occurred"])
