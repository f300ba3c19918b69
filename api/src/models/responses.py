"""
Response envelopes shared by every route group.
"""

from typing import Any, Optional
from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Liveness check response schema."""
    status: str = Field(
        ...,
        description="Always OK while the process serves requests"
    )
    message: str = Field(
        ...,
        min_length=1,
        description="Human-readable service message"
    )
    timestamp: str = Field(
        ...,
        description="Current time, ISO-8601 UTC"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "OK",
                "message": "Food Delivery API is running",
                "timestamp": "2024-01-01T12:00:00.000Z"
            }
        }
    }


class ErrorResponse(BaseModel):
    """Error response schema."""
    success: bool = Field(
        False,
        description="Always false for errors"
    )
    message: str = Field(
        ...,
        min_length=1,
        description="Error message"
    )
    errors: Optional[Any] = Field(
        None,
        description="Field-level validation errors or structured detail"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "success": False,
                "message": "API endpoint not found"
            }
        }
    }
