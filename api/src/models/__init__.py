"""Data models for the FastAPI service.

This package contains Pydantic models for response envelopes.
"""

from api.src.models.responses import ErrorResponse, HealthResponse

__all__ = ["ErrorResponse", "HealthResponse"]
