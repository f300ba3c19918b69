"""
Health check endpoint.

Answers liveness checks without touching the database, so orchestration
can tell whether the process serves requests independently of store
availability.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, status

from api.src.models.responses import HealthResponse

HEALTH_MESSAGE = "Food Delivery API is running"

router = APIRouter(tags=["Health"])


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@router.head("/health", include_in_schema=False)
@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health Check",
)
async def health_check() -> HealthResponse:
    """
    Health check endpoint.

    Returns basic liveness status without checking dependencies.
    Use for load balancer and container health checks.
    """
    return HealthResponse(
        status="OK",
        message=HEALTH_MESSAGE,
        timestamp=utc_timestamp(),
    )
