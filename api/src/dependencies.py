"""
FastAPI dependency injection for process-scoped resources.

Provides injectable dependencies for:
- Application settings
- The MongoDB connection handle and its default database
- The request body decoded by the body parser
- Client identification

Route groups receive shared state through these dependencies instead of
importing module-level globals; the resources themselves live on
app.state and are created by the application factory.
"""

from typing import Any, Optional

from fastapi import Depends, Request

from api.src.config import Settings
from api.src.services.database import MongoDatabase


def get_app_settings(request: Request) -> Settings:
    """Settings the running application was built with."""
    return request.app.state.settings


def get_database(request: Request) -> MongoDatabase:
    """
    Get the MongoDB connection handle.

    The handle is always available; use its status to branch on store
    availability, or depend on get_db() to require a live connection.
    """
    return request.app.state.database


def get_db(database: MongoDatabase = Depends(get_database)) -> Any:
    """
    Get the default MongoDB database.

    Example:
        @router.get("/")
        async def list_restaurants(db=Depends(get_db)):
            return await db.restaurants.find().to_list(50)

    Raises:
        DatabaseUnavailableError: If the connection is not established (503)
    """
    return database.get_database()


def get_parsed_body(request: Request) -> Optional[Any]:
    """Body decoded by the body parser, or None for other content types."""
    return getattr(request.state, "body", None)


def get_client_ip(request: Request) -> str:
    """
    Extract client IP address from request.

    Checks X-Forwarded-For header first (for proxied requests),
    then falls back to direct client IP.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"
