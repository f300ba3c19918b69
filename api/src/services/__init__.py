"""Process-scoped services.

This package contains the long-lived resources created at startup and
shared by every request: the MongoDB connection and the rate limiter.
"""

from api.src.services.database import DatabaseStatus, MongoDatabase
from api.src.services.rate_limiter import RateLimitDecision, RateLimiter

__all__ = [
    "DatabaseStatus",
    "MongoDatabase",
    "RateLimitDecision",
    "RateLimiter",
]
