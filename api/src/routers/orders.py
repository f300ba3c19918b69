"""
Orders route group, mounted under /api/orders.

Order placement and tracking endpoints are registered on this router.
"""

from fastapi import APIRouter

router = APIRouter()
