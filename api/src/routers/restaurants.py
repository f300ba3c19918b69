"""
Restaurants route group, mounted under /api/restaurants.

Restaurant listing and management endpoints are registered on this router.
"""

from fastapi import APIRouter

router = APIRouter()
