"""
Menu route group, mounted under /api/menu.

Menu item endpoints are registered on this router.
"""

from fastapi import APIRouter

router = APIRouter()
