"""
Administration route group, mounted under /api/admin.

Back-office endpoints are registered on this router.
"""

from fastapi import APIRouter

router = APIRouter()
