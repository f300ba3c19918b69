"""
Cart route group, mounted under /api/cart.

Shopping cart endpoints are registered on this router.
"""

from fastapi import APIRouter

router = APIRouter()
