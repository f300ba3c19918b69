"""
Authentication route group, mounted under /api/auth.

Registration, login and session endpoints are registered on this router.
"""

from fastapi import APIRouter

router = APIRouter()
