"""
Contact route group, mounted under /api/contact.

Contact form endpoints are registered on this router.
"""

from fastapi import APIRouter

router = APIRouter()
