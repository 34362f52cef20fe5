# src/oraclenet_identity/api/endpoints/__init__.py
"""API endpoint modules."""

from .admin import router as admin_router
from .auth import router as auth_router
from .delegation import router as delegation_router
from .identity import router as identity_router

__all__ = [
    "admin_router",
    "auth_router",
    "delegation_router",
    "identity_router",
]
