# src/oraclenet_identity/db/__init__.py
"""Entity-store session helpers."""

from .session import Base, create_tables, get_db

__all__ = ["Base", "create_tables", "get_db"]
