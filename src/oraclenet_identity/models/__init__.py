# src/oraclenet_identity/models/__init__.py
"""SQLAlchemy models for verified humans and their Oracles."""

from .human import Human
from .oracle import Oracle

__all__ = ["Human", "Oracle"]
