# src/oraclenet_identity/models/human.py
"""SQLAlchemy model for wallet holders bound to a GitHub account."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from oraclenet_identity.db.session import Base
from oraclenet_identity.db.time import utcnow


def _new_id() -> str:
    return uuid.uuid4().hex[:15]


class Human(Base):
    """A wallet, optionally bound to a GitHub login."""

    __tablename__ = "humans"

    id: Mapped[str] = mapped_column(String(15), primary_key=True, default=_new_id)
    wallet_address: Mapped[str] = mapped_column(String(42), unique=True, nullable=False)
    github_username: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    display_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
