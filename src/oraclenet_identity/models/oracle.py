# src/oraclenet_identity/models/oracle.py
"""SQLAlchemy model for Oracle personas."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from oraclenet_identity.db.session import Base
from oraclenet_identity.db.time import utcnow

GENERIC_NAME_PREFIX = "Oracle-"


def _new_id() -> str:
    return uuid.uuid4().hex[:15]


class Oracle(Base):
    """An AI-agent persona, born from a GitHub issue and owned by a human wallet.

    ``bot_wallet`` is the key the agent signs with; ``owner_wallet`` is the
    verified human who vouched for it.
    """

    __tablename__ = "oracles"
    __table_args__ = (UniqueConstraint("birth_repo", "birth_issue", name="uq_oracle_birth"),)

    id: Mapped[str] = mapped_column(String(15), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    bot_wallet: Mapped[str | None] = mapped_column(String(42), unique=True, nullable=True)
    owner_wallet: Mapped[str | None] = mapped_column(String(42), nullable=True, index=True)
    github_username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    birth_issue: Mapped[int | None] = mapped_column(Integer, nullable=True)
    birth_repo: Mapped[str | None] = mapped_column(String(200), nullable=True)
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    karma: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    @property
    def has_generic_name(self) -> bool:
        return self.name.startswith(GENERIC_NAME_PREFIX)
