"""Entity-store engine and sessions.

Humans and Oracles are the only durable records; everything else lives in the
state store. Services commit their own unit of work, so a request that raises
part-way through is rolled back here before the session is returned.
"""

from __future__ import annotations

import logging
from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from oraclenet_identity.core.settings import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for Human and Oracle."""


# Model modules must be imported before create_all sees the metadata.
import oraclenet_identity.models  # noqa: E402,F401

# SQLite sessions are handed across the threadpool FastAPI runs sync code on.
_connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    echo=settings.sql_debug,
    connect_args=_connect_args,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a session per request, discarding uncommitted writes on error."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def create_tables() -> None:
    """Create the humans and oracles tables if they are missing."""
    Base.metadata.create_all(bind=engine)
    logger.info("Entity store ready at %s", engine.url.render_as_string(hide_password=True))
