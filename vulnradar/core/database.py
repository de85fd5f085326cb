"""Engine construction and request-scoped sessions."""

import logging
from collections.abc import Iterator
from typing import Any

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from vulnradar.core.config import settings

logger = logging.getLogger(__name__)


def build_engine(url: str, **kwargs: Any) -> Engine:
    """
    Engine for url. In-memory SQLite (used by the test suite) keeps a single connection
    that every session and thread shares; anything else is a pooled server connection.
    """
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            **kwargs,
        )
    return create_engine(url, pool_pre_ping=True, **kwargs)


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autocommit=False, autoflush=False)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
SessionLocal = build_session_factory(engine)


def get_db() -> Iterator[Session]:
    """FastAPI dependency: one session per request, always closed."""
    with SessionLocal() as db:
        yield db


def check_db_connected(db: Session) -> bool:
    try:
        return db.scalar(text("SELECT 1")) == 1
    except SQLAlchemyError as e:
        logger.warning("Database connectivity check failed", extra={"error": str(e)})
        return False
