"""
Database engine, session factory, and metadata shared across the engine.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import Any, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from ..core.config import settings

logger = logging.getLogger(__name__)

Base: DeclarativeMeta = declarative_base()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False)

_engine: Optional[Engine] = None


def _build_engine_kwargs(db_url: str) -> dict[str, Any]:
    if db_url.startswith("sqlite"):
        return {"future": True, "connect_args": {"check_same_thread": False}}
    return {
        "future": True,
        "pool_size": 5,
        "max_overflow": 5,
        "pool_timeout": 5,
        "pool_recycle": 300,
        "pool_pre_ping": True,
    }


def get_engine() -> Engine:
    """Build the engine on first use and bind the session factory to it."""
    global _engine
    if _engine is None:
        db_url = settings.database_url
        _engine = create_engine(db_url, **_build_engine_kwargs(db_url))
        SessionLocal.configure(bind=_engine)
        logger.info("Database engine created for dialect %s", _engine.dialect.name)
    return _engine


def init_db() -> None:
    """Create tables for all registered models (development and tests)."""
    from .. import models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    get_engine()
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Context-managed session for workers and scripts."""
    get_engine()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
