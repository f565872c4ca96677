"""
Database connection management.

Workers poll from a single thread plus a heartbeat thread, so a small
synchronous pool is enough. Every unit of work gets its own short session.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

from jobrotor.config import get_settings
from jobrotor.observability.tracing import instrument_sqlalchemy

logger = logging.getLogger(__name__)

_engine: Engine | None = None
SessionLocal: sessionmaker[Session] | None = None


def get_engine() -> Engine:
    """Return the process-wide engine, creating it from settings on first use."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(
            settings.database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,
        )
    return _engine


def get_test_engine(database_url: str) -> Engine:
    """Engine without pooling, so tests never share connections."""
    return create_engine(database_url, poolclass=NullPool)


def init_db(engine: Engine | None = None) -> None:
    """
    Bind the session factory. Call once on process startup.

    Args:
        engine: Engine to bind. Defaults to the configured engine.
    """
    global _engine, SessionLocal
    if engine is not None:
        _engine = engine
    engine = get_engine()
    instrument_sqlalchemy(engine)
    SessionLocal = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    logger.info("Database connection initialized")


def close_db() -> None:
    """Dispose of the engine. Call on process shutdown."""
    global _engine, SessionLocal
    if _engine is not None:
        _engine.dispose()
        _engine = None
        SessionLocal = None
        logger.info("Database connection closed")


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Iterator[Session]:
    """Open a session that commits on success and rolls back on error."""
    with factory() as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise


@contextmanager
def get_session_context() -> Iterator[Session]:
    """
    Session from the process-wide factory.

    Raises:
        RuntimeError: If init_db() has not been called.
    """
    if SessionLocal is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    with session_scope(SessionLocal) as session:
        yield session
