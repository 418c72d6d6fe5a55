"""Database connection and session management.

Transaction Guarantees:
- Each unit of work gets its own session
- A post write and the activity rows it produced commit together
- On any exception, the entire transaction is rolled back
- Sessions are properly closed after each unit of work
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import get_settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create a synchronous engine for the given URL."""
    connect_args = {}
    kwargs = {}

    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session sees an empty db
            kwargs["poolclass"] = StaticPool
    else:
        kwargs.update(
            pool_pre_ping=True,  # Check connection health before use
            pool_recycle=300,
        )

    logger.info(f"Database URL (masked): {database_url[:30]}...")
    return create_engine(
        database_url,
        echo=echo,
        connect_args=connect_args,
        **kwargs,
    )


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory - creates new sessions for each unit of work."""
    return sessionmaker(
        engine,
        expire_on_commit=False,  # Don't expire objects after commit
        autoflush=False,  # Manual flush for better control
    )


@lru_cache
def get_engine() -> Engine:
    """Engine for the configured database, created on first use."""
    settings = get_settings()
    return build_engine(settings.database_url, echo=settings.database_echo)


@lru_cache
def get_session_factory() -> sessionmaker[Session]:
    return build_session_factory(get_engine())


@contextmanager
def get_session_context(
    session_factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """Transactional session: commit on success, rollback on any error."""
    factory = session_factory or get_session_factory()
    session = factory()
    try:
        yield session
        session.commit()
        logger.debug("Transaction committed successfully")
    except Exception as e:
        session.rollback()
        logger.error(f"Error during unit of work, transaction rolled back: {e}")
        raise
    finally:
        session.close()


def init_db(engine: Engine | None = None) -> None:
    """Initialize database (create tables if needed)."""
    from ..models import Base

    # In production, use migrations instead
    Base.metadata.create_all(engine or get_engine())


def close_db() -> None:
    """Close database connections."""
    if get_engine.cache_info().currsize:
        get_engine().dispose()
    get_session_factory.cache_clear()
    get_engine.cache_clear()
