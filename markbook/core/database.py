"""Database connection and session management."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from markbook.core.config import settings
from markbook.core.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


def build_engine(url: str) -> AsyncEngine:
    """Create an async engine; pool sizing only applies to server databases."""
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(settings.DATABASE_URL)
SessionLocal = build_session_factory(engine)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory dependency, overridden in tests."""
    return SessionLocal


# Type alias for dependency injection
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


@asynccontextmanager
async def storage_session(
    session_factory: async_sessionmaker[AsyncSession],
    write: bool = False,
) -> AsyncIterator[AsyncSession]:
    """Open a session, in a transaction when ``write`` is set.

    Connection failures surface as StorageUnavailableError so callers can
    report them like any other domain error.
    """
    try:
        async with session_factory() as session:
            if write:
                async with session.begin():
                    yield session
            else:
                yield session
    except (OperationalError, InterfaceError, OSError) as e:
        logger.error(f"Database unavailable: {e}")
        raise StorageUnavailableError() from e
