"""
Database session configuration.

One async engine per process. Sessions do not expire on commit so that
committed ledger values stay readable for audit snapshots and responses.
"""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from quickbill.app.core.config import settings
from quickbill.app.core.exceptions import PersistenceFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")

# asyncpg enforces a per-statement deadline, which also covers COMMIT
connect_args = {}
if settings.database_url.startswith("postgresql+asyncpg"):
    connect_args["command_timeout"] = settings.db_command_timeout_seconds

engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
    connect_args=connect_args,
)

# Flushes are explicit: the ledger writer decides when rows hit the database
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db():
    """
    FastAPI dependency for database sessions.

    Anything left uncommitted when the request ends is rolled back.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                await session.rollback()


async def bounded(awaitable: Awaitable[T], step: str, timeout: Optional[float] = None) -> T:
    """
    Await a database call under a deadline.

    Application errors pass through untouched. A timeout becomes
    PersistenceFailure("timeout") and a driver error becomes
    PersistenceFailure(step).
    """
    timeout = settings.db_timeout_seconds if timeout is None else timeout
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.error("Database call '%s' timed out after %ss", step, timeout)
        raise PersistenceFailure("timeout", f"the database did not respond within {timeout} seconds")
    except SQLAlchemyError as exc:
        logger.error("Database call '%s' failed: %s", step, exc)
        raise PersistenceFailure(step, f"failed to {step.replace('_', ' ')}") from exc


async def rollback_quietly(db: AsyncSession) -> None:
    try:
        await db.rollback()
    except SQLAlchemyError:
        logger.exception("Rollback failed")
