"""
Async SQLAlchemy engine and session factory for the history database.
"""

import os
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import (
    create_async_engine,
    async_sessionmaker,
    AsyncSession,
    AsyncEngine,
)

logger = logging.getLogger(__name__)

_engine: Optional[AsyncEngine] = None
_async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def normalize_database_url(database_url: str) -> str:
    """Force the asyncpg driver on plain postgres URLs."""
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+asyncpg://", 1)
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return database_url


async def init_db() -> None:
    """Initialize the async engine and session factory. Call once at app startup."""
    global _engine, _async_session_factory

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        logger.warning("DATABASE_URL not set, history is kept in memory only")
        return

    _engine = create_async_engine(
        normalize_database_url(database_url),
        echo=False,
        pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=300,
    )
    _async_session_factory = async_sessionmaker(
        _engine, class_=AsyncSession, expire_on_commit=False
    )
    logger.info("History database engine initialized")


async def close_db() -> None:
    """Dispose of the engine. Call once at app shutdown."""
    global _engine, _async_session_factory
    if _engine:
        await _engine.dispose()
        logger.info("History database engine disposed")
    _engine = None
    _async_session_factory = None


def get_session_factory() -> Optional[async_sessionmaker[AsyncSession]]:
    """Get the session factory for use outside request scope (history stores)."""
    return _async_session_factory
