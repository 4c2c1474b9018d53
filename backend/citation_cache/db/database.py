"""Database connection and session management."""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from citation_cache.config import Settings, get_settings

logger = logging.getLogger(__name__)

SQLITE_FALLBACK_URL = "sqlite+aiosqlite:///./citations.db"


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""
    pass


def create_engine(database_url: str) -> AsyncEngine:
    """Create an async engine for the given URL.

    SQLite gets a generous busy timeout so concurrent request writes and the
    sweep wait on each other instead of failing with "database is locked".
    """
    if database_url.startswith("sqlite"):
        return create_async_engine(
            database_url,
            echo=False,
            connect_args={"timeout": 30},
        )
    return create_async_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
    )


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables that don't exist yet."""
    async with engine.begin() as conn:
        from citation_cache.db import models  # noqa: F401
        await conn.run_sync(Base.metadata.create_all)


async def init_db(settings: Optional[Settings] = None) -> AsyncEngine:
    """Connect to the configured database and make sure the schema exists.

    A PostgreSQL URL that can't be reached falls back to the local SQLite
    file so the cache still survives restarts. Any other failure propagates:
    the cache has no in-memory mode.
    """
    settings = settings or get_settings()
    db_url = settings.database_url

    if "postgresql" in db_url:
        engine = create_engine(db_url)
        try:
            await create_tables(engine)
            logger.info("Connected to PostgreSQL database")
            return engine
        except Exception as e:
            logger.warning("PostgreSQL not available (%s), falling back to SQLite", e)
            await engine.dispose()
            db_url = SQLITE_FALLBACK_URL

    engine = create_engine(db_url)
    await create_tables(engine)
    logger.info("Using SQLite database (%s)", engine.url.database)
    return engine
