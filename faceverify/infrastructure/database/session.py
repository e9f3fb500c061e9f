"""Database session management."""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine
)

from faceverify.core.config import Settings, settings
from faceverify.core.logging import get_logger
from faceverify.infrastructure.database.models import Base

logger = get_logger(__name__)


def create_engine(database_url: Optional[str] = None, config: Optional[Settings] = None) -> AsyncEngine:
    """Create the async engine.

    Pool sizing only applies to server databases; SQLite uses its own pool.
    """
    config = config or settings
    url = database_url or config.database_url
    kwargs = {"echo": config.DEBUG}
    if not url.startswith("sqlite"):
        kwargs.update(
            pool_size=config.POSTGRES_POOL_SIZE,
            max_overflow=config.POSTGRES_MAX_OVERFLOW,
            pool_timeout=config.POSTGRES_POOL_TIMEOUT,
        )
    return create_async_engine(url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


async def init_models(engine: AsyncEngine) -> None:
    """Create any missing tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")


@asynccontextmanager
async def get_db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Get database session.

    Yields:
        AsyncSession: Database session

    Example:
        ```python
        async with get_db_session(session_factory) as session:
            await session.execute(query)
            await session.commit()
        ```
    """
    session = session_factory()
    logger.debug("Creating new database session")
    try:
        yield session
    except Exception as e:
        logger.error(
            "Database session error",
            error=str(e),
            exc_info=True
        )
        await session.rollback()
        raise
    finally:
        logger.debug("Closing database session")
        await session.close()
