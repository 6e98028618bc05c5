"""
Database connection and session management
"""

from typing import Any, AsyncGenerator, Callable
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from ledgertax.core.config import settings

logger = structlog.get_logger()

# Convert postgresql:// to postgresql+asyncpg://
database_url = str(settings.DATABASE_URL).replace("postgresql://", "postgresql+asyncpg://")

# Create async engine (connections are opened lazily on first use)
engine = create_async_engine(
    database_url,
    echo=False,
    pool_pre_ping=True,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


AFTER_COMMIT_KEY = "after_commit"


def after_commit(session, callback: Callable[[], Any]):
    """Queue a callback to run once the request transaction has committed"""
    session.info.setdefault(AFTER_COMMIT_KEY, []).append(callback)


def run_after_commit(session):
    for callback in session.info.pop(AFTER_COMMIT_KEY, []):
        callback()


async def get_database() -> AsyncGenerator[AsyncSession, None]:
    """Get database session"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
            run_after_commit(session)
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def close_database():
    """Close database connection"""
    await engine.dispose()
    logger.info("Database engine disposed")
