"""
Database configuration and session management
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    AsyncEngine,
    async_sessionmaker,
    create_async_engine
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool, AsyncAdaptedQueuePool
from sqlalchemy import text
import logging
from contextlib import asynccontextmanager

from busseats.config import settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str = None) -> AsyncEngine:
    """
    Create an async engine; SQLite and test runs skip connection pooling
    """
    url = database_url or settings.DATABASE_URL
    if settings.is_testing or url.startswith("sqlite"):
        # NullPool doesn't accept pool parameters
        return create_async_engine(url, echo=settings.DB_ECHO, poolclass=NullPool)
    return create_async_engine(
        url,
        echo=settings.DB_ECHO,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
        poolclass=AsyncAdaptedQueuePool,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine: AsyncEngine = build_engine()

# Create async session factory
async_session = build_session_factory(engine)

# Create declarative base
Base = declarative_base()


async def init_db(bind: AsyncEngine = None):
    """
    Create tables if they are missing
    """
    # Register models on Base.metadata
    import busseats.models  # noqa: F401

    try:
        async with (bind or engine).begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


async def close_db():
    """
    Close database connections
    """
    await engine.dispose()
    logger.info("Database connections closed")


class DatabaseManager:
    """
    Transaction helper bound to a session factory
    """

    def __init__(self, session_factory: async_sessionmaker = None):
        self.session_factory = session_factory or async_session
        self.logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def transaction(self, session: AsyncSession):
        """
        Run the block inside session.begin(); commits on exit, rolls back on error
        """
        try:
            async with session.begin():
                yield session
        except Exception as e:
            self.logger.error(f"Transaction rolled back: {type(e).__name__}: {e}")
            raise

    @asynccontextmanager
    async def atomic_transaction(self):
        """
        Create a new session with atomic transaction
        """
        async with self.session_factory() as session:
            async with self.transaction(session) as tx_session:
                yield tx_session

    @asynccontextmanager
    async def read_session(self):
        """
        Session for read-only queries, no explicit transaction
        """
        async with self.session_factory() as session:
            yield session

    async def ping(self) -> bool:
        async with self.session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            return result.scalar() == 1
