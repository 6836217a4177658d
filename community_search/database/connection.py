"""Database connection pool and session management."""
import logging
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy import text

from community_search.config import settings
from community_search.utils.logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()


def setup_sql_logging():
    """
    Configure SQLAlchemy SQL statement logging for async engines.

    Set SQL_ECHO=true in .env to log every full-text query the keyword branch issues.
    """
    if settings.sql_echo:
        log_level = getattr(logging, settings.sql_log_level.upper(), logging.INFO)
        logging.getLogger('sqlalchemy.engine').setLevel(log_level)
        logging.getLogger('sqlalchemy.pool').setLevel(logging.WARNING)
        logger.info(f"✅ SQL logging enabled at {settings.sql_log_level} level")
    else:
        logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
        logging.getLogger('sqlalchemy.pool').setLevel(logging.WARNING)


setup_sql_logging()

# The member directory is only read here; a small pool is enough
engine = create_async_engine(
    settings.mysql_url,
    echo=settings.sql_echo,
    echo_pool=False,
    pool_size=5,
    max_overflow=5,
    pool_pre_ping=True,  # Verify connections before using them
    pool_recycle=3600,  # Recycle connections after 1 hour to prevent stale connections
    pool_timeout=30,
    connect_args={
        "connect_timeout": 10,
    },
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting a read-only database session.
    The session is closed and its connection returned to the pool when the request ends.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Check that the member database is reachable."""
    try:
        async with engine.connect() as conn:
            logger.info("Testing database connection...")
            result = await conn.execute(text("SELECT 1"))
            result.fetchone()
        logger.info("Database connection established successfully")
    except Exception as e:
        error_msg = str(e)
        if "1040" in error_msg or "Too many connections" in error_msg:
            logger.error(
                "MySQL connection limit reached. Kill stale connections or raise max_connections",
                extra={"error": error_msg}
            )
        else:
            logger.error(f"Failed to connect to database: {e}", extra={"error": error_msg})
        raise


async def close_db() -> None:
    """Close database connections and dispose of engine."""
    try:
        await engine.dispose(close=True)
        logger.info("Database connections closed and engine disposed")
    except Exception as e:
        logger.error(f"Error closing database connections: {e}", extra={"error": str(e)})
        raise
