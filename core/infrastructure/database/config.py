"""
Database configuration.

Manages engine and session factory creation for the SQL persistence backend.
"""
from typing import Optional
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.engine import make_url
import logging

from core.settings import DatabaseSettings


logger = logging.getLogger(__name__)


# =============================================================================
# ENGINE CREATION
# =============================================================================

def create_engine(settings: DatabaseSettings) -> AsyncEngine:
    """
    Create async SQLAlchemy engine.
    
    Args:
        settings: Database settings
    
    Returns:
        Configured async engine
    """
    url = make_url(settings.database_url)
    logger.info(f"Creating database engine: {url.render_as_string(hide_password=True)}")
    
    if url.get_backend_name() == "sqlite":
        # SQLite does not take pool sizing arguments
        return create_async_engine(url, echo=settings.echo_sql)
    
    return create_async_engine(
        url,
        echo=settings.echo_sql,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout,
        pool_recycle=settings.pool_recycle,
        pool_pre_ping=True,  # Test connections before using
    )


# =============================================================================
# SESSION FACTORY
# =============================================================================

def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Get session factory bound to an engine.
    
    Returns:
        Session factory for creating sessions
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# =============================================================================
# DATABASE INITIALIZATION
# =============================================================================

async def init_database(engine: AsyncEngine) -> None:
    """
    Initialize database.
    
    Creates all tables if they don't exist.
    """
    from core.infrastructure.database.models import Base
    
    logger.info("Initializing database...")
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    logger.info("Database initialized successfully")


async def close_database(engine: Optional[AsyncEngine]) -> None:
    """Close database connections."""
    if engine is not None:
        logger.info("Closing database connections...")
        await engine.dispose()
