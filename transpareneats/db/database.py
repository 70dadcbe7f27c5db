"""
Database configuration and session management.
Uses async SQLAlchemy with PostgreSQL (asyncpg) in production and SQLite
(aiosqlite) in tests.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from transpareneats.core.config import Settings

# Base class for all models
Base = declarative_base()


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Create the async engine; pool sizing only applies to server databases."""
    engine_kwargs = {
        "echo": settings.debug,
        "pool_pre_ping": True,
    }
    if not settings.database_url.startswith("sqlite"):
        engine_kwargs.update(
            pool_size=20,
            max_overflow=30,
            pool_recycle=3600,  # 1 hour
        )
    return create_async_engine(settings.database_url, **engine_kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session maker shared by the repositories."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=True,
    )


async def init_db(engine: AsyncEngine):
    """
    Initialize database tables.
    Only use in development - use Alembic migrations in production.
    """
    async with engine.begin() as conn:
        # Import all models to ensure they're registered
        from transpareneats.db.models import product  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: AsyncEngine):
    """
    Close database connections gracefully.
    """
    await engine.dispose()
