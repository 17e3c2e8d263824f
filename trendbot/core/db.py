"""Database module with async SQLAlchemy engine and session management."""
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from .settings import get_settings

settings = get_settings()

# SQLAlchemy base for models
Base = declarative_base()


def build_engine(db_url: str) -> AsyncEngine:
    """Create an async engine; pool sizing only applies to server databases.

    SQL echo is driven by the ``sqlalchemy.engine`` logger level.
    """
    if db_url.startswith("sqlite"):
        return create_async_engine(db_url)
    return create_async_engine(
        db_url,
        pool_size=10,
        max_overflow=20,
    )


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to *engine*."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# Async engine
async_engine = build_engine(settings.db_url)

# Async session maker
AsyncSessionLocal = build_sessionmaker(async_engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def create_all(engine: AsyncEngine = async_engine):
    """Create all tables in the database."""
    # models must be imported so their tables are registered on Base
    from . import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_all(engine: AsyncEngine = async_engine):
    """Drop all tables in the database."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
