"""Shared fixtures: a throwaway SQLite database per test."""

import pytest
import pytest_asyncio

from trendbot.core import models  # noqa: F401  registers tables on Base
from trendbot.core.db import Base, build_engine, build_sessionmaker


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Async engine on a fresh on-disk SQLite file with all tables created."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'trends.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session
