"""Pytest configuration and fixtures."""

from collections.abc import AsyncIterator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from polymarket_recommender.storage.database import DatabaseManager
from polymarket_recommender.storage.models import Base


@pytest.fixture
def sample_wallet() -> str:
    """Sample wallet address for testing."""
    return "0x1234567890abcdef1234567890abcdef12345678"


@pytest.fixture
async def async_engine():
    """Create an async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def async_session(async_engine) -> AsyncIterator[AsyncSession]:
    """Create an async session for testing."""
    session_factory = async_sessionmaker(bind=async_engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
async def db(tmp_path) -> AsyncIterator[DatabaseManager]:
    """File-backed SQLite database shared by several sessions."""
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'recommender.db'}")
    await manager.init_schema()
    yield manager
    await manager.dispose()
