"""Tests for database session management and the vector column type."""

import pytest

from polymarket_recommender.storage.database import DatabaseManager, _normalize_async_database_url
from polymarket_recommender.storage.repos import MarketDTO, MarketRepository
from polymarket_recommender.storage.vector import Vector


class TestDatabaseManager:
    """Tests for DatabaseManager."""

    async def test_session_commits(self, db: DatabaseManager) -> None:
        async with db.session() as session:
            await MarketRepository(session).upsert(MarketDTO(market_slug="m", title="T"))

        async with db.session() as session:
            assert await MarketRepository(session).get("m") is not None

    async def test_session_rolls_back_on_error(self, db: DatabaseManager) -> None:
        with pytest.raises(RuntimeError):
            async with db.session() as session:
                await MarketRepository(session).upsert(MarketDTO(market_slug="m", title="T"))
                raise RuntimeError("abort")

        async with db.session() as session:
            assert await MarketRepository(session).get("m") is None

    async def test_dispose_is_reentrant(self, tmp_path) -> None:
        manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'x.db'}")
        await manager.init_schema()

        await manager.dispose()
        await manager.dispose()

    def test_normalizes_sync_postgres_url(self) -> None:
        assert (
            _normalize_async_database_url("postgresql://u:p@h/db")
            == "postgresql+asyncpg://u:p@h/db"
        )
        assert _normalize_async_database_url("sqlite+aiosqlite://") == "sqlite+aiosqlite://"


class TestVector:
    """Tests for the Vector column type."""

    def test_col_spec(self) -> None:
        assert Vector().get_col_spec() == "vector"
        assert Vector(768).get_col_spec() == "vector(768)"

    def test_invalid_dimensions(self) -> None:
        with pytest.raises(ValueError):
            Vector(0)

    def test_bind_literal(self) -> None:
        process = Vector(3).bind_processor(None)

        assert process([1, 2, 3]) == "[1.0,2.0,3.0]"
        assert process("[1,2,3]") == "[1,2,3]"
        assert process(None) is None

    def test_bind_rejects_wrong_dimension(self) -> None:
        process = Vector(3).bind_processor(None)

        with pytest.raises(ValueError):
            process([1.0, 2.0])
