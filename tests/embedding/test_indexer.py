"""Tests for the market embedding indexer."""

from unittest.mock import MagicMock

import pytest

from polymarket_recommender.embedding.indexer import (
    MarketEmbeddingIndexer,
    MarketEmbeddingIndexerConfig,
)
from polymarket_recommender.embedding.provider import EmbeddingProviderError
from polymarket_recommender.storage.repos import MarketDTO, MarketRepository


class TitleEmbedder:
    """Deterministic embedder; titles containing 'boom' fail their batch."""

    def __init__(self) -> None:
        self.batches: list[list[str]] = []

    def embed_one(self, text: str) -> list[float]:
        return self.embed_many([text])[0]

    def embed_many(self, texts: list[str]) -> list[list[float]]:
        self.batches.append(list(texts))
        if any("boom" in t for t in texts):
            raise EmbeddingProviderError("provider exploded")
        return [[float(len(t)), 1.0, 0.0] for t in texts]


async def _seed(db, markets: list[MarketDTO]) -> None:
    async with db.session() as session:
        repo = MarketRepository(session)
        for market in markets:
            await repo.upsert(market)


class TestMarketEmbeddingIndexer:
    """Tests for MarketEmbeddingIndexer."""

    async def test_embeds_missing_titles(self, db) -> None:
        await _seed(
            db,
            [
                MarketDTO(market_slug="a", title="Will BTC hit 100k?"),
                MarketDTO(market_slug="b", title="Fed cuts rates"),
                MarketDTO(market_slug="c", title="Already embedded", embedding=[9.0, 9.0, 9.0]),
                MarketDTO(market_slug="d", title="   "),
            ],
        )
        embedder = TitleEmbedder()
        indexer = MarketEmbeddingIndexer(
            embedder=embedder,
            session_factory=db.session,
            config=MarketEmbeddingIndexerConfig(batch_size=10),
        )

        stats = await indexer.run_once()

        assert (stats.candidates, stats.embedded, stats.failed) == (2, 2, 0)
        # Title only, no tags or category.
        assert embedder.batches == [["Will BTC hit 100k?", "Fed cuts rates"]]
        async with db.session() as session:
            embeddings = await MarketRepository(session).get_embeddings(["a", "b", "c", "d"])
        assert embeddings["a"] == [18.0, 1.0, 0.0]
        assert embeddings["b"] == [14.0, 1.0, 0.0]
        assert embeddings["c"] == [9.0, 9.0, 9.0]
        assert "d" not in embeddings

    async def test_failed_batch_is_skipped(self, db) -> None:
        await _seed(
            db,
            [
                MarketDTO(market_slug="a", title="fine"),
                MarketDTO(market_slug="b", title="boom"),
                MarketDTO(market_slug="c", title="also fine"),
            ],
        )
        indexer = MarketEmbeddingIndexer(
            embedder=TitleEmbedder(),
            session_factory=db.session,
            config=MarketEmbeddingIndexerConfig(batch_size=1),
        )

        stats = await indexer.run_once()

        assert (stats.candidates, stats.embedded, stats.failed) == (3, 2, 1)
        async with db.session() as session:
            missing = await MarketRepository(session).list_missing_embeddings()
        assert [m.market_slug for m in missing] == ["b"]

    async def test_limit(self, db) -> None:
        await _seed(db, [MarketDTO(market_slug=s, title=s) for s in ("a", "b", "c")])
        indexer = MarketEmbeddingIndexer(
            embedder=TitleEmbedder(),
            session_factory=db.session,
            config=MarketEmbeddingIndexerConfig(limit=2),
        )

        stats = await indexer.run_once()

        assert stats.embedded == 2

    def test_invalid_batch_size(self) -> None:
        with pytest.raises(ValueError):
            MarketEmbeddingIndexer(
                embedder=TitleEmbedder(),
                session_factory=MagicMock(),
                config=MarketEmbeddingIndexerConfig(batch_size=0),
            )
