"""Fill in title embeddings for markets that do not have one yet."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from polymarket_recommender.embedding.provider import EmbeddingProvider, EmbeddingProviderError
from polymarket_recommender.storage.repos import MarketRepository

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractAsyncContextManager

    from sqlalchemy.ext.asyncio import AsyncSession

    SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketEmbeddingIndexerConfig:
    batch_size: int = 64
    limit: int | None = None


@dataclass(frozen=True)
class IndexerStats:
    candidates: int
    embedded: int
    failed: int


class MarketEmbeddingIndexer:
    """Embeds market titles (title only, no tags or category) in batches.

    Each batch is committed on its own; a failing batch is logged and skipped.
    """

    def __init__(
        self,
        *,
        embedder: EmbeddingProvider,
        session_factory: SessionFactory,
        config: MarketEmbeddingIndexerConfig | None = None,
    ) -> None:
        self._embedder = embedder
        self._sessions = session_factory
        self._cfg = config or MarketEmbeddingIndexerConfig()
        if self._cfg.batch_size < 1:
            raise ValueError("batch_size must be >= 1")

    async def run_once(self) -> IndexerStats:
        async with self._sessions() as session:
            markets = await MarketRepository(session).list_missing_embeddings(limit=self._cfg.limit)
        markets = [m for m in markets if m.title.strip()]
        logger.info("Found %d markets without embeddings", len(markets))

        embedded = 0
        failed = 0
        for start in range(0, len(markets), self._cfg.batch_size):
            batch = markets[start : start + self._cfg.batch_size]
            try:
                vectors = await asyncio.to_thread(self._embedder.embed_many, [m.title for m in batch])
                if len(vectors) != len(batch):
                    raise EmbeddingProviderError("Embedding output length mismatch")
                async with self._sessions() as session:
                    repo = MarketRepository(session)
                    for market, vector in zip(batch, vectors, strict=True):
                        await repo.set_embedding(market.market_slug, vector)
            except Exception as e:
                failed += len(batch)
                logger.error(
                    "Embedding batch %d-%d failed: %s", start, start + len(batch) - 1, e
                )
                continue
            embedded += len(batch)
            logger.info("Embedded %d/%d markets", embedded, len(markets))

        return IndexerStats(candidates=len(markets), embedded=embedded, failed=failed)
