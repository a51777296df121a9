"""Rank a partner-supplied market list against one wallet.

Candidates missing a stored embedding are embedded by title on the request
path when an embedder is configured; otherwise they rank as neutral.
Fresh embeddings are used for this call right away and cached in the
background; a failed cache write is logged and never reaches the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol

from polymarket_recommender.embedding.provider import EmbeddingProviderError
from polymarket_recommender.embedding.similarity import rank
from polymarket_recommender.recommend.background import BackgroundWriter
from polymarket_recommender.recommend.models import (
    PartnerMarketInput,
    PartnerRanking,
    RankedMarket,
    match_percentage,
    round_score,
)
from polymarket_recommender.storage.repos import InterestProfileRepository, MarketRepository

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractAsyncContextManager

    from sqlalchemy.ext.asyncio import AsyncSession

    SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

logger = logging.getLogger(__name__)


class WalletProfileNotFoundError(LookupError):
    """Raised when a wallet has no interest profile to rank against."""

    def __init__(self, wallet_address: str) -> None:
        super().__init__(f"Wallet missing in our database: {wallet_address}")
        self.wallet_address = wallet_address


class AsyncEmbedder(Protocol):
    async def embed_many(self, texts: list[str]) -> list[list[float]]: ...


class PartnerRanker:
    def __init__(
        self,
        session: AsyncSession,
        *,
        embedder: AsyncEmbedder | None,
        writer: BackgroundWriter,
        cache_session_factory: SessionFactory,
        dim: int,
    ) -> None:
        self.session = session
        self._embedder = embedder
        self._writer = writer
        self._cache_sessions = cache_session_factory
        self._dim = dim
        self._markets = MarketRepository(session)
        self._profiles = InterestProfileRepository(session)

    async def rank_for_partner(
        self, wallet_address: str, markets: Sequence[PartnerMarketInput]
    ) -> PartnerRanking:
        """Rank ``markets`` by relevance to the wallet, best first.

        Raises:
            WalletProfileNotFoundError: The wallet has no interest profile.
        """
        profile = await self._profiles.get(wallet_address)
        if profile is None or not profile.interest_vector:
            raise WalletProfileNotFoundError(wallet_address)

        stored = await self._markets.get_embeddings(m.slug for m in markets)
        vectors: dict[str, list[float]] = {
            slug: vec for slug, vec in stored.items() if len(vec) == self._dim
        }

        unique = {m.slug: m for m in markets}
        missing = [m for m in unique.values() if m.slug not in vectors]
        if missing:
            vectors.update(await self._fetch_missing(missing))

        scored = rank(profile.interest_vector, [(m, vectors[m.slug]) for m in markets])
        return PartnerRanking(
            wallet_address=wallet_address,
            recommendations=[
                RankedMarket(
                    market=m,
                    relevance_score=round_score(score),
                    match_percentage=f"{match_percentage(score)}%",
                )
                for m, score in scored
            ],
        )

    async def _fetch_missing(self, missing: list[PartnerMarketInput]) -> dict[str, list[float]]:
        fetched: list[list[float]] = []
        if self._embedder is None:
            logger.warning(
                "No embedding provider configured; ranking %d markets as neutral", len(missing)
            )
        else:
            logger.info("Fetching %d missing embeddings for partner ranking", len(missing))
            try:
                fetched = await self._embedder.embed_many([m.title for m in missing])
            except EmbeddingProviderError as e:
                logger.warning(
                    "Embedding provider unavailable; ranking %d markets as neutral: %s",
                    len(missing),
                    e,
                )
                fetched = []

        out: dict[str, list[float]] = {}
        for i, market in enumerate(missing):
            vector = fetched[i] if i < len(fetched) else []
            if len(vector) != self._dim:
                out[market.slug] = [0.0] * self._dim
                continue
            out[market.slug] = vector
            self._writer.schedule(
                self._cache(market, vector), description=f"cache embedding {market.slug}"
            )
        return out

    async def _cache(self, market: PartnerMarketInput, vector: list[float]) -> None:
        async with self._cache_sessions() as session:
            await MarketRepository(session).cache_embedding(
                market_slug=market.slug, title=market.title, embedding=vector
            )
