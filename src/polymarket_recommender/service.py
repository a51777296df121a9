"""Application service: the recommender's public operations over one database.

Each call runs in its own session (one unit of work). Best-effort cache
writes started by partner ranking run in the background and can be awaited
with :meth:`RecommenderService.drain_background`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from polymarket_recommender.embedding.provider import (
    EmbeddingConfig,
    RetryingEmbedder,
    SentenceTransformerEmbeddingProvider,
)
from polymarket_recommender.ingestor.categories import determine_category
from polymarket_recommender.pnl.service import PnlService, WalletPnlResult
from polymarket_recommender.profiler.interest import InterestProfileService
from polymarket_recommender.profiler.wallet_profile import WalletProfile, get_wallet_profile
from polymarket_recommender.recommend.background import BackgroundWriter
from polymarket_recommender.recommend.models import PartnerMarketInput, PartnerRanking, Recommendation
from polymarket_recommender.recommend.partner import AsyncEmbedder, PartnerRanker
from polymarket_recommender.recommend.ranker import RecommendationRanker
from polymarket_recommender.storage.repos import MarketDTO, MarketRepository

if TYPE_CHECKING:
    from polymarket_recommender.config import Settings
    from polymarket_recommender.storage.database import DatabaseManager

logger = logging.getLogger(__name__)


class RecommenderService:
    def __init__(
        self,
        db: DatabaseManager,
        *,
        dim: int,
        match_threshold: float = 0.1,
        default_limit: int = 10,
        profile_top_markets: int = 5,
        embedder: AsyncEmbedder | None = None,
        writer: BackgroundWriter | None = None,
    ) -> None:
        self._db = db
        self._dim = dim
        self._threshold = match_threshold
        self._default_limit = default_limit
        self._profile_top_markets = profile_top_markets
        self._embedder = embedder
        self._writer = writer or BackgroundWriter(logger=logger)

    @classmethod
    def from_settings(cls, db: DatabaseManager, settings: Settings) -> RecommenderService:
        embedder: AsyncEmbedder | None = None
        if settings.embedding.model:
            provider = SentenceTransformerEmbeddingProvider(
                config=EmbeddingConfig(
                    model_name_or_path=settings.embedding.model,
                    device=settings.embedding.device,
                    expected_dim=settings.embedding.dim,
                )
            )
            embedder = RetryingEmbedder(
                provider,
                timeout_seconds=settings.embedding.timeout_seconds,
                max_retries=settings.embedding.max_retries,
            )
        return cls(
            db,
            dim=settings.embedding.dim,
            match_threshold=settings.recommend.match_threshold,
            default_limit=settings.recommend.default_limit,
            profile_top_markets=settings.recommend.profile_top_markets,
            embedder=embedder,
        )

    @property
    def background(self) -> BackgroundWriter:
        return self._writer

    async def build_interest_vector(self, wallet_address: str) -> list[float] | None:
        """Regenerate and store the wallet's interest vector; None if not producible."""
        async with self._db.session() as session:
            profile = await InterestProfileService(session, dim=self._dim).build_interest_vector(
                wallet_address
            )
        return profile.interest_vector if profile else None

    async def rank_recommendations(
        self,
        wallet_address: str,
        *,
        candidates: Sequence[MarketDTO] | None = None,
        limit: int | None = None,
    ) -> list[Recommendation]:
        async with self._db.session() as session:
            ranker = RecommendationRanker(session, match_threshold=self._threshold)
            return await ranker.recommend(
                wallet_address,
                limit=limit if limit is not None else self._default_limit,
                candidates=candidates,
            )

    async def markets_by_slugs(self, slugs: Sequence[str]) -> list[Recommendation]:
        async with self._db.session() as session:
            ranker = RecommendationRanker(session, match_threshold=self._threshold)
            return await ranker.markets_by_slugs(slugs)

    async def rank_for_partner(
        self, wallet_address: str, markets: Sequence[PartnerMarketInput]
    ) -> PartnerRanking:
        async with self._db.session() as session:
            ranker = PartnerRanker(
                session,
                embedder=self._embedder,
                writer=self._writer,
                cache_session_factory=self._db.session,
                dim=self._dim,
            )
            return await ranker.rank_for_partner(wallet_address, markets)

    async def compute_market_pnl(self, wallet_address: str, market_slug: str) -> float | None:
        async with self._db.session() as session:
            return await PnlService(session).compute_market_pnl(wallet_address, market_slug)

    async def recompute_wallet_pnl_and_categories(self, wallet_address: str) -> WalletPnlResult:
        async with self._db.session() as session:
            return await PnlService(session).recompute_wallet_pnl_and_categories(wallet_address)

    async def wallet_profile(self, wallet_address: str) -> WalletProfile:
        async with self._db.session() as session:
            return await get_wallet_profile(
                session,
                wallet_address,
                match_threshold=self._threshold,
                top_markets=self._profile_top_markets,
            )

    async def recategorize_markets(self) -> int:
        """Re-derive every market's category from its title and tags."""
        changed = 0
        async with self._db.session() as session:
            repo = MarketRepository(session)
            for market in await repo.list_all():
                category = determine_category(market.title, market.tags)
                if category != market.category:
                    await repo.set_category(market.market_slug, category)
                    changed += 1
        logger.info("Updated categories for %d markets", changed)
        return changed

    async def drain_background(self) -> None:
        await self._writer.drain()
