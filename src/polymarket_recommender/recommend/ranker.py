"""Market recommendations for a wallet.

Wallets with an interest profile get nearest-neighbour matches against
market embeddings. Wallets without one, or whose search fails or finds
nothing, get the most traded open markets instead.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from polymarket_recommender.embedding.similarity import rank
from polymarket_recommender.recommend.models import (
    REASON_BOOKMARKED,
    REASON_POPULAR,
    Recommendation,
    ai_match_reason,
)
from polymarket_recommender.storage.repos import (
    InterestProfileRepository,
    MarketDTO,
    MarketRepository,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def rank_candidates(
    interest_vector: Sequence[float],
    candidates: Iterable[MarketDTO],
    *,
    limit: int,
    threshold: float | None = None,
) -> list[Recommendation]:
    """Rank in-memory candidates against an interest vector.

    Candidates without an embedding are left out.
    """
    embedded = [(m, m.embedding) for m in candidates if m.embedding]
    scored = rank(interest_vector, embedded)
    if threshold is not None:
        scored = [item for item in scored if item[1] > threshold]
    return [
        Recommendation.from_market(m, reason=ai_match_reason(score), score=score)
        for m, score in scored[: max(0, limit)]
    ]


class RecommendationRanker:
    """Ranks stored markets for a wallet."""

    def __init__(self, session: AsyncSession, *, match_threshold: float) -> None:
        self.session = session
        self._threshold = match_threshold
        self._markets = MarketRepository(session)
        self._profiles = InterestProfileRepository(session)

    async def recommend(
        self,
        wallet_address: str,
        *,
        limit: int,
        candidates: Sequence[MarketDTO] | None = None,
    ) -> list[Recommendation]:
        """Recommendations for ``wallet_address``, best first.

        Args:
            wallet_address: Wallet to recommend for (case-insensitive).
            limit: Maximum number of results.
            candidates: Restrict ranking to these markets. When omitted every
                embedded market in storage is a candidate.
        """
        if limit <= 0:
            return []

        profile = await self._profiles.get(wallet_address)
        if profile is None or not profile.interest_vector:
            return await self.popular(limit=limit)

        try:
            if candidates is None:
                matches = await self._markets.match_markets(
                    query_embedding=profile.interest_vector,
                    match_threshold=self._threshold,
                    match_count=limit,
                )
                recs = [
                    Recommendation.from_market(m, reason=ai_match_reason(score), score=score)
                    for m, score in matches
                ]
            else:
                recs = rank_candidates(
                    profile.interest_vector,
                    candidates,
                    limit=limit,
                    threshold=self._threshold,
                )
        except Exception as e:
            logger.error("Vector search failed for %s: %s", wallet_address.lower(), e)
            return await self.popular(limit=limit)

        if not recs:
            logger.info("No semantic matches for %s; using popular markets", wallet_address.lower())
            return await self.popular(limit=limit)
        return recs

    async def popular(self, *, limit: int) -> list[Recommendation]:
        markets = await self._markets.list_popular_open(limit=limit)
        return [Recommendation.from_market(m, reason=REASON_POPULAR) for m in markets]

    async def markets_by_slugs(self, slugs: Sequence[str]) -> list[Recommendation]:
        """Stored markets for the given slugs, tagged as bookmarks, in request order."""
        markets = {m.market_slug: m for m in await self._markets.get_many(slugs)}
        return [
            Recommendation.from_market(markets[slug], reason=REASON_BOOKMARKED)
            for slug in dict.fromkeys(slugs)
            if slug in markets
        ]
