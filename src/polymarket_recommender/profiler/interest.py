"""Wallet interest vectors.

A wallet's interest vector is the volume-weighted centroid of the embeddings
of the markets it traded. The weight is sub-linear in volume with a floor of
1, so a single large position cannot drown out the rest of the history and
small positions still register.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from polymarket_recommender.storage.repos import (
    InterestProfileDTO,
    InterestProfileRepository,
    MarketRepository,
    MarketSummaryDTO,
    MarketSummaryRepository,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractAsyncContextManager

    from sqlalchemy.ext.asyncio import AsyncSession

    SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

logger = logging.getLogger(__name__)


def interest_weight(volume: float) -> float:
    """sqrt(v)/5 + log10(v + 1) + 1, with negative volume treated as 0."""
    v = max(0.0, float(volume or 0.0))
    return math.sqrt(v) / 5 + math.log10(v + 1) + 1


def build_interest_vector(
    summaries: Iterable[MarketSummaryDTO],
    embeddings: Mapping[str, Sequence[float]],
    *,
    dim: int,
) -> list[float] | None:
    """Weighted centroid of traded markets' embeddings.

    Markets without an embedding, or with one whose length is not ``dim``, do
    not contribute. NaN components are skipped in the numerator while the
    market's weight still counts in the denominator.

    Returns:
        The interest vector, or None when no market contributed.
    """
    numerator = np.zeros(dim, dtype=np.float64)
    total_weight = 0.0

    for summary in summaries:
        vector = embeddings.get(summary.market_slug)
        if not vector:
            continue
        if len(vector) != dim:
            logger.warning(
                "Skipping embedding for %s: length %d != %d",
                summary.market_slug,
                len(vector),
                dim,
            )
            continue
        weight = interest_weight(summary.total_volume)
        values = np.asarray(vector, dtype=np.float64)
        numerator += np.where(np.isnan(values), 0.0, values) * weight
        total_weight += weight

    if total_weight <= 0:
        return None
    return (numerator / total_weight).tolist()


class InterestProfileService:
    """Builds and stores interest profiles for wallets."""

    def __init__(self, session: AsyncSession, *, dim: int) -> None:
        self.session = session
        self._dim = dim
        self._summaries = MarketSummaryRepository(session)
        self._markets = MarketRepository(session)
        self._profiles = InterestProfileRepository(session)

    async def build_interest_vector(self, wallet_address: str) -> InterestProfileDTO | None:
        """Regenerate the wallet's interest profile, replacing any previous one.

        Returns None (and leaves storage untouched) when the wallet has no
        embedded-market history.
        """
        wallet = wallet_address.lower()
        summaries = await self._summaries.list_for_wallet(wallet)
        if not summaries:
            return None
        embeddings = await self._markets.get_embeddings(s.market_slug for s in summaries)
        vector = build_interest_vector(summaries, embeddings, dim=self._dim)
        if vector is None:
            return None
        profile = await self._profiles.upsert(wallet, vector)
        logger.info("Interest profile for %s built from %d markets", wallet, len(embeddings))
        return profile


@dataclass(frozen=True)
class ProfileRunStats:
    built: int
    skipped: int
    failed: int


async def generate_profiles(
    session_factory: SessionFactory,
    *,
    dim: int,
    wallets: list[str] | None = None,
) -> ProfileRunStats:
    """Regenerate interest profiles for every wallet with market summaries."""
    if wallets is None:
        async with session_factory() as session:
            wallets = await MarketSummaryRepository(session).list_wallets()

    built = skipped = failed = 0
    for i, wallet in enumerate(wallets, start=1):
        try:
            async with session_factory() as session:
                profile = await InterestProfileService(session, dim=dim).build_interest_vector(
                    wallet
                )
        except Exception as e:
            failed += 1
            logger.error("[%d/%d] Profile generation failed for %s: %s", i, len(wallets), wallet, e)
            continue
        if profile is None:
            skipped += 1
            logger.info("[%d/%d] No embedded markets for %s; skipped", i, len(wallets), wallet)
        else:
            built += 1
    return ProfileRunStats(built=built, skipped=skipped, failed=failed)
