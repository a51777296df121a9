"""Read-only wallet profile view: category rollups plus the interest profile."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from polymarket_recommender.storage.repos import (
    CategorySummaryRepository,
    InterestProfileRepository,
    MarketRepository,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True)
class CategoryStats:
    volume: float
    interactions: int
    pnl: float | None


@dataclass(frozen=True)
class SemanticMarket:
    market_slug: str
    title: str
    similarity: float
    category: str | None


@dataclass(frozen=True)
class InterestSnapshot:
    interest_vector: list[float]
    last_updated: datetime
    top_semantic_markets: list[SemanticMarket]


@dataclass(frozen=True)
class WalletProfile:
    """Aggregated view of one wallet.

    A wallet without any data gets zero totals and no interest snapshot.
    """

    wallet: str
    categories: dict[str, CategoryStats] = field(default_factory=dict)
    total_interactions: int = 0
    total_volume: float = 0.0
    total_pnl: float = 0.0
    interest: InterestSnapshot | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "wallet": self.wallet,
            "categories": {
                name: {"volume": c.volume, "interactions": c.interactions, "pnl": c.pnl}
                for name, c in self.categories.items()
            },
            "total_interactions": self.total_interactions,
            "total_volume": self.total_volume,
            "total_pnl": self.total_pnl,
            "interest_profile": None,
        }
        if self.interest is not None:
            out["interest_profile"] = {
                "dimensions": len(self.interest.interest_vector),
                "last_updated": self.interest.last_updated.isoformat(),
                "top_semantic_markets": [
                    {
                        "market_slug": m.market_slug,
                        "title": m.title,
                        "similarity": round(m.similarity, 3),
                        "category": m.category,
                    }
                    for m in self.interest.top_semantic_markets
                ],
            }
        return out


async def get_wallet_profile(
    session: AsyncSession,
    wallet_address: str,
    *,
    match_threshold: float,
    top_markets: int,
) -> WalletProfile:
    wallet = wallet_address.lower()
    rows = await CategorySummaryRepository(session).list_for_wallet(wallet)

    categories: dict[str, CategoryStats] = {}
    total_interactions = 0
    total_volume = 0.0
    total_pnl = 0.0
    for row in rows:
        # Category PnL only means something once a market in it has settled.
        pnl = row.pnl if row.finalized_markets_count > 0 else None
        categories[row.category] = CategoryStats(
            volume=row.total_volume, interactions=row.total_interactions, pnl=pnl
        )
        total_interactions += row.total_interactions
        total_volume += row.total_volume
        if pnl is not None:
            total_pnl += pnl

    interest: InterestSnapshot | None = None
    profile = await InterestProfileRepository(session).get(wallet)
    if profile is not None:
        matches: list[SemanticMarket] = []
        if profile.interest_vector and top_markets > 0:
            found = await MarketRepository(session).match_markets(
                query_embedding=profile.interest_vector,
                match_threshold=match_threshold,
                match_count=top_markets,
            )
            matches = [
                SemanticMarket(
                    market_slug=m.market_slug,
                    title=m.title,
                    similarity=score,
                    category=m.category,
                )
                for m, score in found
            ]
        interest = InterestSnapshot(
            interest_vector=profile.interest_vector,
            last_updated=profile.last_updated,
            top_semantic_markets=matches,
        )

    return WalletProfile(
        wallet=wallet,
        categories=categories,
        total_interactions=total_interactions,
        total_volume=total_volume,
        total_pnl=total_pnl,
        interest=interest,
    )
