"""Data models for the recommend module."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from polymarket_recommender.storage.repos import MarketDTO

UNCATEGORIZED = "Uncategorized"

REASON_POPULAR = "Popular market with high volume"
REASON_BOOKMARKED = "Bookmarked market"


def ai_match_reason(score: float) -> str:
    return f"AI Match: {match_percentage(score)}% semantic alignment with your trading history"


def match_percentage(score: float) -> int:
    """Score x 100 rounded to the nearest integer (halves round up)."""
    return int(_round_half_up(score * 100, 0))


def round_score(score: float) -> float:
    return _round_half_up(score, 3)


def _round_half_up(value: float, ndigits: int) -> float:
    # round() rounds halves to even; display values round halves up.
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor


@dataclass(frozen=True)
class Recommendation:
    """A market recommended to a wallet.

    Attributes:
        market_slug: Market identifier.
        title: Market title, or the slug when the title is empty.
        category: Market category, or ``Uncategorized``.
        volume_total: Lifetime traded volume.
        status: ``open`` or ``closed``.
        reason: Why the market was recommended.
        match_score: Cosine similarity to the wallet, 3 decimal places.
        match_percentage: ``match_score`` as a whole percentage.
        end_time: Scheduled resolution time, when known.
        image_url: Market image, when known.
        outcomes: Tradable sides as ``{"id", "label"}`` mappings.
    """

    market_slug: str
    title: str
    category: str
    volume_total: float
    status: str
    reason: str
    match_score: float = 0.0
    match_percentage: int = 0
    end_time: datetime | None = None
    image_url: str | None = None
    outcomes: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_market(cls, market: MarketDTO, *, reason: str, score: float = 0.0) -> Recommendation:
        return cls(
            market_slug=market.market_slug,
            title=market.title or market.market_slug,
            category=market.category or UNCATEGORIZED,
            volume_total=market.volume_total,
            status=market.status,
            reason=reason,
            match_score=round_score(score),
            match_percentage=match_percentage(score),
            end_time=market.end_time,
            image_url=market.image_url,
            outcomes=list(market.outcomes),
        )

    @property
    def is_ai_match(self) -> bool:
        return self.reason.startswith("AI Match:")

    def to_dict(self) -> dict[str, Any]:
        return {
            "market_slug": self.market_slug,
            "title": self.title,
            "category": self.category,
            "volume_total": self.volume_total,
            "status": self.status,
            "reason": self.reason,
            "match_score": self.match_score,
            "match_percentage": self.match_percentage,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "image_url": self.image_url,
            "outcomes": list(self.outcomes),
        }


@dataclass(frozen=True)
class PartnerMarketInput:
    """A candidate market supplied by a partner: slug, title and opaque extras."""

    slug: str
    title: str
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PartnerMarketInput:
        slug = data.get("slug")
        title = data.get("title")
        if not isinstance(slug, str) or not slug:
            raise ValueError("market input requires a non-empty 'slug'")
        if not isinstance(title, str):
            raise ValueError(f"market input {slug!r} requires a 'title'")
        extra = {k: v for k, v in data.items() if k not in ("slug", "title")}
        return cls(slug=slug, title=title, extra=extra)


@dataclass(frozen=True)
class RankedMarket:
    """A partner market with its relevance to one wallet."""

    market: PartnerMarketInput
    relevance_score: float
    match_percentage: str

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.market.extra,
            "slug": self.market.slug,
            "title": self.market.title,
            "relevance_score": self.relevance_score,
            "match_percentage": self.match_percentage,
        }


@dataclass(frozen=True)
class PartnerRanking:
    wallet_address: str
    recommendations: list[RankedMarket]

    @property
    def total_ranked(self) -> int:
        return len(self.recommendations)

    def to_dict(self) -> dict[str, Any]:
        return {
            "wallet_address": self.wallet_address,
            "total_ranked": self.total_ranked,
            "recommendations": [r.to_dict() for r in self.recommendations],
        }
