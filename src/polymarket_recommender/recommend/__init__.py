"""Recommendation layer - Ranking markets for wallets."""

from polymarket_recommender.recommend.background import BackgroundWriter
from polymarket_recommender.recommend.models import (
    PartnerMarketInput,
    PartnerRanking,
    RankedMarket,
    Recommendation,
)
from polymarket_recommender.recommend.partner import PartnerRanker, WalletProfileNotFoundError
from polymarket_recommender.recommend.ranker import RecommendationRanker

__all__ = [
    "BackgroundWriter",
    "PartnerMarketInput",
    "PartnerRanker",
    "PartnerRanking",
    "RankedMarket",
    "Recommendation",
    "RecommendationRanker",
    "WalletProfileNotFoundError",
]
