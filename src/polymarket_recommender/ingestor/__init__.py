"""Data ingestion layer - Dome API client and wallet backfill."""

from polymarket_recommender.ingestor.dome_client import (
    DomeClient,
    DomeClientError,
    DomeClientRateLimitedError,
    DomeClientTransientError,
    RetryError,
)
from polymarket_recommender.ingestor.models import (
    DomeActivity,
    DomeMarket,
    DomeOrder,
    DomePage,
)

__all__ = [
    "DomeActivity",
    "DomeClient",
    "DomeClientError",
    "DomeClientRateLimitedError",
    "DomeClientTransientError",
    "DomeMarket",
    "DomeOrder",
    "DomePage",
    "RetryError",
]
