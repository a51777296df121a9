"""Market-first wallet discovery.

Starts from the top markets by volume, derives the wallets trading them from
recent orders, backfills those wallets' trades and stores the markets they
touched only through activity events (redeems, merges, splits).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from polymarket_recommender.ingestor.backfill import BackfillJob, BackfillStats, MarketCache
from polymarket_recommender.ingestor.dome_client import DomeClient, DomeClientError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from polymarket_recommender.ingestor.models import DomeMarket

logger = logging.getLogger(__name__)

UNKNOWN_MARKET = "unknown"


@dataclass
class DiscoveryStats:
    markets_scanned: int = 0
    wallets_discovered: int = 0
    activities: int = 0
    activity_markets: int = 0
    activity_failures: int = 0
    backfill: BackfillStats = field(default_factory=BackfillStats)


class DiscoveryJob:
    def __init__(
        self,
        *,
        client: DomeClient,
        backfill: BackfillJob,
        num_markets: int = 3,
        min_volume: float = 1000.0,
        max_orders_per_market: int = 100,
        max_activities_per_wallet: int = 100,
    ) -> None:
        self._client = client
        self._backfill = backfill
        self._num_markets = num_markets
        self._min_volume = min_volume
        self._max_orders = max_orders_per_market
        self._max_activities = max_activities_per_wallet

    async def run(self, *, cache: MarketCache | None = None) -> DiscoveryStats:
        cache = cache if cache is not None else MarketCache()
        stats = DiscoveryStats()

        markets = await self.top_markets(cache)
        stats.markets_scanned = len(markets)
        if not markets:
            logger.info("No markets above volume %.0f; nothing to discover", self._min_volume)
            return stats
        await self._backfill.store_markets((m.market_slug for m in markets), cache=cache)

        wallets = await self.discover_wallets(markets)
        stats.wallets_discovered = len(wallets)
        if not wallets:
            logger.info("No wallets discovered")
            return stats

        stats.backfill = await self._backfill.run(wallets, cache=cache)

        for i, wallet in enumerate(wallets, start=1):
            logger.info("[%d/%d] Fetching activity for %s", i, len(wallets), wallet)
            try:
                activities = await asyncio.to_thread(
                    self._client.get_all_wallet_activity, wallet, self._max_activities
                )
                stats.activities += len(activities)
                stats.activity_markets += await self._backfill.store_markets(
                    (a.market_slug for a in activities if a.market_slug != UNKNOWN_MARKET),
                    cache=cache,
                )
            except Exception as e:
                stats.activity_failures += 1
                logger.error("Error processing activity for %s: %s", wallet, e)

        logger.info(
            "Discovery done: %d markets scanned, %d wallets, %d activities, %d activity markets",
            stats.markets_scanned,
            stats.wallets_discovered,
            stats.activities,
            stats.activity_markets,
        )
        return stats

    async def top_markets(self, cache: MarketCache) -> list[DomeMarket]:
        """Top markets by volume; each is cached for the rest of the run."""
        page = await asyncio.to_thread(
            self._client.get_markets, min_volume=self._min_volume, limit=self._num_markets
        )
        markets = page.items[: self._num_markets]
        for market in markets:
            cache.put(market.market_slug, market)
        logger.info("Found %d markets", len(markets))
        return markets

    async def discover_wallets(self, markets: Sequence[DomeMarket]) -> list[str]:
        """Unique lower-cased wallets from each market's orders, first seen first."""
        wallets: dict[str, None] = {}
        for i, market in enumerate(markets, start=1):
            logger.info("[%d/%d] Scanning orders for %s", i, len(markets), market.market_slug)
            try:
                orders = await asyncio.to_thread(
                    self._client.get_all_orders_for_market, market.market_slug, self._max_orders
                )
            except DomeClientError as e:
                logger.error("Error processing market %s: %s", market.market_slug, e)
                continue
            before = len(wallets)
            for order in orders:
                if order.user:
                    wallets.setdefault(order.user.lower(), None)
            logger.info(
                "Found %d orders, %d new wallets (%d total)",
                len(orders),
                len(wallets) - before,
                len(wallets),
            )
        return list(wallets)
