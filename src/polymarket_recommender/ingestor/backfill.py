"""Wallet trade-history backfill from the Dome API into storage."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from polymarket_recommender.ingestor.categories import category_from_tags
from polymarket_recommender.ingestor.dome_client import DomeClient, DomeClientError
from polymarket_recommender.ingestor.models import DomeMarket, DomeOrder
from polymarket_recommender.pnl.service import PnlService
from polymarket_recommender.storage.repos import (
    MarketDTO,
    MarketRepository,
    TransactionDTO,
    TransactionRepository,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from contextlib import AbstractAsyncContextManager

    from sqlalchemy.ext.asyncio import AsyncSession

    SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

logger = logging.getLogger(__name__)


class MarketCache:
    """Market lookups for one job invocation.

    A slug cached as None was looked up and not found, so it is not fetched
    again within the same run.
    """

    def __init__(self) -> None:
        self._markets: dict[str, DomeMarket | None] = {}
        self._stored: set[str] = set()

    def __contains__(self, market_slug: str) -> bool:
        return market_slug in self._markets

    def __len__(self) -> int:
        return len(self._markets)

    def get(self, market_slug: str) -> DomeMarket | None:
        return self._markets.get(market_slug)

    def put(self, market_slug: str, market: DomeMarket | None) -> None:
        self._markets[market_slug] = market

    def needs_store(self, market_slug: str) -> bool:
        return market_slug not in self._stored

    def mark_stored(self, market_slug: str) -> None:
        self._stored.add(market_slug)


def market_dto_from_dome(market: DomeMarket, *, title: str | None = None) -> MarketDTO:
    return MarketDTO(
        market_slug=market.market_slug,
        title=title or market.title,
        condition_id=market.condition_id,
        category=category_from_tags(market.tags),
        tags=list(market.tags),
        status=market.status,
        winning_side=market.winning_side,
        side_a_id=market.side_a_id,
        side_b_id=market.side_b_id,
        end_time=market.end_time,
        volume_total=market.volume_total,
        image_url=market.image_url,
        outcomes=[o.to_dict() for o in market.outcomes],
    )


def transaction_from_order(wallet_address: str, order: DomeOrder) -> TransactionDTO:
    return TransactionDTO(
        wallet_address=wallet_address.lower(),
        market_slug=order.market_slug,
        side=order.side,
        price=order.price,
        shares=order.shares,
        shares_normalized=order.shares_normalized,
        volume_usd=order.volume_usd,
        timestamp=order.timestamp,
        token_id=order.token_id,
        condition_id=order.condition_id,
        tx_hash=order.tx_hash,
        order_hash=order.order_hash,
    )


@dataclass
class BackfillStats:
    wallets_processed: int = 0
    wallets_skipped: int = 0
    wallets_failed: int = 0
    transactions: int = 0
    markets: int = 0
    failed_wallets: list[str] = field(default_factory=list)


class BackfillJob:
    """Fetches each wallet's orders and the markets they touch, then stores them."""

    def __init__(
        self,
        *,
        client: DomeClient,
        session_factory: SessionFactory,
        max_orders_per_wallet: int = 500,
    ) -> None:
        self._client = client
        self._sessions = session_factory
        self._max_orders = max_orders_per_wallet

    async def run(self, wallets: Iterable[str], *, cache: MarketCache | None = None) -> BackfillStats:
        cache = cache if cache is not None else MarketCache()
        stats = BackfillStats()
        wallet_list = list(dict.fromkeys(w.lower() for w in wallets))
        for i, wallet in enumerate(wallet_list, start=1):
            logger.info("[%d/%d] Processing wallet %s", i, len(wallet_list), wallet)
            try:
                stored = await self.backfill_wallet(wallet, cache=cache, stats=stats)
            except Exception as e:
                stats.wallets_failed += 1
                stats.failed_wallets.append(wallet)
                logger.error("Error processing wallet %s: %s", wallet, e)
                continue
            if stored:
                stats.wallets_processed += 1
            else:
                stats.wallets_skipped += 1
        logger.info(
            "Backfill done: %d wallets, %d skipped, %d failed, %d transactions, %d markets",
            stats.wallets_processed,
            stats.wallets_skipped,
            stats.wallets_failed,
            stats.transactions,
            stats.markets,
        )
        return stats

    async def backfill_wallet(
        self, wallet_address: str, *, cache: MarketCache, stats: BackfillStats
    ) -> bool:
        """Backfill one wallet. Returns False when it has no orders."""
        wallet = wallet_address.lower()
        orders = await asyncio.to_thread(
            self._client.get_all_orders_for_wallet, wallet, self._max_orders
        )
        if not orders:
            logger.info("No orders found for %s; skipping", wallet)
            return False
        logger.info("Found %d orders for %s", len(orders), wallet)

        await self._fetch_markets(
            [slug for slug in dict.fromkeys(o.market_slug for o in orders) if slug not in cache],
            cache,
        )

        titles: dict[str, str] = {}
        for order in orders:
            if order.title and order.market_slug not in titles:
                titles[order.market_slug] = order.title
        new_markets: list[MarketDTO] = []
        for slug in dict.fromkeys(o.market_slug for o in orders):
            market = cache.get(slug)
            if market is not None and cache.needs_store(slug):
                new_markets.append(market_dto_from_dome(market, title=titles.get(slug)))

        transactions = [transaction_from_order(wallet, o) for o in orders]

        async with self._sessions() as session:
            markets_repo = MarketRepository(session)
            for dto in new_markets:
                await markets_repo.upsert(dto)
            await TransactionRepository(session).insert_many(transactions)
            summaries = await PnlService(session).rebuild_wallet_market_summaries(wallet)

        for dto in new_markets:
            cache.mark_stored(dto.market_slug)
        stats.transactions += len(transactions)
        stats.markets += len(new_markets)
        logger.info(
            "Stored %d transactions, %d markets, %d summaries for %s",
            len(transactions),
            len(new_markets),
            summaries,
            wallet,
        )
        return True

    async def store_markets(self, market_slugs: Iterable[str], *, cache: MarketCache) -> int:
        """Fetch uncached markets and store those not yet stored in this run.

        Returns:
            Number of markets written.
        """
        slugs = list(dict.fromkeys(market_slugs))
        await self._fetch_markets([slug for slug in slugs if slug not in cache], cache)

        new_markets: list[MarketDTO] = []
        for slug in slugs:
            market = cache.get(slug)
            if market is not None and cache.needs_store(slug):
                new_markets.append(market_dto_from_dome(market))
        if not new_markets:
            return 0

        async with self._sessions() as session:
            repo = MarketRepository(session)
            for dto in new_markets:
                await repo.upsert(dto)
        for dto in new_markets:
            cache.mark_stored(dto.market_slug)
        return len(new_markets)

    async def _fetch_markets(self, slugs: list[str], cache: MarketCache) -> None:
        if not slugs:
            return
        logger.info("Fetching details for %d markets", len(slugs))
        for slug in slugs:
            try:
                market = await asyncio.to_thread(self._client.get_market, slug)
            except DomeClientError as e:
                logger.warning("Error fetching market %s: %s", slug, e)
                continue
            cache.put(slug, market)
